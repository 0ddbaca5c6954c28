"""Port for end-to-end encryption negotiation and encrypted delivery."""

from __future__ import annotations

from typing import Protocol


class EncryptionUnavailableError(RuntimeError):
    """Raised when an encrypted send is requested but no encryption backend exists."""


class EncryptionGatewayPort(Protocol):
    """Encryption capability used for room setup and encrypted sends."""

    async def enable_encryption(self, *, room_id: str, user_id: str) -> bool:
        """Try to enable encryption for a new room, returning whether it is now encrypted."""

    async def send_encrypted(self, *, room_id: str, content: dict[str, object]) -> None:
        """Encrypt and deliver message content to an encrypted room."""

    async def close(self) -> None:
        """Flush and release crypto state."""
