"""Encryption gateway used when the daemon runs without an end-to-end crypto backend."""

from __future__ import annotations

import logging

from matrix_pairing.application.ports.encryption_gateway_port import EncryptionUnavailableError

logger = logging.getLogger(__name__)


class PlaintextOnlyEncryptionGateway:
    """Decline encryption for new rooms and refuse encrypted sends."""

    async def enable_encryption(self, *, room_id: str, user_id: str) -> bool:
        logger.debug(
            "room_encryption_skipped room_id=%s user_id=%s reason=no_crypto_backend",
            room_id,
            user_id,
        )
        return False

    async def send_encrypted(self, *, room_id: str, content: dict[str, object]) -> None:
        _ = content
        raise EncryptionUnavailableError(
            f"room {room_id} is encrypted but no crypto backend is configured"
        )

    async def close(self) -> None:
        return None
