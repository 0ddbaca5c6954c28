"""Port for Matrix homeserver room, message, and sync operations."""

from __future__ import annotations

from typing import Protocol


class MatrixTransportPort(Protocol):
    """Matrix client operations consumed by the pairing daemon."""

    async def create_direct_room(self, *, invitee_user_id: str, topic: str) -> str:
        """Create a private direct invite-only room and return its room id."""

    async def send_message(self, *, room_id: str, content: dict[str, object]) -> str:
        """Send an unencrypted `m.room.message` and return the created event id."""

    async def sync(self, *, since: str | None, timeout_ms: int) -> dict[str, object]:
        """Long-poll the homeserver and return the raw sync payload."""

    async def close(self) -> None:
        """Release transport resources; later requests fail."""
