"""Port for room binding persistence operations."""

from __future__ import annotations

from typing import Protocol

from matrix_pairing.domain.room_binding import RoomBinding


class RoomBindingRepositoryPort(Protocol):
    """Room binding persistence contract."""

    async def load_bindings(self) -> list[RoomBinding]:
        """Return every persisted binding."""

    async def save_binding(self, binding: RoomBinding) -> None:
        """Insert or update one binding keyed by room id."""
