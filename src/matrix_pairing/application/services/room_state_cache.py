"""Synchronized per-room encryption and language cache."""

from __future__ import annotations

import threading
from collections.abc import Iterable

from matrix_pairing.domain.room_binding import DEFAULT_LANGUAGE, RoomBinding, RoomState


class RoomStateCache:
    """In-memory room state plus the persisted binding of each paired room.

    The encrypted flag is sticky: once a room is recorded as encrypted it stays
    encrypted until the cache is discarded.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._states: dict[str, RoomState] = {}
        self._bindings: dict[str, RoomBinding] = {}

    def seed(self, bindings: Iterable[RoomBinding]) -> int:
        """Load persisted bindings and return how many rooms were registered."""

        count = 0
        with self._lock:
            for binding in bindings:
                self._register_locked(binding)
                count += 1
        return count

    def register_binding(self, binding: RoomBinding) -> None:
        """Track a paired room and merge its encryption flag into the room state."""

        with self._lock:
            self._register_locked(binding)

    def bind_room(self, binding: RoomBinding) -> RoomBinding:
        """Track a newly paired room, keeping any language already chosen in it.

        Returns the binding as stored, which is the one to persist.
        """

        with self._lock:
            current = self._states.get(binding.room_id)
            if current is not None:
                binding = RoomBinding(
                    room_id=binding.room_id,
                    user_id=binding.user_id,
                    language=current.language,
                    encrypted=binding.encrypted,
                )
            self._register_locked(binding)
            return self._bindings[binding.room_id]

    def register_room(self, room_id: str, *, encrypted: bool) -> RoomState:
        """Record a room that has no binding yet, such as a freshly created pairing room."""

        with self._lock:
            current = self._states.get(room_id)
            if current is None:
                state = RoomState(encrypted=encrypted)
            else:
                state = RoomState(
                    encrypted=current.encrypted or encrypted,
                    language=current.language,
                )
            self._states[room_id] = state
            return state

    def get(self, room_id: str) -> RoomState | None:
        with self._lock:
            return self._states.get(room_id)

    def get_binding(self, room_id: str) -> RoomBinding | None:
        with self._lock:
            return self._bindings.get(room_id)

    def is_encrypted(self, room_id: str) -> bool:
        with self._lock:
            state = self._states.get(room_id)
            return state is not None and state.encrypted

    def language(self, room_id: str) -> str | None:
        """Return the cached language code, or None when the room is unknown."""

        with self._lock:
            state = self._states.get(room_id)
            return state.language if state is not None else None

    def set_language(self, room_id: str, language: str) -> RoomBinding | None:
        """Update the room language and return the updated binding when the room is paired."""

        with self._lock:
            current = self._states.get(room_id)
            encrypted = current.encrypted if current is not None else False
            self._states[room_id] = RoomState(encrypted=encrypted, language=language)

            binding = self._bindings.get(room_id)
            if binding is None:
                return None
            updated = binding.with_language(language)
            self._bindings[room_id] = updated
            return updated

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)

    def _register_locked(self, binding: RoomBinding) -> None:
        current = self._states.get(binding.room_id)
        encrypted = binding.encrypted or (current is not None and current.encrypted)
        language = binding.language or DEFAULT_LANGUAGE
        self._states[binding.room_id] = RoomState(encrypted=encrypted, language=language)
        self._bindings[binding.room_id] = RoomBinding(
            room_id=binding.room_id,
            user_id=binding.user_id,
            language=language,
            encrypted=encrypted,
        )
