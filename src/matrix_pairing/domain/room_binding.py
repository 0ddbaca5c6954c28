"""Room binding, pending pairing token, and cached room state models."""

from __future__ import annotations

from dataclasses import dataclass, replace

DEFAULT_LANGUAGE = "en-us"


@dataclass(frozen=True)
class RoomBinding:
    """One paired Matrix user and the direct room created for them."""

    room_id: str
    user_id: str
    language: str = DEFAULT_LANGUAGE
    encrypted: bool = False

    def with_language(self, language: str) -> RoomBinding:
        """Return a copy of the binding using another language code."""

        return replace(self, language=language)


@dataclass(frozen=True)
class PendingToken:
    """Unverified pairing issued by `send_start` and keyed by its PIN."""

    pin: str
    verified: bool
    binding: RoomBinding


@dataclass(frozen=True)
class RoomState:
    """Cached per-room delivery state."""

    encrypted: bool
    language: str = DEFAULT_LANGUAGE
