"""Normalized Matrix timeline events consumed by the command dispatcher."""

from __future__ import annotations

from dataclasses import dataclass

ROOM_MESSAGE_EVENT_TYPE = "m.room.message"


@dataclass(frozen=True)
class TextMessageContent:
    """Content of an `m.room.message` event carrying a string body."""

    body: str


@dataclass(frozen=True)
class OtherContent:
    """Any content that is not a plain text message."""

    event_type: str


EventContent = TextMessageContent | OtherContent


@dataclass(frozen=True)
class IncomingEvent:
    """Room-scoped timeline event decoded once at ingestion."""

    event_type: str
    sender_user_id: str
    room_id: str
    timestamp_ms: int
    content: EventContent
