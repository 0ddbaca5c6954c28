"""Decode Matrix `/sync` responses into normalized incoming events."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from matrix_pairing.domain.incoming_event import (
    ROOM_MESSAGE_EVENT_TYPE,
    EventContent,
    IncomingEvent,
    OtherContent,
    TextMessageContent,
)


def extract_next_batch_token(
    sync_payload: Mapping[str, Any],
    *,
    fallback: str | None = None,
) -> str | None:
    """Return sync `next_batch` token when present, else fallback value."""

    token = sync_payload.get("next_batch")
    if isinstance(token, str) and token:
        return token
    return fallback


def iter_incoming_events(sync_payload: Mapping[str, Any]) -> list[IncomingEvent]:
    """Extract joined-room timeline events in delivery order, skipping malformed ones."""

    rooms = sync_payload.get("rooms")
    if not isinstance(rooms, Mapping):
        return []

    joined_rooms = rooms.get("join")
    if not isinstance(joined_rooms, Mapping):
        return []

    extracted: list[IncomingEvent] = []
    for room_id, room_body in joined_rooms.items():
        if not isinstance(room_id, str) or not isinstance(room_body, Mapping):
            continue

        timeline = room_body.get("timeline")
        if not isinstance(timeline, Mapping):
            continue

        events = timeline.get("events")
        if not isinstance(events, list):
            continue

        for raw_event in events:
            if not isinstance(raw_event, Mapping):
                continue
            parsed = parse_incoming_event(room_id=room_id, event=raw_event)
            if parsed is not None:
                extracted.append(parsed)

    return extracted


def parse_incoming_event(*, room_id: str, event: Mapping[str, Any]) -> IncomingEvent | None:
    """Decode one timeline event, returning None when sender, type, or timestamp is missing."""

    event_type = event.get("type")
    if not isinstance(event_type, str) or not event_type:
        return None

    sender = event.get("sender")
    if not isinstance(sender, str) or not sender:
        return None

    timestamp = event.get("origin_server_ts")
    if isinstance(timestamp, bool) or not isinstance(timestamp, int):
        return None

    return IncomingEvent(
        event_type=event_type,
        sender_user_id=sender,
        room_id=room_id,
        timestamp_ms=timestamp,
        content=_decode_content(event_type=event_type, content=event.get("content")),
    )


def _decode_content(*, event_type: str, content: object) -> EventContent:
    if event_type != ROOM_MESSAGE_EVENT_TYPE or not isinstance(content, Mapping):
        return OtherContent(event_type=event_type)
    body = content.get("body")
    if not isinstance(body, str):
        return OtherContent(event_type=event_type)
    return TextMessageContent(body=body)
