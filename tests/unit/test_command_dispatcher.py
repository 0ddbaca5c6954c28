from __future__ import annotations

import logging
from collections.abc import Mapping

import pytest

from matrix_pairing.application.services.command_dispatcher import CommandDispatcher
from matrix_pairing.application.services.room_state_cache import RoomStateCache
from matrix_pairing.domain.incoming_event import IncomingEvent, OtherContent, TextMessageContent
from matrix_pairing.domain.room_binding import RoomBinding

_BOT = "@bot:example.org"
_ROOM = "!room:example.org"
_START_MS = 1_700_000_000_000


class _RecordingTransport:
    def __init__(self, *, error: Exception | None = None) -> None:
        self.sent: list[tuple[str, dict[str, object]]] = []
        self._error = error

    async def send_message(self, *, room_id: str, content: dict[str, object]) -> str:
        if self._error is not None:
            raise self._error
        self.sent.append((room_id, content))
        return "$reply"


class _StaticCatalog:
    def __init__(self, names: dict[str, str]) -> None:
        self._names = names

    def list_codes(self) -> Mapping[str, str]:
        return dict(self._names)

    def is_valid(self, code: str) -> bool:
        return code in self._names

    def template(self, code: str, key: str, variables: Mapping[str, str] | None = None) -> str:
        _ = variables
        return f"{code}:{key}"


class _RecordingRepository:
    def __init__(self, *, error: Exception | None = None) -> None:
        self.saved: list[RoomBinding] = []
        self._error = error

    async def load_bindings(self) -> list[RoomBinding]:
        return []

    async def save_binding(self, binding: RoomBinding) -> None:
        self.saved.append(binding)
        if self._error is not None:
            raise self._error


def _build(
    *,
    transport: _RecordingTransport | None = None,
    repository: _RecordingRepository | None = None,
) -> tuple[CommandDispatcher, RoomStateCache, _RecordingTransport, _RecordingRepository]:
    cache = RoomStateCache()
    cache.seed([RoomBinding(room_id=_ROOM, user_id="@alice:example.org")])
    runtime_transport = transport or _RecordingTransport()
    runtime_repository = repository or _RecordingRepository()
    dispatcher = CommandDispatcher(
        bot_user_id=_BOT,
        start_time_ms=_START_MS,
        transport=runtime_transport,
        room_state_cache=cache,
        language_catalog=_StaticCatalog({"en-us": "English", "fr": "French"}),
        binding_repository=runtime_repository,
    )
    return dispatcher, cache, runtime_transport, runtime_repository


def _event(
    body: str,
    *,
    sender: str = "@alice:example.org",
    timestamp_ms: int = _START_MS + 1,
) -> IncomingEvent:
    return IncomingEvent(
        event_type="m.room.message",
        sender_user_id=sender,
        room_id=_ROOM,
        timestamp_ms=timestamp_ms,
        content=TextMessageContent(body=body),
    )


@pytest.mark.asyncio
async def test_events_older_than_start_time_are_discarded() -> None:
    dispatcher, cache, transport, repository = _build()

    handled = await dispatcher.handle(_event("!lang fr", timestamp_ms=_START_MS - 1))

    assert handled is False
    assert cache.language(_ROOM) == "en-us"
    assert transport.sent == []
    assert repository.saved == []


@pytest.mark.asyncio
async def test_events_sent_by_bot_are_discarded() -> None:
    dispatcher, cache, transport, _ = _build()

    handled = await dispatcher.handle(_event("!lang", sender=_BOT))

    assert handled is False
    assert transport.sent == []
    assert cache.language(_ROOM) == "en-us"


@pytest.mark.asyncio
async def test_non_text_content_and_unknown_commands_are_ignored() -> None:
    dispatcher, _, transport, _ = _build()
    other = IncomingEvent(
        event_type="m.room.member",
        sender_user_id="@alice:example.org",
        room_id=_ROOM,
        timestamp_ms=_START_MS + 5,
        content=OtherContent(event_type="m.room.member"),
    )

    assert await dispatcher.handle(other) is False
    assert await dispatcher.handle(_event("!help")) is False
    assert await dispatcher.handle(_event("   ")) is False
    assert transport.sent == []


@pytest.mark.asyncio
async def test_lang_without_arguments_lists_languages_in_plaintext() -> None:
    dispatcher, _, transport, _ = _build()

    handled = await dispatcher.handle(_event("!lang"))

    assert handled is True
    assert len(transport.sent) == 1
    room_id, content = transport.sent[0]
    assert room_id == _ROOM
    assert content["msgtype"] == "m.text"
    assert "formatted_body" not in content
    body = str(content["body"])
    lines = body.splitlines()
    assert lines[0] == "!lang <lang>"
    assert "en-us: English" in lines
    assert "fr: French" in lines


@pytest.mark.asyncio
async def test_lang_with_valid_code_updates_cache_and_persists_once() -> None:
    dispatcher, cache, transport, repository = _build()

    handled = await dispatcher.handle(_event("!lang  fr"))

    assert handled is True
    assert cache.language(_ROOM) == "fr"
    assert repository.saved == [
        RoomBinding(room_id=_ROOM, user_id="@alice:example.org", language="fr")
    ]
    assert transport.sent == []


@pytest.mark.asyncio
async def test_lang_with_invalid_code_leaves_language_unchanged() -> None:
    dispatcher, cache, transport, repository = _build()
    await dispatcher.handle(_event("!lang fr"))

    await dispatcher.handle(_event("!lang xx-yy"))

    assert cache.language(_ROOM) == "fr"
    assert len(repository.saved) == 1
    assert transport.sent == []


@pytest.mark.asyncio
async def test_persistence_failure_keeps_in_memory_language(
    caplog: pytest.LogCaptureFixture,
) -> None:
    repository = _RecordingRepository(error=RuntimeError("db down"))
    dispatcher, cache, _, _ = _build(repository=repository)

    with caplog.at_level(logging.ERROR):
        handled = await dispatcher.handle(_event("!lang fr"))

    assert handled is True
    assert cache.language(_ROOM) == "fr"
    assert "room_binding_store_failed" in caplog.text


@pytest.mark.asyncio
async def test_lang_on_unpaired_room_does_not_persist() -> None:
    dispatcher, cache, _, repository = _build()
    event = IncomingEvent(
        event_type="m.room.message",
        sender_user_id="@bob:example.org",
        room_id="!pending:example.org",
        timestamp_ms=_START_MS + 1,
        content=TextMessageContent(body="!lang fr"),
    )

    await dispatcher.handle(event)

    assert cache.language("!pending:example.org") == "fr"
    assert repository.saved == []


@pytest.mark.asyncio
async def test_list_reply_failure_is_logged_not_raised(
    caplog: pytest.LogCaptureFixture,
) -> None:
    dispatcher, _, _, _ = _build(transport=_RecordingTransport(error=RuntimeError("boom")))

    with caplog.at_level(logging.ERROR):
        handled = await dispatcher.handle(_event("!lang"))

    assert handled is True
    assert "lang_list_reply_failed" in caplog.text
