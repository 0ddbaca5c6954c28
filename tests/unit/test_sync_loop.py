from __future__ import annotations

import asyncio
import logging

import pytest

from matrix_pairing.application.services.sync_loop import SyncLoop
from matrix_pairing.domain.incoming_event import IncomingEvent
from matrix_pairing.infrastructure.matrix.http_client import MatrixAdapterError


def _payload(next_batch: str, *bodies: str) -> dict[str, object]:
    return {
        "next_batch": next_batch,
        "rooms": {
            "join": {
                "!room:example.org": {
                    "timeline": {
                        "events": [
                            {
                                "type": "m.room.message",
                                "sender": "@alice:example.org",
                                "origin_server_ts": 10 + index,
                                "content": {"msgtype": "m.text", "body": body},
                            }
                            for index, body in enumerate(bodies)
                        ]
                    }
                }
            }
        },
    }


class _ScriptedTransport:
    def __init__(self, responses: list[dict[str, object] | Exception], stop_event: asyncio.Event):
        self._responses = responses
        self._stop_event = stop_event
        self.since_values: list[str | None] = []

    async def sync(self, *, since: str | None, timeout_ms: int) -> dict[str, object]:
        _ = timeout_ms
        self.since_values.append(since)
        if not self._responses:
            self._stop_event.set()
            return {}
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class _HangingTransport:
    def __init__(self) -> None:
        self.cancelled = False

    async def sync(self, *, since: str | None, timeout_ms: int) -> dict[str, object]:
        _ = since, timeout_ms
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return {}


class _RecordingHandler:
    def __init__(self, *, fail_on: str | None = None) -> None:
        self.bodies: list[str] = []
        self._fail_on = fail_on

    async def handle(self, event: IncomingEvent) -> bool:
        body = getattr(event.content, "body", "")
        if body == self._fail_on:
            raise RuntimeError("handler exploded")
        self.bodies.append(body)
        return body.startswith("!")


@pytest.mark.asyncio
async def test_run_dispatches_events_in_order_and_carries_next_batch() -> None:
    stop_event = asyncio.Event()
    transport = _ScriptedTransport(
        [_payload("s1", "!lang", "hello"), _payload("s2", "!lang fr")],
        stop_event,
    )
    handler = _RecordingHandler()
    loop = SyncLoop(transport=transport, handler=handler, stop_event=stop_event)

    assert await loop.run() is True

    assert handler.bodies == ["!lang", "hello", "!lang fr"]
    assert transport.since_values == [None, "s1", "s2"]
    assert loop.since_token == "s2"


@pytest.mark.asyncio
async def test_transport_failure_ends_loop(caplog: pytest.LogCaptureFixture) -> None:
    stop_event = asyncio.Event()
    transport = _ScriptedTransport(
        [_payload("s1", "!lang"), MatrixAdapterError("sync failed with status 500")],
        stop_event,
    )
    handler = _RecordingHandler()
    loop = SyncLoop(transport=transport, handler=handler, stop_event=stop_event)

    with caplog.at_level(logging.ERROR):
        assert await loop.run() is False

    assert handler.bodies == ["!lang"]
    assert len(transport.since_values) == 2
    assert "sync_loop_transport_failed" in caplog.text


@pytest.mark.asyncio
async def test_handler_error_does_not_stop_loop() -> None:
    stop_event = asyncio.Event()
    transport = _ScriptedTransport([_payload("s1", "boom", "!lang")], stop_event)
    handler = _RecordingHandler(fail_on="boom")
    loop = SyncLoop(transport=transport, handler=handler, stop_event=stop_event)

    assert await loop.run() is True
    assert handler.bodies == ["!lang"]


@pytest.mark.asyncio
async def test_stop_event_cancels_in_flight_long_poll() -> None:
    stop_event = asyncio.Event()
    transport = _HangingTransport()
    loop = SyncLoop(transport=transport, handler=_RecordingHandler(), stop_event=stop_event)
    run_task = asyncio.create_task(loop.run())
    await asyncio.sleep(0.01)

    stop_event.set()

    assert await asyncio.wait_for(run_task, timeout=1) is True
    assert transport.cancelled is True
