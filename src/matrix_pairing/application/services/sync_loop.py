"""Long-poll loop feeding Matrix timeline events to the command dispatcher."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from matrix_pairing.application.ports.matrix_transport_port import MatrixTransportPort
from matrix_pairing.domain.incoming_event import IncomingEvent
from matrix_pairing.infrastructure.matrix.http_client import MatrixAdapterError
from matrix_pairing.infrastructure.matrix.sync_events import (
    extract_next_batch_token,
    iter_incoming_events,
)

logger = logging.getLogger(__name__)


class EventHandlerPort(Protocol):
    """Consumer of decoded timeline events."""

    async def handle(self, event: IncomingEvent) -> bool:
        """Process one event and return whether it triggered a command."""


class SyncLoop:
    """Poll `/sync` until stopped; a transport failure ends the loop for good."""

    def __init__(
        self,
        *,
        transport: MatrixTransportPort,
        handler: EventHandlerPort,
        stop_event: asyncio.Event,
        sync_timeout_ms: int = 30_000,
    ) -> None:
        self._transport = transport
        self._handler = handler
        self._stop_event = stop_event
        self._sync_timeout_ms = sync_timeout_ms
        self._since_token: str | None = None

    @property
    def since_token(self) -> str | None:
        return self._since_token

    async def run(self) -> bool:
        """Run until the stop event is set (True) or the transport fails (False)."""

        logger.info("sync_loop_started sync_timeout_ms=%s", self._sync_timeout_ms)
        while not self._stop_event.is_set():
            try:
                payload = await self._poll_until_stopped()
            except MatrixAdapterError as error:
                logger.error("sync_loop_transport_failed error=%s", error)
                return False
            if payload is None:
                break

            self._since_token = extract_next_batch_token(payload, fallback=self._since_token)
            handled_count = await self._dispatch(payload)
            if handled_count:
                logger.info("sync_loop_routed commands=%s", handled_count)
            else:
                logger.debug("sync_loop_idle")

        logger.info("sync_loop_stopped")
        return True

    async def _poll_until_stopped(self) -> dict[str, object] | None:
        sync_task = asyncio.ensure_future(
            self._transport.sync(since=self._since_token, timeout_ms=self._sync_timeout_ms)
        )
        stop_task = asyncio.ensure_future(self._stop_event.wait())
        try:
            done, _ = await asyncio.wait(
                {sync_task, stop_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            sync_task.cancel()
            raise
        finally:
            stop_task.cancel()

        if sync_task not in done:
            sync_task.cancel()
            await asyncio.gather(sync_task, return_exceptions=True)
            return None
        return sync_task.result()

    async def _dispatch(self, payload: dict[str, object]) -> int:
        handled_count = 0
        for event in iter_incoming_events(payload):
            if self._stop_event.is_set():
                break
            try:
                if await self._handler.handle(event):
                    handled_count += 1
            except Exception:  # noqa: BLE001
                logger.exception(
                    "sync_event_handler_failed room_id=%s event_type=%s",
                    event.room_id,
                    event.event_type,
                )
        return handled_count
