"""Filter incoming room events and run bot commands."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from matrix_pairing.application.ports.language_catalog_port import LanguageCatalogPort
from matrix_pairing.application.ports.matrix_transport_port import MatrixTransportPort
from matrix_pairing.application.ports.room_binding_repository_port import (
    RoomBindingRepositoryPort,
)
from matrix_pairing.application.services.room_state_cache import RoomStateCache
from matrix_pairing.domain.command_parser import LANG_COMMAND, parse_command
from matrix_pairing.domain.incoming_event import IncomingEvent, TextMessageContent
from matrix_pairing.domain.message_content import MessageContent
from matrix_pairing.domain.room_binding import DEFAULT_LANGUAGE

CommandHandler = Callable[[IncomingEvent, tuple[str, ...], str], Awaitable[None]]
logger = logging.getLogger(__name__)


class CommandDispatcher:
    """Drop backlog and self-sent events, then route text commands to handlers."""

    def __init__(
        self,
        *,
        bot_user_id: str,
        start_time_ms: int,
        transport: MatrixTransportPort,
        room_state_cache: RoomStateCache,
        language_catalog: LanguageCatalogPort,
        binding_repository: RoomBindingRepositoryPort,
    ) -> None:
        self._bot_user_id = bot_user_id
        self._start_time_ms = start_time_ms
        self._transport = transport
        self._room_state_cache = room_state_cache
        self._language_catalog = language_catalog
        self._binding_repository = binding_repository
        self._handlers: dict[str, CommandHandler] = {
            LANG_COMMAND: self._command_lang,
        }

    @property
    def commands(self) -> frozenset[str]:
        return frozenset(self._handlers)

    async def handle(self, event: IncomingEvent) -> bool:
        """Process one event and return whether a command handler ran."""

        if event.timestamp_ms < self._start_time_ms:
            return False
        if event.sender_user_id == self._bot_user_id:
            return False
        if not isinstance(event.content, TextMessageContent):
            return False

        parsed = parse_command(event.content.body)
        if parsed is None:
            return False
        handler = self._handlers.get(parsed.name)
        if handler is None:
            return False

        logger.info(
            "command_received command=%s room_id=%s sender_user_id=%s",
            parsed.name,
            event.room_id,
            event.sender_user_id,
        )
        await handler(event, parsed.args, self._room_language(event.room_id))
        return True

    def _room_language(self, room_id: str) -> str:
        cached = self._room_state_cache.language(room_id)
        if cached is not None and self._language_catalog.is_valid(cached):
            return cached
        return DEFAULT_LANGUAGE

    async def _command_lang(
        self,
        event: IncomingEvent,
        args: tuple[str, ...],
        language: str,
    ) -> None:
        _ = language
        if len(args) != 1:
            await self._reply_language_list(event)
            return

        code = args[0]
        if not self._language_catalog.is_valid(code):
            logger.debug("lang_command_unknown_code room_id=%s code=%s", event.room_id, code)
            return

        binding = self._room_state_cache.set_language(event.room_id, code)
        logger.info("room_language_changed room_id=%s language=%s", event.room_id, code)
        if binding is None:
            return
        try:
            await self._binding_repository.save_binding(binding)
        except Exception as error:  # noqa: BLE001
            logger.error(
                "room_binding_store_failed room_id=%s language=%s error=%s",
                event.room_id,
                code,
                error,
            )

    async def _reply_language_list(self, event: IncomingEvent) -> None:
        lines = [f"{LANG_COMMAND} <lang>"]
        for code, name in self._language_catalog.list_codes().items():
            lines.append(f"{code}: {name}")
        content = MessageContent(body="\n".join(lines) + "\n")
        try:
            await self._transport.send_message(
                room_id=event.room_id,
                content=content.to_payload(),
            )
        except Exception as error:  # noqa: BLE001
            logger.error(
                "lang_list_reply_failed room_id=%s sender_user_id=%s error=%s",
                event.room_id,
                event.sender_user_id,
                error,
            )
