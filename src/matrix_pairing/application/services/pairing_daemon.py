"""Pairing daemon owning room state, pending PINs, routing, and the sync loop."""

from __future__ import annotations

import asyncio
import logging
import time

from matrix_pairing.application.dto.notification_models import NotificationMessage
from matrix_pairing.application.ports.encryption_gateway_port import EncryptionGatewayPort
from matrix_pairing.application.ports.language_catalog_port import LanguageCatalogPort
from matrix_pairing.application.ports.markdown_renderer_port import MarkdownRendererPort
from matrix_pairing.application.ports.matrix_transport_port import MatrixTransportPort
from matrix_pairing.application.ports.room_binding_repository_port import (
    RoomBindingRepositoryPort,
)
from matrix_pairing.application.services.command_dispatcher import CommandDispatcher
from matrix_pairing.application.services.message_router import MessageRouter
from matrix_pairing.application.services.pairing_registry import PairingRegistry, PinGenerator
from matrix_pairing.application.services.room_state_cache import RoomStateCache
from matrix_pairing.application.services.sync_loop import SyncLoop
from matrix_pairing.domain.command_parser import LANG_COMMAND
from matrix_pairing.domain.message_content import MessageContent
from matrix_pairing.domain.pin import generate_pin
from matrix_pairing.domain.room_binding import DEFAULT_LANGUAGE, PendingToken, RoomBinding

logger = logging.getLogger(__name__)


class DaemonStoppedError(RuntimeError):
    """Raised when a send is requested after shutdown."""


class PairingNotFoundError(LookupError):
    """Raised when no pending token exists for a PIN."""


class PairingNotVerifiedError(RuntimeError):
    """Raised when binding a pending token that was never verified."""


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class PairingDaemon:
    """Composition root exposing pairing and notification operations to the account system."""

    def __init__(
        self,
        *,
        bot_user_id: str,
        transport: MatrixTransportPort,
        encryption_gateway: EncryptionGatewayPort,
        binding_repository: RoomBindingRepositoryPort,
        language_catalog: LanguageCatalogPort,
        markdown_renderer: MarkdownRendererPort,
        room_topic: str = "",
        sync_timeout_ms: int = 30_000,
        start_time_ms: int | None = None,
        pin_generator: PinGenerator = generate_pin,
    ) -> None:
        self._bot_user_id = bot_user_id
        self._transport = transport
        self._encryption_gateway = encryption_gateway
        self._binding_repository = binding_repository
        self._language_catalog = language_catalog
        self._room_topic = room_topic
        self._start_time_ms = start_time_ms if start_time_ms is not None else _now_ms()
        self._stop_event = asyncio.Event()
        self._stopped_event = asyncio.Event()
        self._shutting_down = False

        self.room_state_cache = RoomStateCache()
        self.pairing_registry = PairingRegistry(pin_generator=pin_generator)
        self.router = MessageRouter(
            transport=transport,
            encryption_gateway=encryption_gateway,
            room_state_cache=self.room_state_cache,
            markdown_renderer=markdown_renderer,
        )
        self.dispatcher = CommandDispatcher(
            bot_user_id=bot_user_id,
            start_time_ms=self._start_time_ms,
            transport=transport,
            room_state_cache=self.room_state_cache,
            language_catalog=language_catalog,
            binding_repository=binding_repository,
        )
        self.sync_loop = SyncLoop(
            transport=transport,
            handler=self.dispatcher,
            stop_event=self._stop_event,
            sync_timeout_ms=sync_timeout_ms,
        )

    @property
    def start_time_ms(self) -> int:
        return self._start_time_ms

    @property
    def is_running(self) -> bool:
        return not self._shutting_down

    async def load_room_state(self) -> int:
        """Seed the room state cache from persisted bindings."""

        bindings = await self._binding_repository.load_bindings()
        count = self.room_state_cache.seed(bindings)
        logger.info("room_state_seeded rooms=%s", count)
        return count

    async def run(self) -> bool:
        """Drive the sync loop; a transport failure shuts the daemon down."""

        logger.info("pairing_daemon_started bot_user_id=%s", self._bot_user_id)
        healthy = await self.sync_loop.run()
        if not healthy:
            logger.error("pairing_daemon_sync_failed shutting_down=true")
            await self.shutdown()
        return healthy

    async def send_start(self, user_id: str) -> bool:
        """Create a pairing room for the user and send them a PIN; True on success."""

        return await self.start_pairing(user_id) is not None

    async def start_pairing(self, user_id: str) -> PendingToken | None:
        """Run the pairing flow and return the issued token, or None on failure."""

        if not self.is_running:
            logger.error("pairing_start_rejected user_id=%s reason=daemon_stopped", user_id)
            return None

        try:
            room_id = await self._transport.create_direct_room(
                invitee_user_id=user_id,
                topic=self._room_topic,
            )
        except Exception as error:  # noqa: BLE001
            logger.error("pairing_room_create_failed user_id=%s error=%s", user_id, error)
            return None

        encrypted = await self._negotiate_encryption(room_id=room_id, user_id=user_id)
        self.room_state_cache.register_room(room_id, encrypted=encrypted)
        token = self.pairing_registry.issue(
            RoomBinding(
                room_id=room_id,
                user_id=user_id,
                language=DEFAULT_LANGUAGE,
                encrypted=encrypted,
            )
        )
        logger.info(
            "pairing_token_issued user_id=%s room_id=%s encrypted=%s",
            user_id,
            room_id,
            encrypted,
        )

        try:
            welcome = MessageContent(body=self._welcome_body(pin=token.pin))
            await self.router.send(welcome, room_id)
        except Exception as error:  # noqa: BLE001
            logger.error(
                "pairing_welcome_send_failed user_id=%s room_id=%s error=%s",
                user_id,
                room_id,
                error,
            )
            return None

        return token

    async def send(self, message: NotificationMessage, *bindings: RoomBinding) -> None:
        """Render a notification and deliver it to each paired room."""

        if not self.is_running:
            raise DaemonStoppedError("pairing daemon is stopped")
        content = self.router.render(message)
        await self.router.send_to_bindings(content, bindings)

    async def complete_pairing(self, pin: str) -> RoomBinding:
        """Persist the binding of a verified token and start tracking it.

        The token stays in the registry; consuming it is left to the caller.
        """

        token = self.pairing_registry.lookup(pin)
        if token is None:
            raise PairingNotFoundError(pin)
        if not token.verified:
            raise PairingNotVerifiedError(pin)

        room_id = token.binding.room_id
        binding = self.room_state_cache.bind_room(token.binding)
        while True:
            await self._binding_repository.save_binding(binding)
            current = self.room_state_cache.get_binding(room_id)
            if current is None or current == binding:
                break
            # changed by `!lang` while the save was in flight
            binding = current
        logger.info(
            "pairing_binding_stored user_id=%s room_id=%s language=%s",
            binding.user_id,
            binding.room_id,
            binding.language,
        )
        return binding

    async def shutdown(self) -> None:
        """Stop syncing and release collaborators; later calls are no-ops."""

        if self._shutting_down:
            return
        self._shutting_down = True
        logger.info("pairing_daemon_shutdown_started")
        self._stop_event.set()
        try:
            await self._encryption_gateway.close()
        except Exception as error:  # noqa: BLE001
            logger.warning("encryption_gateway_close_failed error=%s", error)
        try:
            await self._transport.close()
        except Exception as error:  # noqa: BLE001
            logger.warning("matrix_transport_close_failed error=%s", error)
        self._stopped_event.set()
        logger.info("pairing_daemon_shutdown_completed")

    async def wait_stopped(self) -> None:
        """Block until shutdown has completed."""

        await self._stopped_event.wait()

    async def _negotiate_encryption(self, *, room_id: str, user_id: str) -> bool:
        try:
            return bool(
                await self._encryption_gateway.enable_encryption(room_id=room_id, user_id=user_id)
            )
        except Exception as error:  # noqa: BLE001
            logger.warning(
                "room_encryption_failed room_id=%s user_id=%s error=%s",
                room_id,
                user_id,
                error,
            )
            return False

    def _welcome_body(self, *, pin: str) -> str:
        catalog = self._language_catalog
        greeting = catalog.template(DEFAULT_LANGUAGE, "matrixStartMessage")
        instructions = catalog.template(
            DEFAULT_LANGUAGE,
            "languageMessage",
            {"command": LANG_COMMAND},
        )
        return f"{greeting}\n\n{pin}\n\n{instructions}"
