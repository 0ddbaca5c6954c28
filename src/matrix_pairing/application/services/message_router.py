"""Render notifications and route them to plaintext or encrypted delivery."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from matrix_pairing.application.dto.notification_models import NotificationMessage
from matrix_pairing.application.ports.encryption_gateway_port import EncryptionGatewayPort
from matrix_pairing.application.ports.markdown_renderer_port import MarkdownRendererPort
from matrix_pairing.application.ports.matrix_transport_port import MatrixTransportPort
from matrix_pairing.application.services.room_state_cache import RoomStateCache
from matrix_pairing.domain.message_content import MessageContent
from matrix_pairing.domain.room_binding import RoomBinding

logger = logging.getLogger(__name__)


class DeliveryError(RuntimeError):
    """Raised after a fan-out send when one or more recipients failed."""

    def __init__(self, failed_room_ids: list[str]) -> None:
        super().__init__(f"delivery failed for rooms: {', '.join(failed_room_ids)}")
        self.failed_room_ids = failed_room_ids


def rewrite_images_as_links(markdown: str) -> str:
    """Turn `![alt](url)` embeds into `[alt](url)` links."""

    return markdown.replace("![", "[")


class MessageRouter:
    """Choose plaintext or encrypted delivery per room from the cached encryption flag."""

    def __init__(
        self,
        *,
        transport: MatrixTransportPort,
        encryption_gateway: EncryptionGatewayPort,
        room_state_cache: RoomStateCache,
        markdown_renderer: MarkdownRendererPort,
    ) -> None:
        self._transport = transport
        self._encryption_gateway = encryption_gateway
        self._room_state_cache = room_state_cache
        self._markdown_renderer = markdown_renderer

    def render(self, message: NotificationMessage) -> MessageContent:
        """Build message content, rendering markdown to HTML when present."""

        formatted_body: str | None = None
        if message.markdown:
            formatted_body = self._markdown_renderer.render(
                rewrite_images_as_links(message.markdown)
            )
        return MessageContent(body=message.text, formatted_body=formatted_body)

    async def send(self, content: MessageContent, room_id: str) -> None:
        """Deliver content to one room using the transport its cached state calls for."""

        payload = content.to_payload()
        if self._room_state_cache.is_encrypted(room_id):
            await self._encryption_gateway.send_encrypted(room_id=room_id, content=payload)
            logger.debug("message_sent_encrypted room_id=%s", room_id)
            return
        await self._transport.send_message(room_id=room_id, content=payload)
        logger.debug("message_sent_plaintext room_id=%s", room_id)

    async def send_to_bindings(
        self,
        content: MessageContent,
        bindings: Iterable[RoomBinding],
    ) -> None:
        """Attempt delivery to every binding, raising `DeliveryError` if any failed."""

        failed_room_ids: list[str] = []
        first_error: Exception | None = None
        for binding in bindings:
            if binding.encrypted:
                self._room_state_cache.register_room(binding.room_id, encrypted=True)
            try:
                await self.send(content, binding.room_id)
            except Exception as error:  # noqa: BLE001
                logger.warning(
                    "message_delivery_failed room_id=%s user_id=%s error=%s",
                    binding.room_id,
                    binding.user_id,
                    error,
                )
                failed_room_ids.append(binding.room_id)
                if first_error is None:
                    first_error = error

        if first_error is not None:
            raise DeliveryError(failed_room_ids) from first_error
