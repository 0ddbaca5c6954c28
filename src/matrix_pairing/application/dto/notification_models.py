"""Pydantic models for the account-system pairing and notification API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from matrix_pairing.domain.room_binding import DEFAULT_LANGUAGE, RoomBinding


class StrictModel(BaseModel):
    """Base model with strict unknown-field rejection."""

    model_config = ConfigDict(extra="forbid")


class NotificationMessage(StrictModel):
    """Outbound notification with a plaintext body and optional markdown source."""

    text: str = Field(min_length=1)
    markdown: str | None = None


class RecipientBinding(StrictModel):
    """Paired room a notification should be delivered to."""

    room_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    language: str = DEFAULT_LANGUAGE
    encrypted: bool = False

    def to_binding(self) -> RoomBinding:
        return RoomBinding(
            room_id=self.room_id,
            user_id=self.user_id,
            language=self.language,
            encrypted=self.encrypted,
        )


class SendNotificationRequest(StrictModel):
    """Request body for pushing one message to many paired rooms."""

    message: NotificationMessage
    recipients: list[RecipientBinding] = Field(min_length=1)


class StartPairingRequest(StrictModel):
    """Request body for starting a pairing with a Matrix user."""

    user_id: str = Field(min_length=1)


class VerifyPairingRequest(StrictModel):
    """Request body for confirming that a user supplied their PIN."""

    user_id: str = Field(min_length=1)


class PendingPairingResponse(StrictModel):
    """Public view of a pending pairing token."""

    pin: str
    verified: bool
    user_id: str
    room_id: str
    language: str
    encrypted: bool


class OkResponse(StrictModel):
    """Generic success response."""

    ok: bool
