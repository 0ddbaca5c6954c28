"""FastAPI router exposing pairing and notification operations to the account system."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Header, HTTPException

from matrix_pairing.application.dto.notification_models import (
    OkResponse,
    PendingPairingResponse,
    SendNotificationRequest,
    StartPairingRequest,
    VerifyPairingRequest,
)
from matrix_pairing.application.services.message_router import DeliveryError
from matrix_pairing.application.services.pairing_daemon import (
    DaemonStoppedError,
    PairingDaemon,
    PairingNotFoundError,
    PairingNotVerifiedError,
)
from matrix_pairing.domain.room_binding import PendingToken
from matrix_pairing.infrastructure.http.auth_guard import (
    ApiTokenGuard,
    InvalidAuthTokenError,
    MissingAuthTokenError,
)


def build_pairing_router(*, daemon: PairingDaemon, auth_guard: ApiTokenGuard) -> APIRouter:
    """Build router for pairing start, PIN verification, binding, and notifications."""

    router = APIRouter(prefix="/matrix", tags=["matrix"])

    def _require_caller(authorization: str | None) -> None:
        try:
            auth_guard.require_caller(authorization_header=authorization)
        except (MissingAuthTokenError, InvalidAuthTokenError) as error:
            raise HTTPException(status_code=401, detail=str(error)) from error

    def _require_running() -> None:
        if not daemon.is_running:
            raise HTTPException(status_code=503, detail="daemon stopped")

    @router.post("/pairings", response_model=OkResponse)
    async def start_pairing(
        payload: StartPairingRequest,
        authorization: Annotated[str | None, Header()] = None,
    ) -> OkResponse:
        _require_caller(authorization)
        _require_running()
        if not await daemon.send_start(payload.user_id):
            raise HTTPException(status_code=502, detail="pairing failed")
        return OkResponse(ok=True)

    @router.get("/pairings/{pin}", response_model=PendingPairingResponse)
    async def get_pairing(
        pin: str,
        authorization: Annotated[str | None, Header()] = None,
    ) -> PendingPairingResponse:
        _require_caller(authorization)
        token = daemon.pairing_registry.lookup(pin)
        if token is None:
            raise HTTPException(status_code=404, detail="pin not found")
        return _to_pending_response(token)

    @router.post("/pairings/{pin}/verify", response_model=PendingPairingResponse)
    async def verify_pairing(
        pin: str,
        payload: VerifyPairingRequest,
        authorization: Annotated[str | None, Header()] = None,
    ) -> PendingPairingResponse:
        _require_caller(authorization)
        if daemon.pairing_registry.lookup(pin) is None:
            raise HTTPException(status_code=404, detail="pin not found")
        token = daemon.pairing_registry.mark_verified(pin, user_id=payload.user_id)
        if token is None:
            raise HTTPException(status_code=409, detail="pin issued to another user")
        return _to_pending_response(token)

    @router.post("/pairings/{pin}/bind", response_model=OkResponse)
    async def bind_pairing(
        pin: str,
        authorization: Annotated[str | None, Header()] = None,
    ) -> OkResponse:
        _require_caller(authorization)
        try:
            await daemon.complete_pairing(pin)
        except PairingNotFoundError as error:
            raise HTTPException(status_code=404, detail="pin not found") from error
        except PairingNotVerifiedError as error:
            raise HTTPException(status_code=409, detail="pin not verified") from error
        return OkResponse(ok=True)

    @router.post("/notifications", response_model=OkResponse)
    async def send_notification(
        payload: SendNotificationRequest,
        authorization: Annotated[str | None, Header()] = None,
    ) -> OkResponse:
        _require_caller(authorization)
        bindings = [recipient.to_binding() for recipient in payload.recipients]
        try:
            await daemon.send(payload.message, *bindings)
        except DaemonStoppedError as error:
            raise HTTPException(status_code=503, detail="daemon stopped") from error
        except DeliveryError as error:
            raise HTTPException(
                status_code=502,
                detail={"failed_room_ids": error.failed_room_ids},
            ) from error
        return OkResponse(ok=True)

    return router


def _to_pending_response(token: PendingToken) -> PendingPairingResponse:
    return PendingPairingResponse(
        pin=token.pin,
        verified=token.verified,
        user_id=token.binding.user_id,
        room_id=token.binding.room_id,
        language=token.binding.language,
        encrypted=token.binding.encrypted,
    )
