"""Concrete Matrix HTTP adapter for login, room creation, messaging, and sync."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Protocol
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen
from uuid import uuid4

LOGIN_PASSWORD_TYPE = "m.login.password"
USER_IDENTIFIER_TYPE = "m.id.user"


@dataclass(frozen=True)
class MatrixHttpResponse:
    """Normalized HTTP response data returned by transport implementations."""

    status_code: int
    body_bytes: bytes


class MatrixHttpTransportPort(Protocol):
    """Transport protocol used by Matrix HTTP adapter."""

    async def request(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> MatrixHttpResponse:
        """Execute one HTTP request and return normalized response data."""


class MatrixAdapterError(RuntimeError):
    """Raised for normalized Matrix adapter failures."""


@dataclass(frozen=True)
class MatrixLoginResult:
    """Credentials returned by a successful password login."""

    user_id: str
    access_token: str
    device_id: str | None


class UrllibMatrixHttpTransport:
    """urllib-based async transport implementation for Matrix HTTP calls."""

    async def request(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> MatrixHttpResponse:
        """Execute HTTP request in a worker thread and normalize HTTP errors."""

        return await asyncio.to_thread(
            self._request_sync,
            method=method,
            url=url,
            headers=headers,
            body=body,
            timeout_seconds=timeout_seconds,
        )

    def _request_sync(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> MatrixHttpResponse:
        request = Request(url=url, data=body, headers=headers, method=method)
        try:
            with urlopen(request, timeout=timeout_seconds) as response:
                status_code = int(response.getcode())
                payload = response.read()
                return MatrixHttpResponse(status_code=status_code, body_bytes=payload)
        except HTTPError as error:
            payload = error.read()
            return MatrixHttpResponse(status_code=int(error.code), body_bytes=payload)
        except URLError as error:
            raise MatrixAdapterError(f"transport connection failure: {error}") from error


class MatrixHttpClient:
    """Matrix client-server API adapter used by the pairing daemon."""

    def __init__(
        self,
        *,
        homeserver_url: str,
        access_token: str | None = None,
        transport: MatrixHttpTransportPort | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._homeserver_url = homeserver_url.rstrip("/")
        self._access_token = access_token
        self._transport = transport or UrllibMatrixHttpTransport()
        self._timeout_seconds = timeout_seconds
        self._closed = False

    @property
    def access_token(self) -> str | None:
        return self._access_token

    async def login(
        self,
        *,
        username: str,
        password: str,
        device_id: str | None = None,
    ) -> MatrixLoginResult:
        """Exchange username/password for an access token and keep it for later calls."""

        payload: dict[str, object] = {
            "type": LOGIN_PASSWORD_TYPE,
            "identifier": {"type": USER_IDENTIFIER_TYPE, "user": username},
            "password": password,
        }
        if device_id:
            payload["device_id"] = device_id
        response = await self._request_json(
            operation="login",
            method="POST",
            path="/_matrix/client/v3/login",
            payload=payload,
            authenticated=False,
        )
        access_token = response.get("access_token")
        user_id = response.get("user_id")
        if not isinstance(access_token, str) or not access_token:
            raise MatrixAdapterError("login response missing access_token")
        if not isinstance(user_id, str) or not user_id:
            raise MatrixAdapterError("login response missing user_id")
        raw_device_id = response.get("device_id")
        self._access_token = access_token
        return MatrixLoginResult(
            user_id=user_id,
            access_token=access_token,
            device_id=raw_device_id if isinstance(raw_device_id, str) else None,
        )

    async def create_direct_room(self, *, invitee_user_id: str, topic: str) -> str:
        """Create a private direct room inviting one user and return its room id."""

        payload: dict[str, object] = {
            "visibility": "private",
            "preset": "private_chat",
            "invite": [invitee_user_id],
            "is_direct": True,
        }
        if topic:
            payload["topic"] = topic
        response = await self._request_json(
            operation="create_direct_room",
            method="POST",
            path="/_matrix/client/v3/createRoom",
            payload=payload,
        )
        room_id = response.get("room_id")
        if isinstance(room_id, str) and room_id:
            return room_id
        raise MatrixAdapterError("create_direct_room response missing room_id")

    async def send_message(self, *, room_id: str, content: dict[str, object]) -> str:
        """Send `m.room.message` content to room and return created Matrix event id."""

        return await self.send_event(
            room_id=room_id,
            event_type="m.room.message",
            content=content,
        )

    async def send_event(
        self,
        *,
        room_id: str,
        event_type: str,
        content: dict[str, object],
    ) -> str:
        """Send any room event and return created Matrix event id."""

        txn_id = _new_txn_id()
        path = (
            "/_matrix/client/v3/rooms/"
            f"{quote(room_id, safe='')}/send/{quote(event_type, safe='')}/{quote(txn_id, safe='')}"
        )
        response = await self._request_json(
            operation="send_event",
            method="PUT",
            path=path,
            payload=content,
        )
        return _extract_event_id(response=response, operation="send_event")

    async def sync(self, *, since: str | None, timeout_ms: int) -> dict[str, object]:
        """Fetch Matrix sync response for timeline polling."""

        query: dict[str, str] = {"timeout": str(timeout_ms)}
        if since is not None and since:
            query["since"] = since
        path = f"/_matrix/client/v3/sync?{urlencode(query)}"
        return await self._request_json(
            operation="sync",
            method="GET",
            path=path,
            payload=None,
        )

    async def close(self) -> None:
        """Mark the client closed so later requests fail fast.

        A request already running in its worker thread is not interrupted.
        """

        self._closed = True

    async def _request_json(
        self,
        *,
        operation: str,
        method: str,
        path: str,
        payload: dict[str, object] | None,
        authenticated: bool = True,
    ) -> dict[str, object]:
        body = (
            json.dumps(payload, ensure_ascii=False).encode("utf-8")
            if payload is not None
            else None
        )
        response = await self._request_bytes(
            operation=operation,
            method=method,
            path=path,
            body=body,
            content_type="application/json" if payload is not None else None,
            authenticated=authenticated,
        )
        try:
            decoded = json.loads(response.body_bytes.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as error:
            raise MatrixAdapterError(f"{operation} returned invalid JSON payload") from error
        if not isinstance(decoded, dict):
            raise MatrixAdapterError(f"{operation} returned non-object JSON payload")
        return decoded

    async def _request_bytes(
        self,
        *,
        operation: str,
        method: str,
        path: str,
        body: bytes | None,
        content_type: str | None,
        authenticated: bool,
    ) -> MatrixHttpResponse:
        if self._closed:
            raise MatrixAdapterError(f"{operation} attempted on closed client")

        headers: dict[str, str] = {}
        if authenticated:
            if not self._access_token:
                raise MatrixAdapterError(f"{operation} requires an access token")
            headers["Authorization"] = f"Bearer {self._access_token}"
        if content_type is not None:
            headers["Content-Type"] = content_type

        url = f"{self._homeserver_url}{path}"
        try:
            response = await self._transport.request(
                method=method,
                url=url,
                headers=headers,
                body=body,
                timeout_seconds=self._timeout_seconds,
            )
        except Exception as error:  # noqa: BLE001
            raise MatrixAdapterError(f"{operation} transport failure") from error

        if response.status_code < 200 or response.status_code >= 300:
            details = _decode_error_payload(response.body_bytes)
            raise MatrixAdapterError(
                f"{operation} failed with status {response.status_code}: {details}"
            )

        return response


def _new_txn_id() -> str:
    return uuid4().hex


def _extract_event_id(*, response: dict[str, object], operation: str) -> str:
    event_id = response.get("event_id")
    if isinstance(event_id, str) and event_id:
        return event_id
    raise MatrixAdapterError(f"{operation} response missing event_id")


def _decode_error_payload(payload: bytes) -> str:
    if not payload:
        return "empty response body"
    try:
        decoded = payload.decode("utf-8")
    except UnicodeDecodeError:
        return "<binary>"
    return decoded[:200]
