"""Bearer-token guard for the account-system API."""

from __future__ import annotations

import hmac


class MissingAuthTokenError(PermissionError):
    """Raised when a bearer token is required but not provided."""


class InvalidAuthTokenError(PermissionError):
    """Raised when the bearer token header is malformed or does not match."""


def extract_bearer_token(authorization_header: str | None) -> str:
    """Extract opaque token from standard `Authorization: Bearer <token>` header."""

    if authorization_header is None or not authorization_header.strip():
        raise MissingAuthTokenError("missing bearer token")

    parts = authorization_header.strip().split()
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise InvalidAuthTokenError("invalid bearer token header")

    return parts[1]


class ApiTokenGuard:
    """Compare caller bearer tokens with the shared API token in constant time."""

    def __init__(self, *, api_token: str) -> None:
        self._api_token = api_token.encode("utf-8")

    def require_caller(self, *, authorization_header: str | None) -> None:
        token = extract_bearer_token(authorization_header)
        if not hmac.compare_digest(token.encode("utf-8"), self._api_token):
            raise InvalidAuthTokenError("bearer token rejected")
