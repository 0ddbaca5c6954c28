"""Synchronized registry of pending pairing tokens keyed by PIN."""

from __future__ import annotations

import threading
from collections.abc import Callable

from matrix_pairing.domain.pin import generate_pin
from matrix_pairing.domain.room_binding import PendingToken, RoomBinding

PinGenerator = Callable[[], str]


class PairingRegistry:
    """Issue PINs for new pairings and expose lookups to the account-linking flow.

    Tokens are never expired or removed here. Whether a PIN is single-use is
    decided by the external account-linking flow.
    """

    def __init__(self, *, pin_generator: PinGenerator = generate_pin) -> None:
        self._lock = threading.Lock()
        self._tokens: dict[str, PendingToken] = {}
        self._pin_generator = pin_generator

    def issue(self, binding: RoomBinding) -> PendingToken:
        """Store an unverified token for the binding under a PIN not already pending."""

        with self._lock:
            pin = self._pin_generator()
            while pin in self._tokens:
                pin = self._pin_generator()
            token = PendingToken(pin=pin, verified=False, binding=binding)
            self._tokens[pin] = token
            return token

    def lookup(self, pin: str) -> PendingToken | None:
        with self._lock:
            return self._tokens.get(pin)

    def mark_verified(self, pin: str, *, user_id: str) -> PendingToken | None:
        """Flag the token as verified when `user_id` owns it; return None otherwise."""

        with self._lock:
            token = self._tokens.get(pin)
            if token is None or token.binding.user_id != user_id:
                return None
            verified = PendingToken(pin=token.pin, verified=True, binding=token.binding)
            self._tokens[pin] = verified
            return verified

    def pending_count(self) -> int:
        with self._lock:
            return len(self._tokens)

    def __contains__(self, pin: object) -> bool:
        with self._lock:
            return pin in self._tokens
