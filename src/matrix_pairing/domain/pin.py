"""Pairing PIN generation."""

from __future__ import annotations

import secrets
import string

PIN_ALPHABET = string.ascii_uppercase + string.digits
_GROUP_SIZE = 2
_GROUP_COUNT = 3


def generate_pin() -> str:
    """Return a random PIN formatted as three dash-separated pairs, e.g. `K4-7Q-ZP`."""

    groups = (
        "".join(secrets.choice(PIN_ALPHABET) for _ in range(_GROUP_SIZE))
        for _ in range(_GROUP_COUNT)
    )
    return "-".join(groups)
