"""Whitespace command parsing for room text messages."""

from __future__ import annotations

from dataclasses import dataclass

LANG_COMMAND = "!lang"


@dataclass(frozen=True)
class ParsedCommand:
    """Command name and its positional arguments."""

    name: str
    args: tuple[str, ...]


def parse_command(body: str) -> ParsedCommand | None:
    """Split a message body on whitespace, returning None for empty bodies."""

    tokens = body.split()
    if not tokens:
        return None
    return ParsedCommand(name=tokens[0], args=tuple(tokens[1:]))
