"""Rendered Matrix `m.room.message` content."""

from __future__ import annotations

from dataclasses import dataclass

HTML_FORMAT = "org.matrix.custom.html"


@dataclass(frozen=True)
class MessageContent:
    """Text body with optional HTML rendering."""

    body: str
    formatted_body: str | None = None
    msgtype: str = "m.text"

    def to_payload(self) -> dict[str, object]:
        """Return the Matrix event content dictionary."""

        payload: dict[str, object] = {"msgtype": self.msgtype, "body": self.body}
        if self.formatted_body:
            payload["format"] = HTML_FORMAT
            payload["formatted_body"] = self.formatted_body
        return payload
