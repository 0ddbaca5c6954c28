"""Port for markdown-to-HTML rendering."""

from __future__ import annotations

from typing import Protocol


class MarkdownRendererPort(Protocol):
    """Render markdown source into Matrix-compatible HTML."""

    def render(self, source: str) -> str:
        """Return HTML markup for markdown source text."""
