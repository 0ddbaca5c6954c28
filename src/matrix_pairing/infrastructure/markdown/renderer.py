"""markdown-it based renderer producing Matrix `formatted_body` HTML."""

from __future__ import annotations

from markdown_it import MarkdownIt


class MarkdownItRenderer:
    """CommonMark renderer with tables and strikethrough enabled, raw HTML disabled."""

    def __init__(self) -> None:
        self._md = MarkdownIt("commonmark", {"html": False, "linkify": False}).enable(
            ["table", "strikethrough"]
        )

    def render(self, source: str) -> str:
        return self._md.render(source).strip()
