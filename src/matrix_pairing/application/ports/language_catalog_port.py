"""Port for localized message strings."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol


class LanguageCatalogError(LookupError):
    """Raised when a language code or string key is not present in the catalog."""


class LanguageCatalogPort(Protocol):
    """Language-string catalog contract."""

    def list_codes(self) -> Mapping[str, str]:
        """Return language codes mapped to display names."""

    def is_valid(self, code: str) -> bool:
        """Return whether the language code is known."""

    def template(self, code: str, key: str, variables: Mapping[str, str] | None = None) -> str:
        """Return the string for `key` in `code` with `{name}` placeholders substituted."""
