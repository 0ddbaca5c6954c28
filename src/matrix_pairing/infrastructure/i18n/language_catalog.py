"""Language catalog loaded from JSON files, one file per language code."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from matrix_pairing.application.ports.language_catalog_port import LanguageCatalogError

DEFAULT_LANG_DIR = Path(__file__).resolve().parents[2] / "lang"
_PLACEHOLDER_PATTERN = re.compile(r"\{(\w+)\}")
logger = logging.getLogger(__name__)


class LanguageMeta(BaseModel):
    """Display metadata for one language file."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)


class LanguageFile(BaseModel):
    """Schema of a language JSON file."""

    model_config = ConfigDict(extra="ignore")

    meta: LanguageMeta
    strings: dict[str, str]


class JsonLanguageCatalog:
    """Read-only catalog of localized strings keyed by language code."""

    def __init__(self, languages: Mapping[str, LanguageFile]) -> None:
        self._languages = dict(sorted(languages.items()))

    @classmethod
    def from_directory(cls, directory: Path = DEFAULT_LANG_DIR) -> JsonLanguageCatalog:
        """Load every `<code>.json` file in a directory."""

        languages: dict[str, LanguageFile] = {}
        for path in sorted(directory.glob("*.json")):
            try:
                raw = json.loads(path.read_text(encoding="utf-8"))
                languages[path.stem] = LanguageFile.model_validate(raw)
            except (OSError, json.JSONDecodeError, ValidationError) as error:
                raise LanguageCatalogError(f"invalid language file {path.name}: {error}") from error
        if not languages:
            raise LanguageCatalogError(f"no language files found in {directory}")
        logger.info("language_catalog_loaded directory=%s codes=%s", directory, len(languages))
        return cls(languages)

    def list_codes(self) -> Mapping[str, str]:
        return {code: language.meta.name for code, language in self._languages.items()}

    def is_valid(self, code: str) -> bool:
        return code in self._languages

    def template(self, code: str, key: str, variables: Mapping[str, str] | None = None) -> str:
        language = self._languages.get(code)
        if language is None:
            raise LanguageCatalogError(f"unknown language code: {code}")
        text = language.strings.get(key)
        if text is None:
            raise LanguageCatalogError(f"missing string {key!r} for language {code}")
        if not variables:
            return text
        return _PLACEHOLDER_PATTERN.sub(
            lambda match: variables.get(match.group(1), match.group(0)),
            text,
        )
