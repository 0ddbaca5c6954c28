from __future__ import annotations

import json
from pathlib import Path

import pytest

from matrix_pairing.application.ports.language_catalog_port import LanguageCatalogError
from matrix_pairing.infrastructure.i18n.language_catalog import JsonLanguageCatalog


def _write_language(directory: Path, code: str, name: str, strings: dict[str, str]) -> None:
    (directory / f"{code}.json").write_text(
        json.dumps({"meta": {"name": name}, "strings": strings}),
        encoding="utf-8",
    )


def test_bundled_catalog_has_default_language_and_welcome_strings() -> None:
    catalog = JsonLanguageCatalog.from_directory()

    assert catalog.is_valid("en-us")
    assert "en-us" in catalog.list_codes()
    assert catalog.template("en-us", "matrixStartMessage")
    assert "!lang" in catalog.template("en-us", "languageMessage", {"command": "!lang"})


def test_from_directory_lists_codes_sorted_with_display_names(tmp_path: Path) -> None:
    _write_language(tmp_path, "fr", "French", {"hello": "Bonjour"})
    _write_language(tmp_path, "en-us", "English", {"hello": "Hello"})

    catalog = JsonLanguageCatalog.from_directory(tmp_path)

    assert list(catalog.list_codes().items()) == [("en-us", "English"), ("fr", "French")]
    assert catalog.is_valid("fr")
    assert not catalog.is_valid("de")


def test_template_substitutes_known_placeholders_only(tmp_path: Path) -> None:
    _write_language(tmp_path, "en-us", "English", {"hint": "Use {command} or {other}."})
    catalog = JsonLanguageCatalog.from_directory(tmp_path)

    assert catalog.template("en-us", "hint", {"command": "!lang"}) == "Use !lang or {other}."
    assert catalog.template("en-us", "hint") == "Use {command} or {other}."


def test_template_unknown_code_or_key_raises(tmp_path: Path) -> None:
    _write_language(tmp_path, "en-us", "English", {"hello": "Hello"})
    catalog = JsonLanguageCatalog.from_directory(tmp_path)

    with pytest.raises(LanguageCatalogError):
        catalog.template("fr", "hello")
    with pytest.raises(LanguageCatalogError):
        catalog.template("en-us", "missing")


def test_invalid_or_empty_directory_raises(tmp_path: Path) -> None:
    with pytest.raises(LanguageCatalogError):
        JsonLanguageCatalog.from_directory(tmp_path)

    (tmp_path / "xx.json").write_text('{"strings": {}}', encoding="utf-8")
    with pytest.raises(LanguageCatalogError):
        JsonLanguageCatalog.from_directory(tmp_path)
