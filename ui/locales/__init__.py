"""UI string tables: one ``<code>.json`` per language next to this module.

A language file only needs the keys it translates; anything missing is
taken from English section by section.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Dict

LOCALES_DIR = Path(__file__).resolve().parent
DEFAULT_LANGUAGE = "en"


@lru_cache(maxsize=1)
def _codes() -> frozenset:
    return frozenset(path.stem for path in LOCALES_DIR.glob("*.json"))


def available_languages() -> Dict[str, str]:
    """``{code: display name}`` for every shipped locale."""
    return {
        code: load_locale(code).get("_meta", {}).get("display_name", code)
        for code in sorted(_codes())
    }


def ensure_language(language: str) -> str:
    codes = _codes()
    if language in codes:
        return language
    if DEFAULT_LANGUAGE in codes or not codes:
        return DEFAULT_LANGUAGE
    return min(codes)


@lru_cache(maxsize=None)
def load_locale(language: str) -> dict:
    path = LOCALES_DIR / f"{ensure_language(language)}.json"
    with path.open(encoding="utf-8") as f:
        return json.load(f)


def get_section(language: str, section: str) -> dict:
    """Strings of one UI section, English keys filling the gaps."""
    language = ensure_language(language)
    merged = dict(load_locale(DEFAULT_LANGUAGE).get(section) or {})
    if language != DEFAULT_LANGUAGE:
        merged.update(load_locale(language).get(section) or {})
    return merged


def format_message(strings: dict, key: str, **kwargs) -> str:
    value = strings.get(key, "")
    try:
        return value.format(**kwargs)
    except (KeyError, IndexError, ValueError):
        return value
