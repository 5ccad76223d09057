"""Translation catalogues backed by JSON resources in ``kapitalen.translations``."""

from __future__ import annotations

import json
from dataclasses import dataclass
from functools import cache
from importlib import resources
from typing import Any, Mapping

_BASE_LOCALE = "en"
_TRANSLATIONS_PACKAGE = "kapitalen.translations"

# Browsers commonly send the macro-language or Nynorsk tags for Norwegian.
_LOCALE_ALIASES = {"no": "nb", "nn": "nb"}


@dataclass(frozen=True)
class Translator:
    """Callable lookup of localised labels with an English fallback."""

    locale: str
    _messages: Mapping[str, str]
    _fallback: Mapping[str, str]

    def __call__(self, key: str, **params: Any) -> str:
        template = self._messages.get(key) or self._fallback.get(key, key)
        if not params:
            return template
        try:
            return template.format(**params)
        except (KeyError, IndexError, ValueError):
            return template


@cache
def available_locales() -> tuple[str, ...]:
    root = resources.files(_TRANSLATIONS_PACKAGE)
    locales = sorted(
        entry.name[: -len(".json")]
        for entry in root.iterdir()
        if entry.name.endswith(".json")
    )
    return tuple(locales) or (_BASE_LOCALE,)


@cache
def _load_messages(locale: str) -> Mapping[str, str]:
    resource = resources.files(_TRANSLATIONS_PACKAGE).joinpath(f"{locale}.json")
    if not resource.is_file():
        return {}

    with resource.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)

    messages = payload.get("messages") if isinstance(payload, dict) else None
    if not isinstance(messages, dict):
        return {}
    return {str(key): str(value) for key, value in messages.items()}


def normalise_locale(locale: str | None) -> str:
    """Map a locale hint such as ``nb-NO`` onto a published catalogue."""

    if not locale:
        return _BASE_LOCALE

    primary = locale.strip().lower().replace("_", "-").split("-")[0]
    primary = _LOCALE_ALIASES.get(primary, primary)
    return primary if primary in available_locales() else _BASE_LOCALE


def get_translator(locale: str | None = None) -> Translator:
    normalized = normalise_locale(locale)
    return Translator(
        locale=normalized,
        _messages=_load_messages(normalized),
        _fallback=_load_messages(_BASE_LOCALE),
    )


def load_translations(locale: str | None = None) -> dict[str, Any]:
    """Return the catalogue for ``locale`` together with the fallback."""

    normalized = normalise_locale(locale)
    return {
        "locale": normalized,
        "available_locales": list(available_locales()),
        "messages": dict(_load_messages(normalized)),
        "fallback": {
            "locale": _BASE_LOCALE,
            "messages": dict(_load_messages(_BASE_LOCALE)),
        },
    }


__all__ = [
    "Translator",
    "available_locales",
    "get_translator",
    "load_translations",
    "normalise_locale",
]
