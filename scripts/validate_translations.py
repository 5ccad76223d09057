#!/usr/bin/env python3
"""Check that every translation catalogue defines the same message keys.

Placeholders such as ``{bracket}`` must also match the English catalogue so
that formatted labels never raise or render raw braces.
"""

from __future__ import annotations

import argparse
import json
import re
import sys
from pathlib import Path
from typing import Sequence

TRANSLATIONS_DIR = Path(__file__).resolve().parents[1] / "src" / "kapitalen" / "translations"
BASE_LOCALE = "en"

PLACEHOLDER_PATTERN = re.compile(r"{\s*([a-zA-Z0-9_]+)\s*}")


def _load_catalogues(directory: Path) -> dict[str, dict[str, str]]:
    catalogues: dict[str, dict[str, str]] = {}
    for path in sorted(directory.glob("*.json")):
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        messages = payload.get("messages") if isinstance(payload, dict) else None
        if not isinstance(messages, dict):
            raise ValueError(f"{path.name}: expected a 'messages' mapping")
        catalogues[path.stem] = {str(key): str(value) for key, value in messages.items()}
    return catalogues


def find_issues(catalogues: dict[str, dict[str, str]]) -> list[str]:
    """Return human-readable problems found across ``catalogues``."""

    if BASE_LOCALE not in catalogues:
        return [f"missing base catalogue '{BASE_LOCALE}'"]

    base = catalogues[BASE_LOCALE]
    issues: list[str] = []
    for locale, messages in sorted(catalogues.items()):
        if locale == BASE_LOCALE:
            continue
        for key in sorted(set(base) - set(messages)):
            issues.append(f"{locale}: missing key '{key}'")
        for key in sorted(set(messages) - set(base)):
            issues.append(f"{locale}: unknown key '{key}'")
        for key in sorted(set(base) & set(messages)):
            expected = set(PLACEHOLDER_PATTERN.findall(base[key]))
            found = set(PLACEHOLDER_PATTERN.findall(messages[key]))
            if expected != found:
                issues.append(
                    f"{locale}: placeholders for '{key}' differ "
                    f"(expected {sorted(expected)}, found {sorted(found)})"
                )
    return issues


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--directory",
        type=Path,
        default=TRANSLATIONS_DIR,
        help="Directory containing <locale>.json catalogues",
    )
    args = parser.parse_args(argv)

    issues = find_issues(_load_catalogues(args.directory))
    for issue in issues:
        print(issue)
    if not issues:
        print("Translation catalogues are consistent.")
    return 1 if issues else 0


if __name__ == "__main__":
    sys.exit(main())
