"""Resolve the project version reported by the API."""

from __future__ import annotations

import re
from functools import lru_cache
from importlib import metadata
from pathlib import Path
from typing import Final

PACKAGE_NAME: Final = "kapitalen"
PYPROJECT_PATH: Final = Path(__file__).resolve().parents[3] / "pyproject.toml"

_VERSION_LINE = re.compile(r'^version\s*=\s*"(?P<version>[^"]+)"\s*$')


@lru_cache(maxsize=1)
def get_project_version() -> str:
    """Return the installed version, or the one declared in ``pyproject.toml``."""

    try:
        return metadata.version(PACKAGE_NAME)
    except metadata.PackageNotFoundError:
        return read_version_from_pyproject(PYPROJECT_PATH)


def read_version_from_pyproject(path: Path) -> str:
    """Read ``[project].version`` from a checkout without installed metadata."""

    if not path.exists():
        raise RuntimeError(f"Unable to locate project metadata at {path}")

    in_project = False
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if line.startswith("["):
            in_project = line == "[project]"
            continue
        if in_project:
            match = _VERSION_LINE.match(line)
            if match:
                return match.group("version")

    raise RuntimeError(f"Unable to determine project version from {path.name}")


__all__ = ["PACKAGE_NAME", "get_project_version", "read_version_from_pyproject"]
