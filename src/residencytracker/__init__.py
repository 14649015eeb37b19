"""Procedure ledger and evaluation compliance tracking for residency programs."""

from __future__ import annotations

import tomllib
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

__all__ = ["__version__"]

DISTRIBUTION_NAME = "residencytracker"


def _version_from_pyproject() -> str | None:
    """Read the project version from a source checkout, if there is one."""
    for base in Path(__file__).resolve().parents:
        pyproject = base / "pyproject.toml"
        if not pyproject.exists():
            continue
        try:
            data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError:
            return None
        project = data.get("project", {})
        if project.get("name") != DISTRIBUTION_NAME:
            continue
        value = project.get("version")
        return str(value) if value else None
    return None


_project_version = _version_from_pyproject()
if _project_version is not None:
    __version__ = _project_version
else:
    try:
        __version__ = version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        __version__ = "0+unknown"
