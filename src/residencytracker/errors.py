"""Exceptions raised by the tracking core."""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for tracking core errors."""


class NotFoundError(TrackerError, KeyError):
    """Unknown resident, rotation or procedure key."""

    def __init__(self, kind: str, key: str) -> None:
        super().__init__(kind, key)
        self.kind = kind
        self.key = key

    def __str__(self) -> str:
        return f"Unknown {self.kind}: {self.key}"
