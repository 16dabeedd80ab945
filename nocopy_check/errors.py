"""
nocopy_check/errors.py
══════════════════════

Exception hierarchy for the tooling around the rules.

The rules themselves never raise: an unresolvable fact is a silent
"no violation".  These exceptions belong to the edges of the package,
where fact files are read and where the driver is wired up.

  NoCopyError (base)
  ├── FactFileError       - malformed or inconsistent fact document
  └── UnknownEventError   - event variant without a route
"""

from __future__ import annotations

from typing import Optional

from nocopy_check.model import SourceLocation


class NoCopyError(Exception):
    """Base class for all nocopy_check errors."""


class FactFileError(NoCopyError):
    """Raised when a fact document cannot be mapped to semantic facts."""

    def __init__(self, message: str, loc: Optional[SourceLocation] = None) -> None:
        super().__init__(message)
        self.message = message
        self.loc = loc

    def __str__(self) -> str:
        if self.loc is not None and self.loc.file:
            return f"{self.loc}: {self.message}"
        return self.message


class UnknownEventError(NoCopyError):
    """Raised when the driver meets an event it has no route for."""

    def __init__(self, event: object) -> None:
        label = getattr(event, "name", None) or type(event).__name__
        super().__init__(f"No rule route for event {label!s}")
        self.event = event


__all__ = [
    "NoCopyError",
    "FactFileError",
    "UnknownEventError",
]
