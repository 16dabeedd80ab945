"""
nocopy_check/diagnostics.py
═══════════════════════════

Diagnostic model, rule descriptors, the sink the rules report into and
the suppression manager that filters the final output.

  Violation ──► DiagnosticSink.report(rule_id, location, type_name)
                      │
                      ▼
                CollectingSink ──► Diagnostic (descriptor.format(type))
                                        │
                                        ▼
                               SuppressionManager ──► JSON / GCC text

The five rule identities are stable so downstream tooling can key on
them.  Every rule is an error and enabled by default; nothing is
suppressed unless the caller asks for it.
"""

from __future__ import annotations

import fnmatch
import json
import threading
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Set,
    Tuple,
    runtime_checkable,
)

from nocopy_check.model import SourceLocation, Violation


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — DESCRIPTORS
# ═════════════════════════════════════════════════════════════════════════

class DiagnosticSeverity(Enum):
    """Severity levels, compatible with the cppcheck addon protocol."""
    ERROR = "error"
    WARNING = "warning"
    INFORMATION = "information"


@dataclass(frozen=True)
class RuleDescriptor:
    """
    Static identity of one rule.

    Attributes
    ----------
    rule_id            : stable identifier, e.g. ``NCP01``
    title              : short human-readable title
    message_format     : template with a single ``{0}`` for the type name
    category           : diagnostic category
    severity           : default severity
    enabled_by_default : whether the rule runs without being asked
    """
    rule_id: str
    title: str
    message_format: str
    category: str = "NoCopy"
    severity: DiagnosticSeverity = DiagnosticSeverity.ERROR
    enabled_by_default: bool = True

    def format(self, type_name: str) -> str:
        return self.message_format.format(type_name)


def _descriptor(number: int, title: str, message: str) -> RuleDescriptor:
    return RuleDescriptor(rule_id=f"NCP{number:02d}", title=title, message_format=message)


PARAMETER_RULE = _descriptor(
    1, "Passed by Value",
    "Type `{0}` is marked as `NoCopy` and should be received only by reference",
)
ARGUMENT_RULE = _descriptor(
    2, "Received by Value",
    "Type `{0}` is marked as `NoCopy` and should be passed only by reference",
)
FIELD_RULE = _descriptor(
    3, "Field of Copy Type",
    "Type `{0}` is marked as `NoCopy` and can be a field only of a `NoCopy` type",
)
BOXING_RULE = _descriptor(
    4, "Boxed",
    "Type `{0}` is marked as `NoCopy` and shouldn't be boxed",
)
CAPTURE_RULE = _descriptor(
    5, "Captured by Closure",
    "Type `{0}` is marked as `NoCopy` and shouldn't be captured by a closure",
)

SUPPORTED_DIAGNOSTICS: Tuple[RuleDescriptor, ...] = (
    PARAMETER_RULE,
    ARGUMENT_RULE,
    FIELD_RULE,
    BOXING_RULE,
    CAPTURE_RULE,
)

DESCRIPTORS_BY_ID: Mapping[str, RuleDescriptor] = {
    d.rule_id: d for d in SUPPORTED_DIAGNOSTICS
}


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — DIAGNOSTIC RECORD
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Diagnostic:
    """
    A single finding, ready for output.

    Attributes
    ----------
    rule_id   : identifier of the rule that fired
    message   : formatted message
    severity  : DiagnosticSeverity
    location  : where the violation was observed
    type_name : offending type
    category  : diagnostic category
    addon     : producer name for the cppcheck addon protocol
    """
    rule_id: str
    message: str
    severity: DiagnosticSeverity
    location: SourceLocation
    type_name: str = ""
    category: str = "NoCopy"
    addon: str = "nocopy-check"

    @classmethod
    def from_violation(
        cls,
        violation: Violation,
        descriptor: Optional[RuleDescriptor] = None,
    ) -> "Diagnostic":
        descriptor = descriptor or DESCRIPTORS_BY_ID[violation.rule_id]
        return cls(
            rule_id=violation.rule_id,
            message=descriptor.format(violation.type_name),
            severity=descriptor.severity,
            location=violation.location,
            type_name=violation.type_name,
            category=descriptor.category,
        )

    def to_cppcheck_json(self) -> Dict[str, Any]:
        """Serialize to cppcheck's JSON addon output format."""
        return {
            "file": self.location.file,
            "linenr": self.location.line,
            "column": self.location.column,
            "severity": self.severity.value,
            "message": self.message,
            "addon": self.addon,
            "errorId": self.rule_id,
            "extra": self.type_name,
        }

    def to_json_str(self) -> str:
        return json.dumps(self.to_cppcheck_json())

    def to_gcc_format(self) -> str:
        """GCC-style diagnostic string: file:line:col: severity: message."""
        return f"{self.location}: {self.severity.value}: {self.message} [{self.rule_id}]"

    def __str__(self) -> str:
        return self.to_gcc_format()


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 — SINKS
# ═════════════════════════════════════════════════════════════════════════

@runtime_checkable
class DiagnosticSink(Protocol):
    """Append-only destination; must tolerate concurrent writers."""

    def report(self, rule_id: str, location: SourceLocation, type_name: str) -> None:
        ...


class CollectingSink:
    """
    Thread-safe sink that turns every report into a ``Diagnostic``.

    Reports are kept in arrival order.  Concurrent callers only contend
    on the append.
    """

    def __init__(self, descriptors: Optional[Mapping[str, RuleDescriptor]] = None) -> None:
        self._descriptors = dict(DESCRIPTORS_BY_ID if descriptors is None else descriptors)
        self._diagnostics: List[Diagnostic] = []
        self._lock = threading.Lock()

    def report(self, rule_id: str, location: SourceLocation, type_name: str) -> None:
        diag = Diagnostic.from_violation(
            Violation(rule_id, location, type_name),
            self._descriptors[rule_id],
        )
        with self._lock:
            self._diagnostics.append(diag)

    @property
    def diagnostics(self) -> List[Diagnostic]:
        with self._lock:
            return list(self._diagnostics)

    def __len__(self) -> int:
        with self._lock:
            return len(self._diagnostics)


# ═════════════════════════════════════════════════════════════════════════
#  PART 4 — SUPPRESSION MANAGER
# ═════════════════════════════════════════════════════════════════════════

class SuppressionManager:
    """
    Opt-in diagnostic suppressions.

    Sources:
      1. Global suppressions (command line or options)
      2. File-level suppressions, matched exactly, by suffix or fnmatch

    Usage::

        sm = SuppressionManager()
        sm.add_file_suppression("NCP04", "legacy/*.cs")
        sm.add_global_suppression("NCP05")
        kept = sm.filter_diagnostics(diagnostics)
    """

    def __init__(self) -> None:
        # file pattern → set of rule ids
        self._file_level: Dict[str, Set[str]] = defaultdict(set)
        self._global: Set[str] = set()

    def add_file_suppression(self, rule_id: str, file_pattern: str) -> None:
        self._file_level[file_pattern].add(rule_id)

    def add_global_suppression(self, rule_id: str) -> None:
        self._global.add(rule_id)

    def is_suppressed(self, diag: Diagnostic) -> bool:
        rid = diag.rule_id
        if rid in self._global or "*" in self._global:
            return True

        file = diag.location.file
        for pattern, ids in self._file_level.items():
            if rid not in ids and "*" not in ids:
                continue
            if pattern == file or file.endswith(pattern) or fnmatch.fnmatch(file, pattern):
                return True
        return False

    def filter_diagnostics(self, diagnostics: Iterable[Diagnostic]) -> List[Diagnostic]:
        """Return only non-suppressed diagnostics."""
        return [d for d in diagnostics if not self.is_suppressed(d)]


__all__ = [
    "DiagnosticSeverity",
    "RuleDescriptor",
    "PARAMETER_RULE",
    "ARGUMENT_RULE",
    "FIELD_RULE",
    "BOXING_RULE",
    "CAPTURE_RULE",
    "SUPPORTED_DIAGNOSTICS",
    "DESCRIPTORS_BY_ID",
    "Diagnostic",
    "DiagnosticSink",
    "CollectingSink",
    "SuppressionManager",
]
