"""
nocopy_check/driver.py
══════════════════════

Routes semantic events to the rules registered for their category and
hands every violation to the sink.

  CompilationUnit(provider, events)
          │
          ▼
  AnalysisDriver.run ──► dispatch(event) ──► routes[event.kind]
                                                  │ rule.check()
                                                  ▼
                                          sink.report(...)
                                                  │
                                                  ▼
                                            RunResults

Routes are fixed when the driver is built.  Every ``EventKind`` must
have an entry (possibly empty because its rules are disabled), so a
new event variant cannot be skipped silently.  Units are independent:
with ``jobs > 1`` they are dispatched on a thread pool and only meet
in the sink.
"""

from __future__ import annotations

import logging
import time
from collections import Counter, defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from nocopy_check.diagnostics import (
    CollectingSink,
    Diagnostic,
    DiagnosticSeverity,
    DiagnosticSink,
    SuppressionManager,
)
from nocopy_check.errors import UnknownEventError
from nocopy_check.model import EVENT_TYPES, EventKind, SemanticEvent, Violation
from nocopy_check.provider import SemanticProvider
from nocopy_check.rules import (
    AnalysisContext,
    AnalysisOptions,
    Rule,
    RuleRegistry,
    default_registry,
)

_log = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — UNITS & RESULTS
# ═════════════════════════════════════════════════════════════════════════

@dataclass
class CompilationUnit:
    """Facts and ordered events for one source file."""
    path: str
    provider: SemanticProvider
    events: List[SemanticEvent] = field(default_factory=list)


@dataclass
class RunResults:
    """
    Aggregate results of an analysis run.

    Attributes
    ----------
    diagnostics         : all (unsuppressed) diagnostics
    diagnostics_by_rule : diagnostics grouped by rule id
    stats               : event counts and timings
    unit_paths          : units that were analysed
    """
    diagnostics: List[Diagnostic] = field(default_factory=list)
    diagnostics_by_rule: Dict[str, List[Diagnostic]] = field(
        default_factory=lambda: defaultdict(list)
    )
    stats: Dict[str, Any] = field(default_factory=dict)
    unit_paths: List[str] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return sum(
            1 for d in self.diagnostics
            if d.severity == DiagnosticSeverity.ERROR
        )

    @property
    def total_count(self) -> int:
        return len(self.diagnostics)

    def by_rule(self, rule_id: str) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.rule_id == rule_id]

    def by_file(self, file: str) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.location.file == file]

    def to_json_lines(self) -> str:
        return "\n".join(d.to_json_str() for d in self.diagnostics)

    def to_gcc_format(self) -> str:
        return "\n".join(d.to_gcc_format() for d in self.diagnostics)

    def summary(self) -> str:
        """Human-readable summary."""
        lines = [
            f"Analysis complete: {self.total_count} diagnostics "
            f"({self.error_count} errors) in {len(self.unit_paths)} unit(s)",
        ]
        for rule_id in sorted(self.diagnostics_by_rule):
            count = len(self.diagnostics_by_rule[rule_id])
            lines.append(f"  {rule_id}: {count} findings")
        elapsed = self.stats.get("elapsed_ms")
        if elapsed is not None:
            lines.append(f"  elapsed: {elapsed:.1f}ms")
        return "\n".join(lines)


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — DRIVER
# ═════════════════════════════════════════════════════════════════════════

class AnalysisDriver:
    """
    Dispatches events to rules.

    Usage
    -----
    >>> driver = AnalysisDriver()
    >>> results = driver.run(unit)
    >>> print(results.summary())

    >>> # Several units on four threads:
    >>> results = AnalysisDriver(options=AnalysisOptions(jobs=4)).run_units(units)
    """

    def __init__(
        self,
        registry: Optional[RuleRegistry] = None,
        options: Optional[AnalysisOptions] = None,
        suppressions: Optional[SuppressionManager] = None,
    ) -> None:
        self.registry = registry or default_registry()
        self.options = options or AnalysisOptions()
        self.suppressions = suppressions or SuppressionManager()
        for rule_id in self.options.suppress:
            self.suppressions.add_global_suppression(rule_id)

        # Each kind needs an event variant, or its rules could never fire.
        variant_kinds = {cls.kind for cls in EVENT_TYPES}
        missing = [kind for kind in EventKind if kind not in variant_kinds]
        if missing:
            raise UnknownEventError(missing[0])
        self._routes: Dict[EventKind, List[Rule]] = {
            kind: self.registry.for_event(kind) for kind in EventKind
        }
        _log.debug(
            "Routes: %s",
            {kind.value: [r.rule_id for r in rules] for kind, rules in self._routes.items()},
        )

    def rules_for(self, kind: EventKind) -> List[Rule]:
        return list(self._routes[kind])

    def check(self, event: SemanticEvent, ctx: AnalysisContext) -> List[Violation]:
        """Run every rule routed for ``event`` and collect the violations."""
        if not isinstance(event, EVENT_TYPES):
            raise UnknownEventError(event)
        found: List[Violation] = []
        for rule in self._routes[event.kind]:
            found.extend(rule.check(event, ctx))
        return found

    def dispatch(
        self,
        event: SemanticEvent,
        ctx: AnalysisContext,
        sink: DiagnosticSink,
    ) -> int:
        """Check ``event`` and report its violations; returns how many."""
        violations = self.check(event, ctx)
        for v in violations:
            sink.report(v.rule_id, v.location, v.type_name)
        return len(violations)

    def analyze_unit(self, unit: CompilationUnit, sink: DiagnosticSink) -> Counter:
        """Dispatch every event of ``unit``; returns per-kind event counts."""
        ctx = AnalysisContext(provider=unit.provider, options=self.options)
        counts: Counter = Counter()
        reported = 0
        for event in unit.events:
            reported += self.dispatch(event, ctx, sink)
            counts[event.kind.value] += 1
        _log.debug(
            "%s: %d event(s), %d violation(s)",
            unit.path, sum(counts.values()), reported,
        )
        return counts

    def run(self, unit: CompilationUnit, sink: Optional[CollectingSink] = None) -> RunResults:
        return self.run_units([unit], sink=sink)

    def run_units(
        self,
        units: Sequence[CompilationUnit],
        sink: Optional[CollectingSink] = None,
    ) -> RunResults:
        """
        Analyse ``units`` and gather the results.

        Units run on ``options.jobs`` threads; diagnostics are ordered
        by location afterwards so the output does not depend on
        scheduling.
        """
        if sink is None:
            sink = CollectingSink({d.rule_id: d for d in self.registry.descriptors()})
        t0 = time.monotonic()

        jobs = max(1, self.options.jobs)
        if jobs == 1 or len(units) <= 1:
            counters = [self.analyze_unit(u, sink) for u in units]
        else:
            with ThreadPoolExecutor(max_workers=jobs) as pool:
                counters = list(pool.map(lambda u: self.analyze_unit(u, sink), units))

        results = RunResults(unit_paths=[u.path for u in units])
        results.diagnostics = sorted(
            self.suppressions.filter_diagnostics(sink.diagnostics),
            key=_diagnostic_order,
        )
        for diag in results.diagnostics:
            results.diagnostics_by_rule[diag.rule_id].append(diag)

        events: Counter = Counter()
        for c in counters:
            events.update(c)
        results.stats["events"] = dict(events)
        results.stats["elapsed_ms"] = (time.monotonic() - t0) * 1000.0
        _log.info(
            "Analysed %d unit(s): %d diagnostic(s)",
            len(units), results.total_count,
        )
        return results


def _diagnostic_order(d: Diagnostic) -> tuple:
    loc = d.location
    return (loc.file, loc.line, loc.column, d.rule_id, d.type_name)


def analyze(
    units: Iterable[CompilationUnit],
    options: Optional[AnalysisOptions] = None,
) -> RunResults:
    """Convenience: run the built-in rules over ``units``."""
    return AnalysisDriver(options=options).run_units(list(units))


__all__ = [
    "CompilationUnit",
    "RunResults",
    "AnalysisDriver",
    "analyze",
]
