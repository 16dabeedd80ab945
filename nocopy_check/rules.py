"""
nocopy_check/rules.py
═════════════════════

The five detection rules, their shared context and the registry the
driver routes through.

Architecture
────────────

  ┌───────────────────────────────────────────────────────────────┐
  │                        RuleRegistry                           │
  │  PARAMETER ─► ParameterRule     ARGUMENT   ─► ArgumentRule    │
  │  FIELD     ─► FieldRule         CONVERSION ─► BoxingRule      │
  │  CLOSURE   ─► CaptureRule                                     │
  └──────────────────────────────┬────────────────────────────────┘
                                 │ check(event, ctx)
  ┌──────────────────────────────▼────────────────────────────────┐
  │   AnalysisContext: SemanticProvider + AnalysisOptions         │
  │   is_non_copy(type, provider.attributes_of(type), markers)    │
  └───────────────────────────────────────────────────────────────┘

Every rule is a pure function of the event and the read-only context:
``check()`` returns the violations and never touches shared state, so
rules may run on any thread in any order.  A fact the provider cannot
resolve (``None`` type) means "no violation".
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import (
    ClassVar,
    Dict,
    FrozenSet,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
    Type,
)

from nocopy_check.classifier import DEFAULT_MARKERS, is_non_copy
from nocopy_check.diagnostics import (
    ARGUMENT_RULE,
    BOXING_RULE,
    CAPTURE_RULE,
    FIELD_RULE,
    PARAMETER_RULE,
    RuleDescriptor,
)
from nocopy_check.model import (
    ArgumentPassed,
    ClosureFormed,
    ConversionPerformed,
    EventKind,
    FieldDeclared,
    ParameterDeclared,
    PassMode,
    SemanticEvent,
    SemType,
    SourceLocation,
    SymbolKind,
    Violation,
)
from nocopy_check.provider import SemanticProvider


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — CONTEXT & OPTIONS
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AnalysisOptions:
    """
    User configuration for one analysis run.

    Attributes
    ----------
    markers  : tag names recognised as the non-copyable marker
    jobs     : worker threads used to dispatch compilation units
    suppress : rule ids suppressed globally (none by default)
    """
    markers: Tuple[str, ...] = DEFAULT_MARKERS
    jobs: int = 1
    suppress: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class AnalysisContext:
    """Read-only bundle handed to every rule invocation."""
    provider: SemanticProvider
    options: AnalysisOptions = field(default_factory=AnalysisOptions)

    def is_non_copy(self, sem_type: Optional[SemType]) -> bool:
        if sem_type is None:
            return False
        return is_non_copy(
            sem_type,
            self.provider.attributes_of(sem_type),
            self.options.markers,
        )


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — RULE BASE CLASS
# ═════════════════════════════════════════════════════════════════════════

class Rule(ABC):
    """
    Abstract base class for all rules.

    Subclass Contract
    ─────────────────
      - Set ``descriptor`` and ``event_kind``
      - Implement ``check()``, returning zero or more violations; an
        event of any other kind yields none
    """

    descriptor: ClassVar[RuleDescriptor]
    event_kind: ClassVar[EventKind]

    @property
    def rule_id(self) -> str:
        return self.descriptor.rule_id

    @abstractmethod
    def check(self, event: SemanticEvent, ctx: AnalysisContext) -> List[Violation]:
        ...

    def _violation(self, location: SourceLocation, sem_type: SemType) -> Violation:
        return Violation(self.descriptor.rule_id, location, sem_type.name)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} '{self.rule_id}'>"


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 — RULES
# ═════════════════════════════════════════════════════════════════════════

class ParameterRule(Rule):
    """
    A non-copyable type received by value.

    The copy has already happened at the call boundary; the parameter
    declaration is the earliest place the callee side can see it.
    """

    descriptor: ClassVar[RuleDescriptor] = PARAMETER_RULE
    event_kind: ClassVar[EventKind] = EventKind.PARAMETER

    def check(self, event: SemanticEvent, ctx: AnalysisContext) -> List[Violation]:
        if not isinstance(event, ParameterDeclared):
            return []
        param = event.symbol
        if ctx.provider.pass_mode_of(param) is not PassMode.VALUE:
            return []
        if not ctx.is_non_copy(param.type):
            return []
        return [self._violation(param.location, param.type)]


class ArgumentRule(Rule):
    """
    A non-copyable value passed by value at a call site.

    Catches copies the callee's declaration cannot show, such as an
    implicit conversion at the call site or an unknown target.
    """

    descriptor: ClassVar[RuleDescriptor] = ARGUMENT_RULE
    event_kind: ClassVar[EventKind] = EventKind.ARGUMENT

    def check(self, event: SemanticEvent, ctx: AnalysisContext) -> List[Violation]:
        if not isinstance(event, ArgumentPassed):
            return []
        provider = ctx.provider
        target = provider.target_parameter_of(event)
        if target is not None and provider.pass_mode_of(target) is not PassMode.VALUE:
            return []

        value_type = provider.type_of(event.value)
        if not ctx.is_non_copy(value_type):
            return []
        return [self._violation(event.value.location, value_type)]


class FieldRule(Rule):
    """A non-copyable struct stored inside a copyable struct."""

    descriptor: ClassVar[RuleDescriptor] = FIELD_RULE
    event_kind: ClassVar[EventKind] = EventKind.FIELD

    def check(self, event: SemanticEvent, ctx: AnalysisContext) -> List[Violation]:
        if not isinstance(event, FieldDeclared):
            return []
        sym = event.symbol
        field_type, container = sym.type, sym.containing_type
        if field_type is None or container is None:
            return []
        if not field_type.is_struct or not container.is_struct:
            return []

        # NonCopy inside NonCopy is fine: the outer type is already move-only.
        if not ctx.is_non_copy(field_type) or ctx.is_non_copy(container):
            return []
        return [self._violation(sym.location, field_type)]


class BoxingRule(Rule):
    """A non-copyable struct converted to a reference type."""

    descriptor: ClassVar[RuleDescriptor] = BOXING_RULE
    event_kind: ClassVar[EventKind] = EventKind.CONVERSION

    def check(self, event: SemanticEvent, ctx: AnalysisContext) -> List[Violation]:
        if not isinstance(event, ConversionPerformed):
            return []
        type_from = ctx.provider.type_of(event.operand)
        type_to = event.target
        if type_from is None or type_to is None:
            return []
        if not type_from.is_struct or not type_to.is_reference_type:
            return []
        if not ctx.is_non_copy(type_from):
            return []
        return [self._violation(event.operand.location, type_from)]


class CaptureRule(Rule):
    """
    A local or parameter of non-copyable type captured by a closure.

    Only LOCAL and PARAMETER captures are evaluated; anything else the
    closure holds on to (enclosing instance state, for instance) is
    left alone.  Reported at the captured symbol's declaration, once
    per closure.
    """

    descriptor: ClassVar[RuleDescriptor] = CAPTURE_RULE
    event_kind: ClassVar[EventKind] = EventKind.CLOSURE

    _EVALUATED: ClassVar[FrozenSet[SymbolKind]] = frozenset({
        SymbolKind.LOCAL, SymbolKind.PARAMETER,
    })

    def check(self, event: SemanticEvent, ctx: AnalysisContext) -> List[Violation]:
        if not isinstance(event, ClosureFormed):
            return []
        found: List[Violation] = []
        captured = sorted(
            ctx.provider.capture_set_of(event.node),
            key=lambda s: (s.location.file, s.location.line, s.location.column, s.name),
        )
        for sym in captured:
            if sym.kind not in self._EVALUATED:
                continue
            if ctx.is_non_copy(sym.type):
                found.append(self._violation(sym.location, sym.type))
        return found


# ═════════════════════════════════════════════════════════════════════════
#  PART 4 — RULE REGISTRY
# ═════════════════════════════════════════════════════════════════════════

class RuleRegistry:
    """
    Registry of available rules, keyed by rule id.

    Usage
    -----
    >>> registry = RuleRegistry()
    >>> registry.register(ParameterRule)
    >>> registry.for_event(EventKind.PARAMETER)
    [<ParameterRule 'NCP01'>]
    """

    def __init__(self) -> None:
        self._rules: Dict[str, Type[Rule]] = {}
        self._disabled: Set[str] = set()

    def register(self, rule_cls: Type[Rule]) -> None:
        rid = rule_cls.descriptor.rule_id
        self._rules[rid] = rule_cls
        if not rule_cls.descriptor.enabled_by_default:
            self._disabled.add(rid)

    def unregister(self, rule_id: str) -> None:
        self._rules.pop(rule_id, None)
        self._disabled.discard(rule_id)

    def disable(self, rule_id: str) -> None:
        self._disabled.add(rule_id)

    def enable(self, rule_id: str) -> None:
        self._disabled.discard(rule_id)

    def get_all(self) -> List[Type[Rule]]:
        return list(self._rules.values())

    def get_enabled(self) -> List[Type[Rule]]:
        return [
            cls for rid, cls in self._rules.items()
            if rid not in self._disabled
        ]

    def get_by_id(self, rule_id: str) -> Optional[Type[Rule]]:
        return self._rules.get(rule_id)

    def for_event(self, kind: EventKind) -> List[Rule]:
        """Instantiate the enabled rules that consume ``kind`` events."""
        return [cls() for cls in self.get_enabled() if cls.event_kind is kind]

    def descriptors(self) -> List[RuleDescriptor]:
        return [cls.descriptor for cls in self._rules.values()]

    @property
    def ids(self) -> List[str]:
        return sorted(self._rules.keys())


BUILTIN_RULES: Sequence[Type[Rule]] = (
    ParameterRule,
    ArgumentRule,
    FieldRule,
    BoxingRule,
    CaptureRule,
)


def default_registry() -> RuleRegistry:
    """A fresh registry holding the five built-in rules."""
    registry = RuleRegistry()
    for cls in BUILTIN_RULES:
        registry.register(cls)
    return registry


__all__ = [
    "AnalysisOptions",
    "AnalysisContext",
    "Rule",
    "ParameterRule",
    "ArgumentRule",
    "FieldRule",
    "BoxingRule",
    "CaptureRule",
    "RuleRegistry",
    "BUILTIN_RULES",
    "default_registry",
]
