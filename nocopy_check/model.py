"""
nocopy_check/model.py
═════════════════════

Semantic facts consumed by the rules.

Everything in this module is owned by the semantic provider: the core
only reads these objects and never mutates them.  All records are
frozen dataclasses so a rule can be handed a snapshot and run on any
thread.

Events
──────

The provider notifies the core with one event per semantic occurrence.
The set of variants is closed:

  ┌─────────────────────┬──────────────────────────────────────────┐
  │ ParameterDeclared   │ a parameter symbol was declared          │
  │ FieldDeclared       │ a field symbol was declared              │
  │ ArgumentPassed      │ a value was bound to a call argument     │
  │ ConversionPerformed │ a value was converted to another type    │
  │ ClosureFormed       │ a lambda / anonymous / local function    │
  └─────────────────────┴──────────────────────────────────────────┘

Adding a variant means adding an ``EventKind`` member; the driver
refuses to start until every kind has a route.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, FrozenSet, Optional, Union


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — ENUMERATIONS
# ═════════════════════════════════════════════════════════════════════════

class TypeKind(Enum):
    """Coarse kind of a semantic type."""
    STRUCT = "struct"
    CLASS = "class"
    INTERFACE = "interface"
    OTHER = "other"


class PassMode(Enum):
    """How a parameter binds its argument."""
    VALUE = "value"
    REF = "ref"
    OUT = "out"
    IN = "in"


class SymbolKind(Enum):
    """Declaring kind of a symbol."""
    PARAMETER = "parameter"
    FIELD = "field"
    LOCAL = "local"
    OTHER = "other"


class ClosureKind(Enum):
    """Syntax constructs able to capture outer variables."""
    ANONYMOUS_METHOD = "anonymous-method"
    SIMPLE_LAMBDA = "simple-lambda"
    PARENTHESIZED_LAMBDA = "parenthesized-lambda"
    LOCAL_FUNCTION = "local-function"


class EventKind(Enum):
    """Categories the driver routes on."""
    PARAMETER = "parameter"
    FIELD = "field"
    ARGUMENT = "argument"
    CONVERSION = "conversion"
    CLOSURE = "closure"


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — TYPES, SYMBOLS, NODES
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SourceLocation:
    """A specific point in source code."""
    file: str = ""
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        if self.column:
            return f"{self.file}:{self.line}:{self.column}"
        return f"{self.file}:{self.line}"


@dataclass(frozen=True)
class SemType:
    """
    A semantic type descriptor.

    Attributes
    ----------
    name      : display name (used in diagnostics)
    kind      : TypeKind
    tags      : attribute names attached to the declaration
    reference : explicit reference-kind flag; ``None`` derives it from
                ``kind`` (classes and interfaces are reference types)
    """
    name: str
    kind: TypeKind = TypeKind.OTHER
    tags: FrozenSet[str] = frozenset()
    reference: Optional[bool] = None

    @property
    def is_struct(self) -> bool:
        return self.kind is TypeKind.STRUCT

    @property
    def is_reference_type(self) -> bool:
        if self.reference is not None:
            return self.reference
        return self.kind in (TypeKind.CLASS, TypeKind.INTERFACE)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Symbol:
    """
    A declared entity: parameter, field, local or anything else.

    ``type`` is ``None`` when the provider could not resolve it.
    ``pass_mode`` is meaningful for parameters only and
    ``containing_type`` for fields only.
    """
    name: str
    kind: SymbolKind
    type: Optional[SemType]
    location: SourceLocation = field(default_factory=SourceLocation)
    pass_mode: PassMode = PassMode.VALUE
    containing_type: Optional[SemType] = None


@dataclass(frozen=True)
class Node:
    """An expression or syntax node observed by an operation."""
    type: Optional[SemType]
    location: SourceLocation = field(default_factory=SourceLocation)
    node_id: str = ""


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 — EVENTS
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ParameterDeclared:
    symbol: Symbol

    kind: ClassVar[EventKind] = EventKind.PARAMETER


@dataclass(frozen=True)
class FieldDeclared:
    symbol: Symbol

    kind: ClassVar[EventKind] = EventKind.FIELD


@dataclass(frozen=True)
class ArgumentPassed:
    """A call-site value bound to ``parameter`` (if statically known)."""
    value: Node
    parameter: Optional[Symbol] = None

    kind: ClassVar[EventKind] = EventKind.ARGUMENT


@dataclass(frozen=True)
class ConversionPerformed:
    """``operand`` converted to ``target``."""
    operand: Node
    target: Optional[SemType]

    kind: ClassVar[EventKind] = EventKind.CONVERSION


@dataclass(frozen=True)
class ClosureFormed:
    node: Node
    construct: ClosureKind = ClosureKind.SIMPLE_LAMBDA

    kind: ClassVar[EventKind] = EventKind.CLOSURE


SemanticEvent = Union[
    ParameterDeclared,
    FieldDeclared,
    ArgumentPassed,
    ConversionPerformed,
    ClosureFormed,
]

EVENT_TYPES = (
    ParameterDeclared,
    FieldDeclared,
    ArgumentPassed,
    ConversionPerformed,
    ClosureFormed,
)


# ═════════════════════════════════════════════════════════════════════════
#  PART 4 — VIOLATION
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Violation:
    """One rule firing: handed to the sink immediately."""
    rule_id: str
    location: SourceLocation
    type_name: str


__all__ = [
    "TypeKind",
    "PassMode",
    "SymbolKind",
    "ClosureKind",
    "EventKind",
    "SourceLocation",
    "SemType",
    "Symbol",
    "Node",
    "ParameterDeclared",
    "FieldDeclared",
    "ArgumentPassed",
    "ConversionPerformed",
    "ClosureFormed",
    "SemanticEvent",
    "EVENT_TYPES",
    "Violation",
]
