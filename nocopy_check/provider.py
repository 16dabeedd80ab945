"""
nocopy_check/provider.py
════════════════════════

The semantic provider boundary.

Symbol resolution, type inference and capture analysis are done by a
front end outside this package.  Rules only talk to it through the
``SemanticProvider`` protocol, so any object with these five queries
can drive an analysis.  ``FactTable`` is the in-memory implementation
used by the fact-file loader and by the tests.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, Optional, Protocol, runtime_checkable

from nocopy_check.model import (
    ArgumentPassed,
    Node,
    PassMode,
    SemType,
    Symbol,
)


@runtime_checkable
class SemanticProvider(Protocol):
    """Read-only queries the rules issue against the front end."""

    def type_of(self, node: Node) -> Optional[SemType]:
        ...

    def attributes_of(self, sem_type: SemType) -> FrozenSet[str]:
        ...

    def pass_mode_of(self, parameter: Symbol) -> PassMode:
        ...

    def target_parameter_of(self, argument: ArgumentPassed) -> Optional[Symbol]:
        ...

    def capture_set_of(self, closure_node: Node) -> FrozenSet[Symbol]:
        ...


class FactTable:
    """
    Semantic facts for one compilation unit.

    Usage
    -----
    >>> table = FactTable()
    >>> s = table.declare_type(SemType("S", TypeKind.STRUCT, frozenset({"NoCopy"})))
    >>> table.attributes_of(s)
    frozenset({'NoCopy'})

    The type registry is populated at declaration time; attribute
    queries are answered from it, falling back to the tags carried by
    the descriptor for types that were never declared.

    A type name is its identity within a unit: a descriptor whose name
    matches a declared type is answered with the declared tags, not its
    own.  Closure captures are keyed by the (hashable) node itself.
    """

    def __init__(self) -> None:
        self._types: Dict[str, SemType] = {}
        self._symbols: Dict[str, Symbol] = {}
        # closure node → captured symbols
        self._captures: Dict[Node, FrozenSet[Symbol]] = {}

    # ── population ───────────────────────────────────────────────────

    def declare_type(self, sem_type: SemType) -> SemType:
        self._types[sem_type.name] = sem_type
        return sem_type

    def declare_symbol(self, symbol_id: str, symbol: Symbol) -> Symbol:
        self._symbols[symbol_id] = symbol
        return symbol

    def set_captures(self, closure_node: Node, symbols: Iterable[Symbol]) -> None:
        self._captures[closure_node] = frozenset(symbols)

    def lookup_type(self, name: str) -> Optional[SemType]:
        return self._types.get(name)

    def lookup_symbol(self, symbol_id: str) -> Optional[Symbol]:
        return self._symbols.get(symbol_id)

    @property
    def types(self) -> Dict[str, SemType]:
        return dict(self._types)

    @property
    def symbols(self) -> Dict[str, Symbol]:
        return dict(self._symbols)

    # ── SemanticProvider ─────────────────────────────────────────────

    def type_of(self, node: Node) -> Optional[SemType]:
        return node.type

    def attributes_of(self, sem_type: SemType) -> FrozenSet[str]:
        declared = self._types.get(sem_type.name)
        if declared is not None:
            return declared.tags
        return sem_type.tags

    def pass_mode_of(self, parameter: Symbol) -> PassMode:
        return parameter.pass_mode

    def target_parameter_of(self, argument: ArgumentPassed) -> Optional[Symbol]:
        return argument.parameter

    def capture_set_of(self, closure_node: Node) -> FrozenSet[Symbol]:
        return self._captures.get(closure_node, frozenset())

    def __repr__(self) -> str:
        return (
            f"<FactTable types={len(self._types)} symbols={len(self._symbols)} "
            f"closures={len(self._captures)}>"
        )


__all__ = ["SemanticProvider", "FactTable"]
