"""nocopy_check/facts.py – S-expression fact document → compilation units.

A front end hands its semantic facts to the tool as a fact document:
one ``(unit ...)`` form per source file, each holding the type
registry, the declared symbols and the ordered events.

Design principles
-----------------
* **Head-symbol dispatch** – every form ``(tag ...)`` inside a unit is
  dispatched on ``tag`` to a registered ``_form_<tag>`` helper.
* **Two passes per unit** – types and symbols are declared first so
  forms may refer to each other in any order; events are then built
  in document order.
* **Strict shapes** – an unknown form, an undeclared type or a dangling
  symbol id raises ``FactFileError``; nothing is silently ignored.

Surface syntax
--------------
::

    (unit "<path>"
      (type <name> <kind> [(tags <tag> ...)] [(reference <bool>)])
      (parameter <id> <name> <type> <mode> [(at <line> <col>)])
      (field     <id> <name> <type> <container> [(at <line> <col>)])
      (local     <id> <name> <type> [(at <line> <col>)])
      (symbol    <id> <name> <type> [(at <line> <col>)])
      (argument   <type> [(at <line> <col>)] [(binds <param-id>)])
      (conversion <type> <target-type> [(at <line> <col>)])
      (closure <construct> [(at <line> <col>)] [(captures <id> ...)]))

    kind      := struct | class | interface | other
    mode      := value | ref | out | in
    construct := anonymous-method | simple-lambda
               | parenthesized-lambda | local-function
    type      := <declared type name> | _          ;; _ = unknown

``parameter`` and ``field`` forms also produce declaration events;
``symbol`` declares a captured entity of any other kind (e.g. ``this``).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple

try:
    import sexpdata
    from sexpdata import Symbol as SexpSymbol
except ImportError:  # pragma: no cover
    raise ImportError(
        "The 'sexpdata' package is required for reading fact files. "
        "Install it with:  pip install sexpdata"
    )

from nocopy_check.driver import CompilationUnit
from nocopy_check.errors import FactFileError
from nocopy_check.model import (
    ArgumentPassed,
    ClosureFormed,
    ClosureKind,
    ConversionPerformed,
    FieldDeclared,
    Node,
    ParameterDeclared,
    PassMode,
    SemanticEvent,
    SemType,
    SourceLocation,
    Symbol,
    SymbolKind,
    TypeKind,
)
from nocopy_check.provider import FactTable

_log = logging.getLogger(__name__)

Sexp = Any  # Union[list, Symbol, str, int, float, bool]

UNKNOWN_TYPE = "_"


# ═══════════════════════════════════════════════════════════════════════
#  Helpers
# ═══════════════════════════════════════════════════════════════════════

def _sym_name(s: Sexp) -> str:
    if isinstance(s, SexpSymbol):
        return str(s)
    raise FactFileError(f"Expected symbol, got {type(s).__name__}: {s!r}")


def _head(s: Sexp) -> str:
    if not isinstance(s, list) or not s:
        raise FactFileError(f"Expected form (tag ...), got: {s!r}")
    return _sym_name(s[0])


def _expect_list(s: Sexp, *, min_len: int = 0, tag: Optional[str] = None) -> list:
    if not isinstance(s, list):
        raise FactFileError(
            f"Expected list{f' ({tag} ...)' if tag else ''}, "
            f"got {type(s).__name__}: {s!r}"
        )
    if len(s) < min_len:
        raise FactFileError(
            f"Form too short: expected at least {min_len} elements, "
            f"got {len(s)}: {s!r}"
        )
    if tag is not None and _head(s) != tag:
        raise FactFileError(f"Expected ({tag} ...), got ({_head(s)} ...)")
    return s


def _as_str(s: Sexp) -> str:
    """Accept a symbol or a string literal."""
    if isinstance(s, SexpSymbol):
        return str(s)
    if isinstance(s, str):
        return s
    raise FactFileError(f"Expected string or symbol, got {type(s).__name__}: {s!r}")


def _as_int(s: Sexp) -> int:
    if isinstance(s, int) and not isinstance(s, bool):
        return s
    raise FactFileError(f"Expected integer, got {type(s).__name__}: {s!r}")


def _as_bool(s: Sexp) -> bool:
    if isinstance(s, bool):
        return s
    if isinstance(s, SexpSymbol):
        v = str(s).lower()
        if v in ("true", "#t", "t"):
            return True
        if v in ("false", "#f", "nil"):
            return False
    raise FactFileError(f"Expected boolean, got {type(s).__name__}: {s!r}")


def _as_enum(s: Sexp, enum_cls: Any, what: str) -> Any:
    name = _as_str(s).lower()
    try:
        return enum_cls(name)
    except ValueError:
        raise FactFileError(
            f"Unknown {what}: {name!r}. "
            f"Expected one of: {[e.value for e in enum_cls]}"
        ) from None


def _options(forms: list) -> Dict[str, list]:
    """Collect trailing ``(key ...)`` option forms by head symbol."""
    found: Dict[str, list] = {}
    for form in forms:
        key = _head(form)
        if key in found:
            raise FactFileError(f"Duplicate ({key} ...) option")
        found[key] = form
    return found


# ═══════════════════════════════════════════════════════════════════════
#  Unit builder
# ═══════════════════════════════════════════════════════════════════════

class _UnitBuilder:
    """Accumulates one unit's FactTable and events."""

    def __init__(self, path: str) -> None:
        self.path = path
        self.table = FactTable()
        self.events: List[SemanticEvent] = []
        self._node_counter = 0

    def loc(self, options: Dict[str, list]) -> SourceLocation:
        at = options.get("at")
        if at is None:
            return SourceLocation(self.path)
        _expect_list(at, min_len=2)
        column = _as_int(at[2]) if len(at) >= 3 else 0
        return SourceLocation(self.path, _as_int(at[1]), column)

    def type_ref(self, s: Sexp) -> Optional[SemType]:
        name = _as_str(s)
        if name == UNKNOWN_TYPE:
            return None
        declared = self.table.lookup_type(name)
        if declared is None:
            raise FactFileError(f"Undeclared type {name!r}")
        return declared

    def symbol_ref(self, s: Sexp) -> Symbol:
        sid = _as_str(s)
        sym = self.table.lookup_symbol(sid)
        if sym is None:
            raise FactFileError(f"Undeclared symbol id {sid!r}")
        return sym

    def node(self, sem_type: Optional[SemType], loc: SourceLocation, prefix: str) -> Node:
        self._node_counter += 1
        return Node(type=sem_type, location=loc, node_id=f"{prefix}#{self._node_counter}")

    def build(self) -> CompilationUnit:
        return CompilationUnit(path=self.path, provider=self.table, events=self.events)


# ═══════════════════════════════════════════════════════════════════════
#  Dispatch registry
# ═══════════════════════════════════════════════════════════════════════

_FormHandler = Callable[[_UnitBuilder, list], None]

_TYPE_DISPATCH: Dict[str, _FormHandler] = {}
_SYMBOL_DISPATCH: Dict[str, _FormHandler] = {}
_EVENT_DISPATCH: Dict[str, _FormHandler] = {}


def _register(table: dict, tag: str):
    """Decorator: register a form handler under *tag* in *table*."""
    def deco(fn):
        table[tag] = fn
        return fn
    return deco


def _known_tags() -> FrozenSet[str]:
    return frozenset(_TYPE_DISPATCH) | frozenset(_SYMBOL_DISPATCH) | frozenset(_EVENT_DISPATCH)


# ═══════════════════════════════════════════════════════════════════════
#  Pass 1a — types
# ═══════════════════════════════════════════════════════════════════════

@_register(_TYPE_DISPATCH, "type")
def _form_type(b: _UnitBuilder, s: list) -> None:
    _expect_list(s, min_len=3)
    name = _as_str(s[1])
    if name == UNKNOWN_TYPE:
        raise FactFileError(f"{UNKNOWN_TYPE!r} cannot be declared as a type")
    if b.table.lookup_type(name) is not None:
        raise FactFileError(f"Type {name!r} declared twice")
    kind = _as_enum(s[2], TypeKind, "type kind")
    opts = _options(s[3:])

    tags: FrozenSet[str] = frozenset()
    if "tags" in opts:
        tags = frozenset(_as_str(t) for t in opts["tags"][1:])
    reference: Optional[bool] = None
    if "reference" in opts:
        _expect_list(opts["reference"], min_len=2)
        reference = _as_bool(opts["reference"][1])
    b.table.declare_type(SemType(name=name, kind=kind, tags=tags, reference=reference))


# ═══════════════════════════════════════════════════════════════════════
#  Pass 1b — symbols
# ═══════════════════════════════════════════════════════════════════════

def _declare(b: _UnitBuilder, sid: str, sym: Symbol) -> None:
    if b.table.lookup_symbol(sid) is not None:
        raise FactFileError(f"Symbol id {sid!r} declared twice")
    b.table.declare_symbol(sid, sym)


@_register(_SYMBOL_DISPATCH, "parameter")
def _form_parameter(b: _UnitBuilder, s: list) -> None:
    _expect_list(s, min_len=5)
    opts = _options(s[5:])
    _declare(b, _as_str(s[1]), Symbol(
        name=_as_str(s[2]),
        kind=SymbolKind.PARAMETER,
        type=b.type_ref(s[3]),
        location=b.loc(opts),
        pass_mode=_as_enum(s[4], PassMode, "pass mode"),
    ))


@_register(_SYMBOL_DISPATCH, "field")
def _form_field(b: _UnitBuilder, s: list) -> None:
    _expect_list(s, min_len=5)
    opts = _options(s[5:])
    _declare(b, _as_str(s[1]), Symbol(
        name=_as_str(s[2]),
        kind=SymbolKind.FIELD,
        type=b.type_ref(s[3]),
        location=b.loc(opts),
        containing_type=b.type_ref(s[4]),
    ))


def _plain_symbol(kind: SymbolKind) -> _FormHandler:
    def handler(b: _UnitBuilder, s: list) -> None:
        _expect_list(s, min_len=4)
        opts = _options(s[4:])
        _declare(b, _as_str(s[1]), Symbol(
            name=_as_str(s[2]),
            kind=kind,
            type=b.type_ref(s[3]),
            location=b.loc(opts),
        ))
    return handler


_SYMBOL_DISPATCH["local"] = _plain_symbol(SymbolKind.LOCAL)
_SYMBOL_DISPATCH["symbol"] = _plain_symbol(SymbolKind.OTHER)


# ═══════════════════════════════════════════════════════════════════════
#  Pass 2 — events
# ═══════════════════════════════════════════════════════════════════════

@_register(_EVENT_DISPATCH, "parameter")
def _event_parameter(b: _UnitBuilder, s: list) -> None:
    b.events.append(ParameterDeclared(b.symbol_ref(s[1])))


@_register(_EVENT_DISPATCH, "field")
def _event_field(b: _UnitBuilder, s: list) -> None:
    b.events.append(FieldDeclared(b.symbol_ref(s[1])))


@_register(_EVENT_DISPATCH, "argument")
def _event_argument(b: _UnitBuilder, s: list) -> None:
    _expect_list(s, min_len=2)
    opts = _options(s[2:])
    parameter: Optional[Symbol] = None
    if "binds" in opts:
        _expect_list(opts["binds"], min_len=2)
        parameter = b.symbol_ref(opts["binds"][1])
        if parameter.kind is not SymbolKind.PARAMETER:
            raise FactFileError(f"(binds {parameter.name}) does not name a parameter")
    value = b.node(b.type_ref(s[1]), b.loc(opts), "argument")
    b.events.append(ArgumentPassed(value=value, parameter=parameter))


@_register(_EVENT_DISPATCH, "conversion")
def _event_conversion(b: _UnitBuilder, s: list) -> None:
    _expect_list(s, min_len=3)
    opts = _options(s[3:])
    operand = b.node(b.type_ref(s[1]), b.loc(opts), "conversion")
    b.events.append(ConversionPerformed(operand=operand, target=b.type_ref(s[2])))


@_register(_EVENT_DISPATCH, "closure")
def _event_closure(b: _UnitBuilder, s: list) -> None:
    _expect_list(s, min_len=2)
    construct = _as_enum(s[1], ClosureKind, "closure construct")
    opts = _options(s[2:])
    node = b.node(None, b.loc(opts), "closure")
    captures = opts.get("captures")
    ids = captures[1:] if captures is not None else []
    b.table.set_captures(node, [b.symbol_ref(sid) for sid in ids])
    b.events.append(ClosureFormed(node=node, construct=construct))


# ═══════════════════════════════════════════════════════════════════════
#  Units
# ═══════════════════════════════════════════════════════════════════════

def _run_pass(b: _UnitBuilder, forms: list, table: Dict[str, _FormHandler]) -> None:
    for index, form in enumerate(forms, start=1):
        tag = _head(form)
        handler = table.get(tag)
        if handler is None:
            continue
        try:
            handler(b, form)
        except FactFileError as exc:
            raise FactFileError(
                f"form #{index} ({tag} ...): {exc.message}",
                SourceLocation(b.path),
            ) from None


def _parse_unit(s: Sexp) -> CompilationUnit:
    """Parse ``(unit <path> <form> ...)``."""
    lst = _expect_list(s, min_len=2, tag="unit")
    b = _UnitBuilder(_as_str(lst[1]))
    forms = lst[2:]

    known = _known_tags()
    for index, form in enumerate(forms, start=1):
        tag = _head(form)
        if tag not in known:
            raise FactFileError(
                f"form #{index}: unknown fact form ({tag} ...)",
                SourceLocation(b.path),
            )

    _run_pass(b, forms, _TYPE_DISPATCH)
    _run_pass(b, forms, _SYMBOL_DISPATCH)
    _run_pass(b, forms, _EVENT_DISPATCH)
    _log.debug("Unit %s: %r, %d event(s)", b.path, b.table, len(b.events))
    return b.build()


def parse_facts(text: str, filename: str = "<string>") -> List[CompilationUnit]:
    """
    Parse a fact document into compilation units.

    >>> units = parse_facts('(unit "a.cs" (type S struct (tags NoCopy)))')
    >>> units[0].path
    'a.cs'
    """
    # A newline keeps a trailing comment from swallowing the closing paren.
    try:
        raw = sexpdata.loads("(" + text + "\n)", nil=None, true=None, false=None)
    except Exception as e:
        raise FactFileError(f"S-expression syntax error: {e}", SourceLocation(filename))

    units: List[CompilationUnit] = []
    seen: Dict[str, int] = {}
    for form in raw:
        unit = _parse_unit(form)
        if unit.path in seen:
            raise FactFileError(f"Unit {unit.path!r} appears twice", SourceLocation(filename))
        seen[unit.path] = len(units)
        units.append(unit)
    return units


def load_facts(path: str) -> List[CompilationUnit]:
    """Read and parse a fact file."""
    p = Path(path)
    _log.info("Loading fact file: %s", p)
    text = p.read_text(encoding="utf-8")
    try:
        return parse_facts(text, filename=str(p))
    except FactFileError as exc:
        if exc.loc is None or not exc.loc.file:
            raise FactFileError(exc.message, SourceLocation(str(p))) from None
        raise


def count_events(units: List[CompilationUnit]) -> Tuple[int, int]:
    """(units, events) totals, for logging."""
    return len(units), sum(len(u.events) for u in units)


__all__ = [
    "UNKNOWN_TYPE",
    "parse_facts",
    "load_facts",
    "count_events",
]
