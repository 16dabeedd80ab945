# tests/conftest.py
"""
Shared builders and fact documents for the nocopy_check test suite.
"""

import pytest

from nocopy_check.classifier import DEFAULT_MARKERS
from nocopy_check.model import (
    Node,
    PassMode,
    SemType,
    SourceLocation,
    Symbol,
    SymbolKind,
    TypeKind,
)
from nocopy_check.provider import FactTable
from nocopy_check.rules import AnalysisContext, AnalysisOptions


TEST_FILE = "Program.cs"


# ═══════════════════════════════════════════════════════════════════════
#  Builders
# ═══════════════════════════════════════════════════════════════════════

def at(line, column=0, file=TEST_FILE):
    return SourceLocation(file=file, line=line, column=column)


def struct(name, *tags):
    return SemType(name=name, kind=TypeKind.STRUCT, tags=frozenset(tags))


def klass(name, *tags):
    return SemType(name=name, kind=TypeKind.CLASS, tags=frozenset(tags))


def interface(name, *tags):
    return SemType(name=name, kind=TypeKind.INTERFACE, tags=frozenset(tags))


def param(name, sem_type, mode=PassMode.VALUE, line=1, column=0):
    return Symbol(name, SymbolKind.PARAMETER, sem_type, at(line, column), pass_mode=mode)


def local(name, sem_type, line=1, column=0):
    return Symbol(name, SymbolKind.LOCAL, sem_type, at(line, column))


def field_of(name, sem_type, container, line=1, column=0):
    return Symbol(
        name, SymbolKind.FIELD, sem_type, at(line, column),
        containing_type=container,
    )


def node(sem_type, line=1, column=0, node_id=""):
    return Node(type=sem_type, location=at(line, column), node_id=node_id)


def make_ctx(table=None, markers=DEFAULT_MARKERS):
    return AnalysisContext(
        provider=table if table is not None else FactTable(),
        options=AnalysisOptions(markers=tuple(markers)),
    )


# ═══════════════════════════════════════════════════════════════════════
#  Fixtures
# ═══════════════════════════════════════════════════════════════════════

@pytest.fixture
def nocopy_s():
    """Struct ``S`` tagged with the marker attribute."""
    return struct("S", "NoCopyAttribute")


@pytest.fixture
def plain_struct():
    return struct("Point")


@pytest.fixture
def object_type():
    return klass("object")


@pytest.fixture
def table(nocopy_s, plain_struct, object_type):
    t = FactTable()
    t.declare_type(nocopy_s)
    t.declare_type(plain_struct)
    t.declare_type(object_type)
    return t


@pytest.fixture
def ctx(table):
    return make_ctx(table)


# ═══════════════════════════════════════════════════════════════════════
#  Fact documents
# ═══════════════════════════════════════════════════════════════════════

EMPTY_UNIT_FACTS = '(unit "Empty.cs")'

SCENARIO_FACTS = '''
; S is non-copyable, Outer and Point are plain structs
(unit "Program.cs"
  (type S struct (tags NoCopyAttribute))
  (type Outer struct)
  (type Owner struct (tags NoCopy))
  (type Point struct)
  (type object class)
  (type Runner class)

  ;; Scenario A: void F(S s)
  (parameter p1 s S value (at 3 14))
  ;; Scenario B: void G(ref S s)
  (parameter p2 r S ref (at 4 18))
  (argument S (at 10 11) (binds p2))
  ;; Scenario C: object o = (object)s;
  (local l1 s S (at 12 11))
  (conversion S object (at 13 28))
  ;; Scenario D: () => x
  (local l2 x S (at 15 11))
  (closure parenthesized-lambda (at 16 17) (captures l2))
  ;; Scenario E
  (field f1 inner S Outer (at 20 11))
  (field f2 inner S Owner (at 24 11))
  (field f3 p Point Outer (at 21 15)))
'''

MULTI_UNIT_FACTS = '''
(unit "A.cs"
  (type S struct (tags NoCopy))
  (parameter p1 a S value (at 1 10)))
(unit "B.cs"
  (type S struct (tags NoCopy))
  (type object class)
  (conversion S object (at 2 5))
  (parameter p1 b S in (at 3 10)))
'''

CAPTURE_FACTS = '''
(unit "Capture.cs"
  (type S struct (tags NoCopyAttribute))
  (type Runner class)
  (local x1 x S (at 5 11))
  (symbol this this Runner (at 1 1))
  (closure simple-lambda (at 6 9) (captures x1 this))
  (closure local-function (at 8 9) (captures x1))
  (closure anonymous-method (at 10 9)))
'''
