"""
nocopy_check — Value-Semantics Enforcement for Non-Copyable Types
=================================================================

Given a program's semantic facts, this package decides whether a struct
tagged as non-copyable is copied, boxed or captured, and emits one
diagnostic per violation.

Core modules
------------
model
    Types, symbols, nodes and the closed set of semantic events.
classifier
    The "is this type tagged non-copyable" predicate.
provider
    ``SemanticProvider`` protocol and the in-memory ``FactTable``.
diagnostics
    Rule descriptors (``NCP01``–``NCP05``), ``Diagnostic`` records,
    sinks and suppressions.
rules
    ``ParameterRule``, ``ArgumentRule``, ``FieldRule``, ``BoxingRule``,
    ``CaptureRule`` and the ``RuleRegistry``.
driver
    ``AnalysisDriver`` routing events to rules, ``RunResults``.
facts
    S-expression fact files → compilation units.

Quick start
-----------
>>> from nocopy_check import parse_facts, analyze
>>> units = parse_facts('''
... (unit "Program.cs"
...   (type S struct (tags NoCopyAttribute))
...   (parameter p1 s S value (at 3 14)))
... ''')
>>> print(analyze(units).to_gcc_format())
Program.cs:3:14: error: Type `S` is marked as `NoCopy` and should be received only by reference [NCP01]
"""

from __future__ import annotations

import importlib
import logging
import sys
from typing import TYPE_CHECKING, List

# ---------------------------------------------------------------------------
# Package metadata
# ---------------------------------------------------------------------------

__version__ = "0.1.0"
__license__ = "MIT"
__all__: List[str] = []          # populated below

_log = logging.getLogger(__name__)
_log.addHandler(logging.NullHandler())

# ---------------------------------------------------------------------------
# Re-export registry: (module_name, list_of_names_to_import)
# ---------------------------------------------------------------------------

_CORE_MODULES = {
    "model": [
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
        "Violation",
    ],
    "errors": [
        "NoCopyError",
        "FactFileError",
        "UnknownEventError",
    ],
    "classifier": [
        "DEFAULT_MARKERS",
        "is_non_copy",
        "is_non_copy_tag",
    ],
    "provider": [
        "SemanticProvider",
        "FactTable",
    ],
    "diagnostics": [
        "DiagnosticSeverity",
        "RuleDescriptor",
        "SUPPORTED_DIAGNOSTICS",
        "Diagnostic",
        "DiagnosticSink",
        "CollectingSink",
        "SuppressionManager",
    ],
    "rules": [
        "AnalysisOptions",
        "AnalysisContext",
        "Rule",
        "ParameterRule",
        "ArgumentRule",
        "FieldRule",
        "BoxingRule",
        "CaptureRule",
        "RuleRegistry",
        "default_registry",
    ],
    "driver": [
        "CompilationUnit",
        "RunResults",
        "AnalysisDriver",
        "analyze",
    ],
    "facts": [
        "parse_facts",
        "load_facts",
    ],
}


def _import_names(module_rel_name: str, names: List[str]) -> None:
    """Import *names* from a submodule and bind them in the package namespace."""
    fq_name = f"{__name__}.{module_rel_name}"
    try:
        mod = importlib.import_module(fq_name)
    except ImportError as exc:
        raise ImportError(
            f"nocopy_check: required submodule '{module_rel_name}' "
            f"failed to import: {exc}"
        ) from exc

    current_module = sys.modules[__name__]
    for name in names:
        obj = getattr(mod, name, None)
        if obj is None:
            raise AttributeError(
                f"nocopy_check.{module_rel_name} does not export '{name}'"
            )
        setattr(current_module, name, obj)
        __all__.append(name)

    setattr(current_module, module_rel_name, mod)
    if module_rel_name not in __all__:
        __all__.append(module_rel_name)


for _mod, _names in _CORE_MODULES.items():
    _import_names(_mod, _names)

del _mod, _names

__all__ += ["__version__"]

if TYPE_CHECKING:
    from .classifier import DEFAULT_MARKERS, is_non_copy, is_non_copy_tag
    from .diagnostics import (
        SUPPORTED_DIAGNOSTICS,
        CollectingSink,
        Diagnostic,
        DiagnosticSeverity,
        DiagnosticSink,
        RuleDescriptor,
        SuppressionManager,
    )
    from .driver import AnalysisDriver, CompilationUnit, RunResults, analyze
    from .errors import FactFileError, NoCopyError, UnknownEventError
    from .facts import load_facts, parse_facts
    from .model import (
        ArgumentPassed,
        ClosureFormed,
        ClosureKind,
        ConversionPerformed,
        EventKind,
        FieldDeclared,
        Node,
        ParameterDeclared,
        PassMode,
        SemType,
        SourceLocation,
        Symbol,
        SymbolKind,
        TypeKind,
        Violation,
    )
    from .provider import FactTable, SemanticProvider
    from .rules import (
        AnalysisContext,
        AnalysisOptions,
        ArgumentRule,
        BoxingRule,
        CaptureRule,
        FieldRule,
        ParameterRule,
        Rule,
        RuleRegistry,
        default_registry,
    )
