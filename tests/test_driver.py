# tests/test_driver.py
"""
Tests for event routing, the sink and run results.
"""

import threading

import pytest

from nocopy_check.diagnostics import CollectingSink, RuleDescriptor, SuppressionManager
from nocopy_check.driver import AnalysisDriver, CompilationUnit, RunResults, analyze
from nocopy_check.errors import UnknownEventError
from nocopy_check.model import (
    ArgumentPassed,
    ClosureFormed,
    ConversionPerformed,
    EventKind,
    FieldDeclared,
    ParameterDeclared,
    PassMode,
)
from nocopy_check.provider import FactTable
from nocopy_check.rules import AnalysisOptions, Rule, RuleRegistry, default_registry
from tests.conftest import at, field_of, klass, local, make_ctx, node, param, struct


def _unit(path="Program.cs"):
    """A unit with one violation of each rule, plus exempt events."""
    s = struct("S", "NoCopy")
    table = FactTable()
    table.declare_type(s)
    obj = table.declare_type(klass("object"))
    closure = node(None, 16, 17, node_id="closure#1")
    table.set_captures(closure, [local("x", s, 15, 11)])
    events = [
        ParameterDeclared(param("s", s, PassMode.VALUE, 3, 14)),
        ParameterDeclared(param("r", s, PassMode.REF, 4, 18)),
        ArgumentPassed(value=node(s, 10, 11), parameter=None),
        FieldDeclared(field_of("inner", s, struct("Outer"), 20, 11)),
        ConversionPerformed(operand=node(s, 13, 28), target=obj),
        ClosureFormed(node=closure),
    ]
    return CompilationUnit(path=path, provider=table, events=events)


class TestRouting:

    def test_every_kind_routed(self):
        driver = AnalysisDriver()
        for kind in EventKind:
            assert len(driver.rules_for(kind)) == 1

    def test_route_matches_rule(self):
        driver = AnalysisDriver()
        assert driver.rules_for(EventKind.CONVERSION)[0].rule_id == "NCP04"
        assert driver.rules_for(EventKind.CLOSURE)[0].rule_id == "NCP05"

    def test_disabled_rule_has_empty_route(self):
        registry = default_registry()
        registry.disable("NCP02")
        driver = AnalysisDriver(registry=registry)
        assert driver.rules_for(EventKind.ARGUMENT) == []
        assert len(driver.rules_for(EventKind.PARAMETER)) == 1

    def test_unknown_event_raises(self):
        driver = AnalysisDriver()
        with pytest.raises(UnknownEventError):
            driver.check(object(), make_ctx())

    def test_empty_registry_reports_nothing(self):
        driver = AnalysisDriver(registry=RuleRegistry())
        results = driver.run(_unit())
        assert results.total_count == 0


class TestDispatch:

    def test_dispatch_reports_to_sink(self):
        s = struct("S", "NoCopy")
        sink = CollectingSink()
        count = AnalysisDriver().dispatch(
            ParameterDeclared(param("s", s)), make_ctx(), sink,
        )
        assert count == 1
        assert [d.rule_id for d in sink.diagnostics] == ["NCP01"]

    def test_dispatch_accepts_any_sink(self):
        class Recorder:
            def __init__(self):
                self.calls = []

            def report(self, rule_id, location, type_name):
                self.calls.append((rule_id, location, type_name))

        rec = Recorder()
        s = struct("S", "NoCopy")
        AnalysisDriver().dispatch(
            ArgumentPassed(value=node(s, 7, 3)), make_ctx(), rec,
        )
        assert rec.calls == [("NCP02", at(7, 3), "S")]


class TestRun:

    def test_one_of_each(self):
        results = AnalysisDriver().run(_unit())
        assert [d.rule_id for d in results.diagnostics] == [
            "NCP01", "NCP02", "NCP04", "NCP05", "NCP03",
        ]
        assert results.error_count == 5

    def test_diagnostics_ordered_by_location(self):
        results = AnalysisDriver().run(_unit())
        lines = [d.location.line for d in results.diagnostics]
        assert lines == sorted(lines)

    def test_messages_cite_type(self):
        results = AnalysisDriver().run(_unit())
        for d in results.diagnostics:
            assert "`S`" in d.message
            assert d.type_name == "S"

    def test_event_stats(self):
        results = AnalysisDriver().run(_unit())
        assert results.stats["events"] == {
            "parameter": 2, "argument": 1, "field": 1,
            "conversion": 1, "closure": 1,
        }
        assert results.stats["elapsed_ms"] >= 0.0

    def test_by_rule_and_grouping(self):
        results = AnalysisDriver().run(_unit())
        assert len(results.by_rule("NCP03")) == 1
        assert set(results.diagnostics_by_rule) == {
            "NCP01", "NCP02", "NCP03", "NCP04", "NCP05",
        }

    def test_suppress_option(self):
        options = AnalysisOptions(suppress=frozenset({"NCP02", "NCP05"}))
        results = AnalysisDriver(options=options).run(_unit())
        assert {d.rule_id for d in results.diagnostics} == {"NCP01", "NCP03", "NCP04"}

    def test_file_suppression(self):
        sm = SuppressionManager()
        sm.add_file_suppression("NCP01", "Prog*.cs")
        sm.add_file_suppression("NCP04", "Other.cs")
        results = AnalysisDriver(suppressions=sm).run(_unit())
        assert {d.rule_id for d in results.diagnostics} == {
            "NCP02", "NCP03", "NCP04", "NCP05",
        }

    def test_nothing_suppressed_by_default(self):
        results = AnalysisDriver().run(_unit())
        assert results.total_count == 5

    def test_empty_unit(self):
        unit = CompilationUnit(path="Empty.cs", provider=FactTable())
        results = AnalysisDriver().run(unit)
        assert results.total_count == 0
        assert results.unit_paths == ["Empty.cs"]

    def test_analyze_convenience(self):
        assert analyze([_unit()]).total_count == 5


class TestConcurrency:

    def test_threaded_matches_sequential(self):
        units = [_unit(f"U{i}.cs") for i in range(8)]
        sequential = AnalysisDriver().run_units(units)
        threaded = AnalysisDriver(options=AnalysisOptions(jobs=4)).run_units(units)
        assert threaded.diagnostics == sequential.diagnostics
        assert threaded.stats["events"] == sequential.stats["events"]

    def test_sink_concurrent_writers(self):
        sink = CollectingSink()
        loc = at(1)

        def writer():
            for _ in range(200):
                sink.report("NCP01", loc, "S")

        threads = [threading.Thread(target=writer) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(sink) == 1600


class TestRunResults:

    def test_summary(self):
        results = AnalysisDriver().run(_unit())
        text = results.summary()
        assert "5 diagnostics" in text
        assert "NCP04: 1 findings" in text

    def test_json_lines(self):
        results = AnalysisDriver().run(_unit())
        lines = results.to_json_lines().splitlines()
        assert len(lines) == 5
        assert '"errorId": "NCP01"' in lines[0]

    def test_gcc_format(self):
        results = AnalysisDriver().run(_unit())
        first = results.to_gcc_format().splitlines()[0]
        assert first.startswith("Program.cs:3:14: error: ")
        assert first.endswith("[NCP01]")

    def test_by_file(self):
        results = RunResults()
        assert results.by_file("x.cs") == []
        assert results.error_count == 0


class TestCustomRules:

    class ValueParameterEcho(Rule):
        """Reports every by-value parameter, whatever its type."""

        descriptor = RuleDescriptor("X01", "Echo", "parameter of type {0}")
        event_kind = EventKind.PARAMETER

        def check(self, event, ctx):
            if not isinstance(event, ParameterDeclared):
                return []
            sym = event.symbol
            if sym.type is None or sym.pass_mode is not PassMode.VALUE:
                return []
            return [self._violation(sym.location, sym.type)]

    def test_registered_rule_reports_with_own_descriptor(self):
        registry = default_registry()
        registry.register(self.ValueParameterEcho)
        results = AnalysisDriver(registry=registry).run(_unit())
        extra = results.by_rule("X01")
        assert [d.message for d in extra] == ["parameter of type S"]
        assert results.total_count == 6

    def test_custom_registry_only(self):
        registry = RuleRegistry()
        registry.register(self.ValueParameterEcho)
        results = AnalysisDriver(registry=registry).run(_unit())
        assert [d.rule_id for d in results.diagnostics] == ["X01"]
