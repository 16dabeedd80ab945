# tests/test_provider.py
"""
Tests for the in-memory FactTable provider.
"""

from nocopy_check.model import ArgumentPassed, PassMode
from nocopy_check.provider import FactTable, SemanticProvider
from tests.conftest import local, node, param, struct


class TestFactTable:

    def test_satisfies_protocol(self):
        assert isinstance(FactTable(), SemanticProvider)

    def test_type_of_node(self, nocopy_s):
        assert FactTable().type_of(node(nocopy_s)) is nocopy_s
        assert FactTable().type_of(node(None)) is None

    def test_attributes_from_registry(self):
        table = FactTable()
        table.declare_type(struct("S", "NoCopy"))
        assert table.attributes_of(struct("S")) == frozenset({"NoCopy"})

    def test_attributes_fall_back_to_descriptor(self):
        assert FactTable().attributes_of(struct("T", "X")) == frozenset({"X"})

    def test_pass_mode_and_target(self, nocopy_s):
        table = FactTable()
        p = param("r", nocopy_s, PassMode.OUT)
        assert table.pass_mode_of(p) is PassMode.OUT
        ev = ArgumentPassed(value=node(nocopy_s), parameter=p)
        assert table.target_parameter_of(ev) is p
        assert table.target_parameter_of(ArgumentPassed(value=node(nocopy_s))) is None

    def test_captures_keyed_by_node(self, nocopy_s):
        table = FactTable()
        x = local("x", nocopy_s)
        table.set_captures(node(None, 1, node_id="c1"), [x, x])
        assert table.capture_set_of(node(None, 1, node_id="c1")) == frozenset({x})
        assert table.capture_set_of(node(None, 99, node_id="c1")) == frozenset()
        assert table.capture_set_of(node(None, node_id="c2")) == frozenset()

    def test_closures_without_ids_keep_own_captures(self, nocopy_s):
        table = FactTable()
        x = local("x", nocopy_s, line=2)
        y = local("y", nocopy_s, line=3)
        first, second = node(None, 5, 9), node(None, 7, 9)
        table.set_captures(first, [x])
        table.set_captures(second, [y])
        assert table.capture_set_of(first) == frozenset({x})
        assert table.capture_set_of(second) == frozenset({y})

    def test_declared_name_wins_over_descriptor_tags(self):
        table = FactTable()
        table.declare_type(struct("S", "NoCopy"))
        other = struct("S", "Serializable")
        assert table.attributes_of(other) == frozenset({"NoCopy"})

    def test_lookups_and_views(self, nocopy_s):
        table = FactTable()
        table.declare_type(nocopy_s)
        table.declare_symbol("l1", local("x", nocopy_s))
        assert table.lookup_type("S") is nocopy_s
        assert table.lookup_type("T") is None
        assert table.lookup_symbol("l1").name == "x"
        table.types.clear()
        assert "S" in table.types
        assert "types=1 symbols=1" in repr(table)
