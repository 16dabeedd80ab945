# tests/test_main.py
"""
Tests for the nocopy-check command-line interface.
"""

import json
import logging

import pytest

from nocopy_check.main import EXIT_ERROR, EXIT_INFRA, EXIT_OK, main
from tests.conftest import EMPTY_UNIT_FACTS, MULTI_UNIT_FACTS, SCENARIO_FACTS


MOVE_ONLY_FACTS = '''
(unit "Buf.cs"
  (type Buffer struct (tags MoveOnly))
  (parameter p1 b Buffer value (at 2 9)))
'''


@pytest.fixture(autouse=True)
def _reset_cli_logging():
    yield
    logger = logging.getLogger("nocopy_check")
    for h in list(logger.handlers):
        if getattr(h, "_nocopy_cli", False):
            logger.removeHandler(h)


@pytest.fixture
def write_facts(tmp_path):
    def write(text, name="facts.ncf"):
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return str(path)
    return write


class TestAnalyze:

    def test_violations_exit_one(self, write_facts, capsys):
        assert main(["analyze", write_facts(SCENARIO_FACTS)]) == EXIT_ERROR
        lines = capsys.readouterr().out.splitlines()
        assert len(lines) == 4
        assert lines[0].startswith("Program.cs:3:14: error: Type `S`")
        assert lines[0].endswith("[NCP01]")

    def test_clean_exit_zero(self, write_facts, capsys):
        assert main(["analyze", write_facts(EMPTY_UNIT_FACTS)]) == EXIT_OK
        assert capsys.readouterr().out == ""

    def test_json_format(self, write_facts, capsys):
        main(["analyze", write_facts(SCENARIO_FACTS), "--format", "json"])
        records = [json.loads(l) for l in capsys.readouterr().out.splitlines()]
        assert [r["errorId"] for r in records] == ["NCP01", "NCP04", "NCP05", "NCP03"]
        assert all(r["severity"] == "error" for r in records)

    def test_summary_format(self, write_facts, capsys):
        main(["analyze", write_facts(SCENARIO_FACTS), "-f", "summary"])
        out = capsys.readouterr().out
        assert "Analysis complete: 4 diagnostics (4 errors) in 1 unit(s)" in out
        assert "NCP05: 1 findings" in out

    def test_several_files(self, write_facts, capsys):
        a = write_facts(SCENARIO_FACTS, "a.ncf")
        b = write_facts(MULTI_UNIT_FACTS, "b.ncf")
        assert main(["analyze", a, b, "--jobs", "2"]) == EXIT_ERROR
        assert len(capsys.readouterr().out.splitlines()) == 6

    def test_suppress_everything_found(self, write_facts, capsys):
        argv = ["analyze", write_facts(SCENARIO_FACTS)]
        for rule_id in ("NCP01", "NCP03", "NCP04", "NCP05"):
            argv += ["--suppress", rule_id]
        assert main(argv) == EXIT_OK
        assert capsys.readouterr().out == ""

    def test_extra_marker(self, write_facts, capsys):
        path = write_facts(MOVE_ONLY_FACTS)
        assert main(["analyze", path]) == EXIT_OK
        assert main(["analyze", path, "--marker", "MoveOnly"]) == EXIT_ERROR
        assert "Type `Buffer`" in capsys.readouterr().out

    def test_output_file(self, write_facts, tmp_path, capsys):
        dest = tmp_path / "out" / "report.txt"
        main(["analyze", write_facts(SCENARIO_FACTS), "-o", str(dest)])
        assert capsys.readouterr().out == ""
        assert len(dest.read_text(encoding="utf-8").splitlines()) == 4

    def test_missing_file(self, tmp_path):
        assert main(["analyze", str(tmp_path / "nope.ncf")]) == EXIT_INFRA

    def test_malformed_file(self, write_facts):
        assert main(["analyze", write_facts("(unit \"a.cs\" (bogus))")]) == EXIT_INFRA

    def test_analyse_alias(self, write_facts):
        assert main(["analyse", write_facts(EMPTY_UNIT_FACTS)]) == EXIT_OK


class TestRules:

    def test_lists_all_rules(self, capsys):
        assert main(["rules"]) == EXIT_OK
        out = capsys.readouterr().out
        for rule_id in ("NCP01", "NCP02", "NCP03", "NCP04", "NCP05"):
            assert rule_id in out
        assert "Captured by Closure" in out
        assert "Type `<type>` is marked as `NoCopy`" in out


class TestParser:

    def test_no_command(self, capsys):
        assert main([]) == EXIT_INFRA
        assert "usage" in capsys.readouterr().err

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as info:
            main(["--version"])
        assert info.value.code == 0
        assert "nocopy-check" in capsys.readouterr().out

    def test_bad_format(self, write_facts):
        with pytest.raises(SystemExit):
            main(["analyze", write_facts(EMPTY_UNIT_FACTS), "-f", "xml"])


class TestMarkerOption:

    @pytest.mark.parametrize("value", ["", "   "])
    def test_blank_marker_rejected(self, write_facts, capsys, value):
        with pytest.raises(SystemExit):
            main(["analyze", write_facts(MOVE_ONLY_FACTS), "--marker", value])
        assert "marker name must not be empty" in capsys.readouterr().err
