#!/usr/bin/env python3
"""nocopy_check/main.py — CLI entry-point for nocopy-check.

Usage examples
--------------
    # Check one or more fact files and print GCC-style diagnostics
    nocopy-check analyze build/facts.ncf

    # cppcheck-compatible JSON lines, four worker threads
    nocopy-check analyze a.ncf b.ncf --format json --jobs 4

    # Recognise an extra marker tag and opt out of the capture rule
    nocopy-check analyze facts.ncf --marker MoveOnly --suppress NCP05

    # List the supported diagnostics
    nocopy-check rules

Exit codes
----------
    0   Success (no error diagnostics).
    1   One or more diagnostics with severity ERROR were emitted.
    2   Infrastructure failure (missing file, malformed fact file, etc.).

The module doubles as ``python -m nocopy_check`` via the companion
``nocopy_check/__main__.py``.
"""

from __future__ import annotations

import argparse
import logging
import sys
import textwrap
from pathlib import Path
from typing import List, Optional, Sequence, TextIO

from nocopy_check import __version__
from nocopy_check.classifier import DEFAULT_MARKERS
from nocopy_check.diagnostics import SUPPORTED_DIAGNOSTICS, Diagnostic
from nocopy_check.driver import AnalysisDriver, CompilationUnit, RunResults
from nocopy_check.errors import FactFileError
from nocopy_check.facts import count_events, load_facts
from nocopy_check.rules import AnalysisOptions

_log = logging.getLogger("nocopy_check")

# Exit codes ----------------------------------------------------------------

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the ``nocopy_check`` logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    root = logging.getLogger("nocopy_check")
    root.setLevel(level)
    if not any(getattr(h, "_nocopy_cli", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
                datefmt="%H:%M:%S",
            )
        )
        handler._nocopy_cli = True  # type: ignore[attr-defined]
        root.addHandler(handler)


def _resolve_path(raw: str, label: str = "file") -> Path:
    """Resolve *raw* to an absolute ``Path``, raising on missing files."""
    p = Path(raw).expanduser().resolve()
    if not p.exists():
        _log.error("%s not found: %s", label, p)
        raise SystemExit(EXIT_INFRA)
    return p


def _open_output(dest: Optional[str]) -> TextIO:
    """``None`` or ``"-"`` → ``sys.stdout``; otherwise open the path."""
    if dest is None or dest == "-":
        return sys.stdout
    p = Path(dest).expanduser().resolve()
    p.parent.mkdir(parents=True, exist_ok=True)
    return open(p, "w", encoding="utf-8")


def _marker_name(raw: str) -> str:
    """argparse ``type`` for ``--marker``: a non-blank tag name."""
    name = raw.strip()
    if not name:
        raise argparse.ArgumentTypeError("marker name must not be empty")
    return name


def _emit_diagnostics(results: RunResults, fmt: str, stream: TextIO) -> int:
    """Write the diagnostics of *results* to *stream*.

    Returns the count of ERROR-severity diagnostics.
    """
    diagnostics: List[Diagnostic] = results.diagnostics
    for diag in diagnostics:
        if fmt == "json":
            stream.write(diag.to_json_str() + "\n")
        else:
            stream.write(diag.to_gcc_format() + "\n")

    if fmt == "summary":
        stream.write("\n" + results.summary() + "\n")
    return results.error_count


# ===========================================================================
# Sub-command implementations
# ===========================================================================

def cmd_analyze(args: argparse.Namespace) -> int:
    """Load fact files, run the rules and emit diagnostics."""
    units: List[CompilationUnit] = []
    for raw in args.fact_files:
        path = _resolve_path(raw, "fact file")
        try:
            units.extend(load_facts(str(path)))
        except FactFileError as exc:
            _log.error("Failed to load fact file: %s", exc)
            return EXIT_INFRA

    n_units, n_events = count_events(units)
    _log.info("Loaded %d unit(s), %d event(s)", n_units, n_events)

    markers = tuple(DEFAULT_MARKERS) + tuple(args.marker or ())
    options = AnalysisOptions(
        markers=markers,
        jobs=args.jobs,
        suppress=frozenset(args.suppress or ()),
    )
    results = AnalysisDriver(options=options).run_units(units)

    out = _open_output(args.output)
    try:
        error_count = _emit_diagnostics(results, args.format, out)
    finally:
        if out is not sys.stdout:
            out.close()

    return EXIT_ERROR if error_count else EXIT_OK


def cmd_rules(args: argparse.Namespace) -> int:
    """List the supported diagnostics."""
    out = _open_output(args.output)
    try:
        for d in SUPPORTED_DIAGNOSTICS:
            state = "enabled" if d.enabled_by_default else "disabled"
            out.write(f"  {d.rule_id:7s} {d.title:22s} {d.severity.value:7s} {state}\n")
            out.write(f"  {'':7s} {d.format('<type>')}\n")
    finally:
        if out is not sys.stdout:
            out.close()
    return EXIT_OK


# ===========================================================================
# Argument parser construction
# ===========================================================================

def _build_parser() -> argparse.ArgumentParser:
    """Construct the CLI argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="nocopy-check",
        description=(
            "nocopy-check — flags copies, boxing and closure captures of\n"
            "struct types tagged as non-copyable."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              nocopy-check analyze facts.ncf
              nocopy-check analyze a.ncf b.ncf --format json --jobs 4
              nocopy-check rules
        """),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug).",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
    )

    # --- analyze -----------------------------------------------------------
    p_analyze = subparsers.add_parser(
        "analyze",
        aliases=["analyse"],
        help="Check fact files for non-copyable violations.",
        description="Load one or more fact files and run all enabled rules.",
    )
    p_analyze.add_argument(
        "fact_files",
        nargs="+",
        metavar="FACTS",
        help="Fact file(s) produced by the front end.",
    )
    p_analyze.add_argument(
        "-o", "--output",
        default=None,
        metavar="FILE",
        help='Output file ("-" or omit for stdout).',
    )
    p_analyze.add_argument(
        "-f", "--format",
        choices=["json", "gcc", "summary"],
        default="gcc",
        help="Output format (default: gcc).",
    )
    p_analyze.add_argument(
        "-j", "--jobs",
        type=int,
        default=1,
        metavar="N",
        help="Worker threads for independent units (default: 1).",
    )
    p_analyze.add_argument(
        "--marker",
        action="append",
        type=_marker_name,
        metavar="NAME",
        help="Additional tag name marking a type non-copyable (repeatable).",
    )
    p_analyze.add_argument(
        "--suppress",
        action="append",
        metavar="ID",
        help="Rule id to suppress globally (repeatable).",
    )
    p_analyze.set_defaults(func=cmd_analyze)

    # --- rules -------------------------------------------------------------
    p_rules = subparsers.add_parser(
        "rules",
        help="List supported diagnostics.",
    )
    p_rules.add_argument(
        "-o", "--output",
        default=None,
        metavar="FILE",
        help='Output file ("-" or omit for stdout).',
    )
    p_rules.set_defaults(func=cmd_rules)

    return parser


# ===========================================================================
# Main entry point
# ===========================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the nocopy-check CLI.

    Parameters
    ----------
    argv:
        Command-line arguments.  ``None`` → ``sys.argv[1:]``.

    Returns
    -------
    int
        Exit code (see module docstring for semantics).
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.verbose)

    if not hasattr(args, "func"):
        parser.print_help(sys.stderr)
        return EXIT_INFRA

    try:
        return args.func(args)
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else EXIT_INFRA
    except OSError as exc:
        _log.error("I/O failure: %s", exc)
        return EXIT_INFRA


if __name__ == "__main__":
    raise SystemExit(main())
