#!/usr/bin/env python3
"""hangcheck/main.py - command-line entry point.

Usage examples
--------------
    # Summarise one file
    hangcheck server.js

    # Several files, separated by a ``------------`` rule
    python -m hangcheck a.js b.js

    # Machine-readable output, 0-based line numbers
    hangcheck --json --zero-index server.js

    # Treat process.exit and a project helper as terminators too
    hangcheck --exit-name exit --exit-name process.exit --exit-name die app.js

Exit codes
----------
    0   Every file exits on all analysed paths.
    1   At least one file may hang (missing exits, or no exit at all).
    2   Infrastructure failure (missing file, parser unavailable, etc.).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional, Sequence

from hangcheck import __version__
from hangcheck.analysis import analyze_file
from hangcheck.config import AnalysisConfig, SubstringHeuristic
from hangcheck.errors import HangcheckError
from hangcheck.formatting import format_report
from hangcheck.report import AnalysisReport

_log = logging.getLogger("hangcheck")

# Exit codes ----------------------------------------------------------------

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2

FILE_SEPARATOR = "------------"


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the ``hangcheck`` logger.

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

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root = logging.getLogger("hangcheck")
    root.setLevel(level)
    root.addHandler(handler)


def _config_from_args(args: argparse.Namespace) -> AnalysisConfig:
    config = AnalysisConfig()
    if args.exit_names:
        config.terminators = tuple(args.exit_names)
    if args.promise_modules:
        config.promise_modules = tuple(args.promise_modules)
    if args.error_pattern is not None:
        config.error_names = SubstringHeuristic(args.error_pattern)
    if args.max_depth is not None:
        config.max_callback_depth = args.max_depth
    return config


def may_hang(report: AnalysisReport) -> bool:
    """True unless the report shows an exit on every analysed path."""
    if report.global_exit:
        return False
    verdicts = (report.conditionals, report.callbacks, report.promises)
    if all(v.never_exits for v in verdicts):
        return True
    return any(v.need_exits for v in verdicts)


# ===========================================================================
# Argument parser
# ===========================================================================

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hangcheck",
        description=(
            "Report JavaScript code paths that never reach an exit call "
            "and so leave the process hanging."
        ),
    )
    parser.add_argument(
        "files",
        nargs="+",
        metavar="FILE",
        help="JavaScript source file(s) to analyse.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print one JSON report per file instead of a text summary.",
    )
    parser.add_argument(
        "--zero-index",
        action="store_true",
        help="Report 0-based line numbers.",
    )
    parser.add_argument(
        "--exit-name",
        dest="exit_names",
        action="append",
        metavar="NAME",
        help="Function name that terminates the process (repeatable; default: exit).",
    )
    parser.add_argument(
        "--promise-module",
        dest="promise_modules",
        action="append",
        metavar="NAME",
        help="Module whose require() result provides defer() (repeatable; default: q).",
    )
    parser.add_argument(
        "--error-pattern",
        default=None,
        metavar="TEXT",
        help='Substring identifying error parameters (default: "err").',
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        default=None,
        metavar="N",
        help="Maximum nesting depth followed through callback chains (default: 32).",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase logging verbosity (-v info, -vv debug).",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


# ===========================================================================
# Main entry point
# ===========================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the hangcheck CLI.

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
    config = _config_from_args(args)

    status = EXIT_OK
    try:
        for index, path in enumerate(args.files):
            _log.info("Analysing %s", path)
            report = analyze_file(path, config)
            if args.zero_index:
                report = report.zero_indexed()
            if may_hang(report):
                status = EXIT_ERROR
            if args.json:
                print(json.dumps({"file": path, **report.to_dict()}))
                continue
            if index:
                print(FILE_SEPARATOR)
            print(format_report(report))
    except HangcheckError as exc:
        _log.error("%s", exc)
        return EXIT_INFRA
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130
    return status


# ---------------------------------------------------------------------------
# Module execution support
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    raise SystemExit(main())
