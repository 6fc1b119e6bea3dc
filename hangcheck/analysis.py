"""
hangcheck/analysis.py
=====================

The full pipeline: resolve terminating functions, run the three analyzers,
combine their verdicts into one :class:`~hangcheck.report.AnalysisReport`.

Pipeline
--------
1. ``resolve_terminators``  – grow the terminating-function set to a fixed
   point, seeded from ``config.terminators``.
2. ``global_exit``          – does any top-level statement terminate?
3. ``collect_branches`` / ``collect_call_sites`` / ``collect_chains``
   – construct-level verdicts, computed independently over the same tree.
4. ``*_verdicts``           – per-analysis verdict sets.

Every step reads the tree and nothing else, so two runs over the same tree
return equal reports.

File-level entry points
-----------------------
``analyze_source`` parses a string with the tree-sitter front end and
``analyze_file`` reads a path first.  Only caller misuse (no tree, no file
name, a root that is not a program) raises.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Union

from hangcheck import nodes as N
from hangcheck.callback import CallSite, callback_verdicts, collect_call_sites
from hangcheck.conditional import BranchVerdict, collect_branches, conditional_verdicts
from hangcheck.config import AnalysisConfig
from hangcheck.errors import AnalysisInputError, ErrorCodes
from hangcheck.promise import PromiseChain, collect_chains, promise_verdicts
from hangcheck.report import AnalysisReport
from hangcheck.terminators import body_statements, resolve_terminators, terminates

__all__ = [
    "AnalysisRun",
    "run_analysis",
    "analyze",
    "analyze_source",
    "analyze_file",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisRun:
    """Everything one run computed, for callers that need more than the report."""

    terminators: FrozenSet[str]
    global_exits: List[N.Node]
    branches: List[BranchVerdict]
    call_sites: List[CallSite]
    chains: List[PromiseChain]
    report: AnalysisReport


def _check_tree(tree: Optional[N.Node]) -> N.Program:
    if tree is None:
        raise AnalysisInputError("No syntax tree supplied.")
    if not isinstance(tree, N.Program):
        raise AnalysisInputError(
            f"Expected a Program node, got {type(tree).__name__}.", span=getattr(tree, "loc", None)
        )
    return tree


def run_analysis(tree: Optional[N.Node], config: Optional[AnalysisConfig] = None) -> AnalysisRun:
    program = _check_tree(tree)
    config = config or AnalysisConfig()
    for warning in config.validate():
        logger.warning("config: %s", warning)

    known = resolve_terminators(program, config.primitives)
    global_exits = [stmt for stmt in body_statements(program) if terminates(stmt, known)]
    branches = collect_branches(program, known)
    depth = max(1, config.max_callback_depth)
    sites = collect_call_sites(program, known, config.error_names, depth)
    chains = collect_chains(program, known, config.promise_modules)

    report = AnalysisReport(
        global_exit=bool(global_exits),
        conditionals=conditional_verdicts(branches),
        callbacks=callback_verdicts(sites),
        promises=promise_verdicts(chains),
    )
    logger.info(
        "analysed %d statement(s): %d terminator(s), %d branch(es), %d call site(s), %d chain(s)",
        len(program.body), len(known), len(branches), len(sites), len(chains),
    )
    return AnalysisRun(
        terminators=known,
        global_exits=global_exits,
        branches=branches,
        call_sites=sites,
        chains=chains,
        report=report,
    )


def analyze(tree: Optional[N.Node], config: Optional[AnalysisConfig] = None) -> AnalysisReport:
    """Analyse *tree* and return the combined report."""
    return run_analysis(tree, config).report


def analyze_source(
    code: Union[str, bytes], config: Optional[AnalysisConfig] = None
) -> AnalysisReport:
    """Parse *code* as JavaScript and analyse it."""
    from hangcheck.frontend.treesitter import parse_source

    return analyze(parse_source(code), config)


def analyze_file(
    path: Optional[Union[str, "os.PathLike[str]"]], config: Optional[AnalysisConfig] = None
) -> AnalysisReport:
    """Read *path* as UTF-8 and analyse it.

    Raises
    ------
    AnalysisInputError
        If *path* is ``None`` or the file cannot be read.
    """
    if path is None:
        raise AnalysisInputError("No file name supplied.")
    try:
        with open(path, encoding="utf-8") as fh:
            code = fh.read()
    except (OSError, UnicodeDecodeError) as exc:
        raise AnalysisInputError(
            f"Cannot read {os.fspath(path)}: {exc}",
            code=ErrorCodes.UNREADABLE_INPUT,
            cause=exc,
        ) from exc
    logger.debug("read %d character(s) from %s", len(code), path)
    return analyze_source(code, config)
