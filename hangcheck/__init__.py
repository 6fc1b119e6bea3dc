"""hangcheck - find JavaScript code paths that never reach ``exit()``.

A Node.js script that forgets to call ``exit()`` on some path leaves the
process hanging.  hangcheck pattern-matches the idioms where that usually
happens and reports, per idiom, whether the code always, never or only
sometimes exits, with line-tagged places where an exit is missing.

Submodules
----------
nodes
    Immutable syntax tree model (ESTree field names), ``Span``, ``render``.

walker
    ``SYNTAX`` child-slot table and the pre-order ``walk`` / ``iter_nodes``.

terminators
    The termination predicate and the fixed-point resolver of functions
    that always exit.

conditional, callback, promise
    The three analyzers: ``if`` / ``switch`` branches, error-first
    callback chains, and q-style promise chains.

analysis
    ``analyze`` (tree → report), ``analyze_source``, ``analyze_file``.

report, formatting
    ``AnalysisReport`` and its human-readable rendering.

frontend
    tree-sitter parsing and ESTree (esprima / acorn JSON) conversion.

main
    CLI entry-point.

Usage
-----
Command-line::

    hangcheck server.js
    python -m hangcheck --json a.js b.js

Programmatic::

    from hangcheck import analyze_source

    report = analyze_source(open("server.js").read())
    print(report.to_json_str())
"""

from __future__ import annotations

from hangcheck.analysis import analyze, analyze_file, analyze_source, run_analysis
from hangcheck.config import AnalysisConfig
from hangcheck.errors import HangcheckError
from hangcheck.report import AnalysisReport, Deficiency, VerdictSet

__version__: str = "0.1.0"
__all__: list[str] = [
    "__version__",
    "AnalysisConfig",
    "AnalysisReport",
    "Deficiency",
    "HangcheckError",
    "VerdictSet",
    "analyze",
    "analyze_file",
    "analyze_source",
    "run_analysis",
]
