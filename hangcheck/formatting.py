"""
hangcheck/formatting.py
=======================

Human-readable rendering of an :class:`~hangcheck.report.AnalysisReport`.

One summary is produced per file.  The first applicable section wins:

1. a top-level exit                 → ``Hooray! Your code contains a global exit.``
2. promise chains that exit somewhere → per-chain listing
3. callback chains that exit somewhere → per-chain listing
4. conditionals                     → per-condition listing, or a verdict

Deficiencies are grouped under their ``subject`` (the promised function,
the callback chain, the condition path), in report order.
"""

from __future__ import annotations

from typing import Dict, Iterable, List

from hangcheck.report import AnalysisReport, Deficiency, VerdictSet

__all__ = [
    "GLOBAL_EXIT",
    "ALWAYS_EXITS",
    "NEVER_EXITS",
    "format_report",
    "format_conditionals",
    "format_callbacks",
    "format_promises",
]

GLOBAL_EXIT = "Hooray! Your code contains a global exit."
ALWAYS_EXITS = "Hooray! Your code will always exit."
NEVER_EXITS = (
    "Your code never exits. Adding an `exit()` call to the end of your code "
    "will prevent the process from hanging."
)
CONDITIONS_HEADER = "Your code does not contain an exit under the following conditions:"


def _grouped(deficiencies: Iterable[Deficiency]) -> Dict[str, List[Deficiency]]:
    groups: Dict[str, List[Deficiency]] = {}
    for deficiency in deficiencies:
        groups.setdefault(deficiency.subject, []).append(deficiency)
    return groups


def _chain_listing(verdicts: VerdictSet, heading: str, done: str) -> str:
    if verdicts.never_exits:
        return ""
    if not verdicts.need_exits:
        return done
    blocks = []
    for subject, found in _grouped(verdicts.need_exits).items():
        lines = [heading.format(subject=subject)]
        lines.extend(f"  - {d.message}" for d in found)
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def format_promises(verdicts: VerdictSet) -> str:
    """Per-chain promise summary, or ``""`` when no chain ever exits."""
    return _chain_listing(verdicts, "For {subject}:", "Hooray! Every promise chain exits.")


def format_callbacks(verdicts: VerdictSet) -> str:
    """Per-chain callback summary, or ``""`` when no callback ever exits."""
    return _chain_listing(verdicts, "For {subject}:", "Hooray! Every callback chain exits.")


def format_conditionals(verdicts: VerdictSet) -> str:
    if verdicts.never_exits:
        return NEVER_EXITS
    if not verdicts.need_exits:
        return ALWAYS_EXITS
    entries = []
    for deficiency in verdicts.need_exits:
        entries.append(
            f"  - {deficiency.subject or deficiency.message}\n"
            f"    lines {deficiency.line}-{deficiency.end_line}"
        )
    return f"{CONDITIONS_HEADER}\n\n" + "\n".join(entries)


def format_report(report: AnalysisReport) -> str:
    if report.global_exit:
        return GLOBAL_EXIT
    return (
        format_promises(report.promises)
        or format_callbacks(report.callbacks)
        or format_conditionals(report.conditionals)
    )
