"""
hangcheck/conditional.py
========================

Conditional-branch analysis: does every arm of every ``if`` / ``switch``
reach an exit?

Each leaf branch gets a *condition path*, the readable chain of truth
values needed to reach it::

    if (a) { if (b) { ... } }      →  "if a is true, and if b is true"
    switch (k) { case 1: ... }     →  "if k is 1"
    switch (k) { default: ... }    →  "if k falls through to default"

Condition paths live in a side table keyed by node for the duration of one
call; the tree itself is never touched.

Reduction
---------
(a) A verdict whose path extends an exiting verdict's path is dropped: the
    enclosing branch already exits.
(b) A non-exiting ``… is true`` / ``… is false`` pair is dropped when no
    exiting verdict shares its base condition.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AbstractSet, Dict, List, Optional, Tuple

from hangcheck import nodes as N
from hangcheck.report import Deficiency, VerdictSet
from hangcheck.terminators import EXIT, always_terminates, body_statements, case_verdicts
from hangcheck.walker import walk

__all__ = [
    "BranchVerdict",
    "collect_branches",
    "reduce_branches",
    "conditional_verdicts",
    "check_conditionals",
]

logger = logging.getLogger(__name__)

AND_IF = ", and if "


@dataclass(frozen=True)
class BranchVerdict:
    """One leaf branch of a conditional."""

    condition: str
    loc: N.Span
    terminates: bool

    @property
    def line(self) -> int:
        return self.loc.line

    def to_deficiency(self) -> Deficiency:
        return Deficiency(
            line=self.loc.line,
            end_line=self.loc.end_line,
            message=f"Code does not exit {self.condition}.",
            subject=self.condition,
        )


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------

class _BranchCollector:
    """Visitor state for one ``collect_branches`` call."""

    def __init__(self, tree: N.Node, known: AbstractSet[str]) -> None:
        self.known = known
        self.conditions: Dict[N.Node, str] = {}
        self._text = tree.text if isinstance(tree, N.Program) else N.render

    def _label(self, node: N.Node, condition: str) -> None:
        self.conditions[node] = condition
        if isinstance(node, (N.BlockStatement, N.SwitchCase)):
            for stmt in body_statements(node):
                self.conditions[stmt] = condition

    def _prefix(self, node: N.Node) -> str:
        parent = self.conditions.get(node)
        return f"{parent}{AND_IF}" if parent else "if "

    def __call__(self, node: N.Node) -> Optional[List[BranchVerdict]]:
        if isinstance(node, N.IfStatement):
            return self._visit_if(node)
        if isinstance(node, N.SwitchStatement):
            return self._visit_switch(node)
        return None

    def _visit_if(self, node: N.IfStatement) -> List[BranchVerdict]:
        test = self._prefix(node) + self._text(node.test)
        leaves: List[Tuple[N.Node, str]] = []

        self._label(node.consequent, f"{test} is true")
        leaves.append((node.consequent, f"{test} is true"))
        if node.alternate is not None:
            self._label(node.alternate, f"{test} is false")
            # chained else-if / else-switch report their own leaves
            if not isinstance(node.alternate, (N.IfStatement, N.SwitchStatement)):
                leaves.append((node.alternate, f"{test} is false"))

        return [
            BranchVerdict(
                condition=condition,
                loc=leaf.loc,
                terminates=always_terminates(body_statements(leaf), self.known),
            )
            for leaf, condition in leaves
        ]

    def _visit_switch(self, node: N.SwitchStatement) -> List[BranchVerdict]:
        test = self._prefix(node) + self._text(node.discriminant)
        verdicts: List[BranchVerdict] = []
        exits = case_verdicts(node.cases, self.known)
        for case, exited in zip(node.cases, exits):
            if case.test is not None:
                condition = f"{test} is {self._text(case.test)}"
            else:
                condition = f"{test} falls through to default"
            self._label(case, condition)
            verdicts.append(BranchVerdict(condition=condition, loc=case.loc, terminates=exited))
        return verdicts


def collect_branches(tree: N.Node, known: AbstractSet[str] = EXIT) -> List[BranchVerdict]:
    """One verdict per leaf branch of every conditional in *tree*, in document order."""
    collector = _BranchCollector(tree, known)
    verdicts: List[BranchVerdict] = []
    for found in walk(tree, collector):
        verdicts.extend(found)
    logger.debug("collected %d branch verdict(s)", len(verdicts))
    return verdicts


# ---------------------------------------------------------------------------
# Reduction
# ---------------------------------------------------------------------------

def _base(condition: str) -> str:
    """*condition* minus a trailing ``true`` / ``false``."""
    for value in ("true", "false"):
        if condition.endswith(value):
            return condition[: -len(value)]
    return condition


def _first_base(condition: str) -> str:
    head, sep, _ = condition.partition(AND_IF)
    return _base(head) if sep else _base(condition)


def _nested(condition: str, ancestor: str) -> bool:
    return condition.startswith(ancestor + AND_IF)


def _drop_subsumed(
    verdicts: List[BranchVerdict],
) -> Tuple[List[BranchVerdict], List[BranchVerdict]]:
    exits = [v for v in verdicts if v.terminates]
    exits = [v for v in exits if not any(_nested(v.condition, e.condition) for e in exits)]
    non_exits = [
        v for v in verdicts
        if not v.terminates
        and not any(v.condition == e.condition or _nested(v.condition, e.condition) for e in exits)
    ]
    return exits, non_exits


def _drop_dead_pairs(
    non_exits: List[BranchVerdict], exits: List[BranchVerdict]
) -> List[BranchVerdict]:
    dropped = set()
    for i, verdict in enumerate(non_exits):
        base = _base(verdict.condition)
        if i in dropped or base == verdict.condition:
            continue
        if any(base in (_base(e.condition), _first_base(e.condition)) for e in exits):
            continue
        for j in range(i + 1, len(non_exits)):
            if j not in dropped and _base(non_exits[j].condition) == base:
                dropped.update((i, j))
                break
    return [v for i, v in enumerate(non_exits) if i not in dropped]


def reduce_branches(
    verdicts: List[BranchVerdict],
) -> Tuple[List[BranchVerdict], List[BranchVerdict]]:
    """Split and reduce *verdicts* into ``(exits, non_exits)``."""
    exits, non_exits = _drop_subsumed(verdicts)
    return exits, _drop_dead_pairs(non_exits, exits)


def conditional_verdicts(verdicts: List[BranchVerdict]) -> VerdictSet:
    exits, live = _drop_subsumed(verdicts)
    reported = _drop_dead_pairs(live, exits)
    if len(reported) < len(live):
        logger.debug("dropped %d non-exiting branch pair verdict(s)", len(live) - len(reported))
    return VerdictSet.build(
        (v.to_deficiency() for v in reported),
        any_exit=bool(exits),
        all_exit=not live,
    )


def check_conditionals(tree: N.Node, known: AbstractSet[str] = EXIT) -> VerdictSet:
    return conditional_verdicts(collect_branches(tree, known))
