"""
hangcheck/promise.py
====================

Deferred / promise chain analysis.

A *promise-returning function* follows the deferred pattern of the ``q``
library::

    var Q = require('q');
    function request(url) {
        var deferred = Q.defer();
        ...
        return deferred.promise;
    }

Every top-level statement whose call chain starts at such a function is
flattened into segments (``request(url)``, ``.then(f)``, ``.catch(g)``, …)
and scanned twice:

* backward, from the last segment, with four latches (``then``, ``catch``,
  ``fin``, ``done``).  A latch closes at the first handler on its path that
  exits, so a later handler shadows earlier ones.  This yields the indices
  where the success and the error path last *exit*.
* forward, from segment 1, to find where each path last *runs*.

Index 0 is the initial call and doubles as "not found".  The latch state is
an immutable :class:`ChainLatches` threaded through a fold.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import AbstractSet, Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

from hangcheck import nodes as N
from hangcheck.report import Deficiency, VerdictSet
from hangcheck.terminators import (
    EXIT,
    always_terminates,
    body_statements,
    dotted_name,
    function_declarations,
    terminates,
)

__all__ = [
    "METHOD_KINDS",
    "ChainSegment",
    "ChainLatches",
    "PromiseChain",
    "promise_bindings",
    "promise_functions",
    "flatten_chain",
    "scan_chain",
    "chain_deficiencies",
    "collect_chains",
    "promise_verdicts",
    "check_promises",
]

logger = logging.getLogger(__name__)

#: Promise method name → canonical kind.
METHOD_KINDS: Dict[str, str] = {
    "then": "then",
    "spread": "then",
    "catch": "catch",
    "fail": "catch",
    "finally": "finally",
    "fin": "finally",
    "done": "done",
}

FUNCTION_LITERALS = (N.FunctionExpression, N.ArrowFunctionExpression)


# ---------------------------------------------------------------------------
# Chain model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ChainSegment:
    """One link of a call chain: the initial call or a method call."""

    name: str
    arguments: Tuple[N.Node, ...]
    node: N.Node

    @property
    def kind(self) -> Optional[str]:
        return METHOD_KINDS.get(self.name)

    def argument(self, index: int) -> Optional[N.Node]:
        return self.arguments[index] if index < len(self.arguments) else None


@dataclass(frozen=True)
class ChainLatches:
    """Which handler paths are still waiting for an exit during the backward scan."""

    then: bool = True
    catch: bool = True
    fin: bool = True
    done: bool = True


@dataclass(frozen=True)
class PromiseChain:
    statement: N.Node
    segments: Tuple[ChainSegment, ...]
    last_run_index: int = 0
    last_run_exit_index: int = 0
    last_caught_index: int = 0
    last_caught_exit_index: int = 0

    @property
    def name(self) -> str:
        return self.segments[0].name

    @property
    def run_exits(self) -> bool:
        return bool(self.last_run_exit_index)

    @property
    def last_run_exits(self) -> bool:
        return self.run_exits and self.last_run_exit_index >= self.last_run_index

    @property
    def has_catch(self) -> bool:
        return bool(self.last_caught_index)

    @property
    def catch_exits(self) -> bool:
        return bool(self.last_caught_exit_index)

    @property
    def last_catch_exits(self) -> bool:
        return self.catch_exits and self.last_caught_exit_index >= self.last_caught_index

    @property
    def any_exit(self) -> bool:
        return self.run_exits or self.catch_exits


# ---------------------------------------------------------------------------
# Recognition
# ---------------------------------------------------------------------------

def _is_require_of(node: Optional[N.Node], modules: Iterable[str]) -> bool:
    if not (isinstance(node, N.CallExpression) and isinstance(node.callee, N.Identifier)):
        return False
    if node.callee.name != "require" or not node.arguments:
        return False
    first = node.arguments[0]
    return isinstance(first, N.Literal) and first.value in tuple(modules)


def promise_bindings(body: Iterable[N.Node], modules: Iterable[str] = ("q",)) -> FrozenSet[str]:
    """Names bound by ``var X = require('<module>')`` among the statements of *body*."""
    modules = tuple(modules)
    names: Set[str] = set()
    for stmt in body:
        if not isinstance(stmt, N.VariableDeclaration):
            continue
        for declarator in stmt.declarations:
            if isinstance(declarator.id, N.Identifier) and _is_require_of(declarator.init, modules):
                names.add(declarator.id.name)
    return frozenset(names)


def _deferred_name(declarator: N.VariableDeclarator, providers: AbstractSet[str]) -> Optional[str]:
    init = declarator.init
    if not (isinstance(init, N.CallExpression) and isinstance(declarator.id, N.Identifier)):
        return None
    callee = init.callee
    if (
        isinstance(callee, N.MemberExpression)
        and isinstance(callee.object, N.Identifier)
        and callee.object.name in providers
        and dotted_name(callee.property) == "defer"
    ):
        return declarator.id.name
    return None


def _returns_promise(function: N.FunctionDeclaration, providers: AbstractSet[str]) -> bool:
    deferred: Set[str] = set()
    for stmt in body_statements(function):
        if isinstance(stmt, N.VariableDeclaration):
            for declarator in stmt.declarations:
                name = _deferred_name(declarator, providers)
                if name is not None:
                    deferred.add(name)
        elif deferred and isinstance(stmt, N.ReturnStatement):
            target = stmt.argument
            if (
                isinstance(target, N.MemberExpression)
                and isinstance(target.object, N.Identifier)
                and target.object.name in deferred
                and dotted_name(target.property) == "promise"
            ):
                return True
    return False


def promise_functions(tree: N.Node, modules: Iterable[str] = ("q",)) -> FrozenSet[str]:
    """Names of the declared functions that return a deferred's promise."""
    modules = tuple(modules)
    global_providers = promise_bindings(body_statements(tree), modules)
    found: Set[str] = set()
    for function in function_declarations(tree):
        providers = global_providers | promise_bindings(body_statements(function), modules)
        if providers and _returns_promise(function, providers):
            found.add(function.id.name)
    if found:
        logger.debug("promise-returning functions: %s", sorted(found))
    return frozenset(found)


def flatten_chain(expr: N.Node) -> Tuple[ChainSegment, ...]:
    """Split ``f(a).then(b).catch(c)`` into ``(f(a), then(b), catch(c))``."""
    segments: List[ChainSegment] = []
    current = expr
    while isinstance(current, N.CallExpression) and isinstance(current.callee, N.MemberExpression):
        method = dotted_name(current.callee.property) or ""
        segments.append(ChainSegment(method, current.arguments, current))
        current = current.callee.object
    if isinstance(current, N.CallExpression):
        segments.append(ChainSegment(dotted_name(current.callee) or "", current.arguments, current))
    else:
        segments.append(ChainSegment(dotted_name(current) or "", (), current))
    segments.reverse()
    return tuple(segments)


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------

class _HandlerTest:
    """Does a handler argument exit?"""

    def __init__(self, known: AbstractSet[str], functions: Dict[str, N.FunctionDeclaration]) -> None:
        self.known = known
        self.functions = functions

    def __call__(self, handler: Optional[N.Node]) -> bool:
        if handler is None:
            return False
        if isinstance(handler, FUNCTION_LITERALS):
            return always_terminates(body_statements(handler), self.known)
        if isinstance(handler, N.Identifier):
            if terminates(handler, self.known):
                return True
            declared = self.functions.get(handler.name)
            return declared is not None and always_terminates(body_statements(declared), self.known)
        return False


def _step(
    latches: ChainLatches, segment: ChainSegment, exits: _HandlerTest
) -> Tuple[ChainLatches, bool, bool]:
    """Fold one segment into the latch state: ``(latches, run_exits, catch_exits)``."""
    kind = segment.kind
    run_exits = catch_exits = False

    if kind == "catch":
        if latches.catch and exits(segment.argument(0)):
            return replace(latches, catch=False), False, True
        return latches, False, False

    if kind == "finally" and not latches.fin:
        return latches, False, False
    if kind == "done" and not latches.done:
        return latches, False, False

    if latches.then and exits(segment.argument(0)):
        latches = replace(latches, then=False, fin=False)
        run_exits = True
    if latches.catch and exits(segment.argument(1)):
        latches = replace(latches, catch=False)
        catch_exits = True
    if kind == "done":
        latches = replace(latches, done=False)
    return latches, run_exits, catch_exits


def _scan(
    statement: N.Node, segments: Tuple[ChainSegment, ...], exits: _HandlerTest
) -> PromiseChain:
    latches = ChainLatches()
    run_exit_index = caught_exit_index = 0
    for index in range(len(segments) - 1, 0, -1):
        segment = segments[index]
        if segment.kind is None:
            break
        latches, run_exits, catch_exits = _step(latches, segment, exits)
        if run_exits and not run_exit_index:
            run_exit_index = index
        if catch_exits and not caught_exit_index:
            caught_exit_index = index

    run_index = caught_index = 0
    for index in range(1, len(segments)):
        segment = segments[index]
        if segment.kind is None:
            break
        if segment.kind == "catch":
            caught_index = index
        else:
            if len(segment.arguments) > 1:
                caught_index = index
            run_index = index

    return PromiseChain(
        statement=statement,
        segments=segments,
        last_run_index=run_index,
        last_run_exit_index=run_exit_index,
        last_caught_index=caught_index,
        last_caught_exit_index=caught_exit_index,
    )


def scan_chain(
    stmt: N.Node,
    known: AbstractSet[str] = EXIT,
    functions: Optional[Dict[str, N.FunctionDeclaration]] = None,
) -> PromiseChain:
    """Flatten and scan the call chain of expression statement *stmt*."""
    expr = stmt.expression if isinstance(stmt, N.ExpressionStatement) else stmt
    return _scan(stmt, flatten_chain(expr), _HandlerTest(known, functions or {}))


# ---------------------------------------------------------------------------
# Verdict
# ---------------------------------------------------------------------------

def _lines(node: N.Node) -> str:
    return f"lines {node.loc.line}-{node.loc.end_line}"


def chain_deficiencies(chain: PromiseChain) -> List[Deficiency]:
    call = chain.statement
    subject = f"promised function `{chain.name}` (call {_lines(call)})"
    found: List[Deficiency] = []

    if not chain.last_run_exits:
        segment = chain.segments[chain.last_run_index]
        where = segment.argument(0) if chain.last_run_index else None
        where = where or segment.node
        status = "Some successful runs do not exit" if chain.run_exits else "No successful runs exit"
        if chain.has_catch:
            other = "all caught errors do" if chain.last_catch_exits else (
                "some caught errors do" if chain.catch_exits else "no caught errors do either"
            )
            status = f"{status}, while {other}"
        found.append(Deficiency(
            line=where.loc.line,
            end_line=where.loc.end_line,
            message=f"{status}. Adding an exit call to `{segment.name}` call "
                    f"({_lines(where)}) will prevent hanging.",
            subject=subject,
        ))

    if chain.has_catch and not chain.last_catch_exits:
        segment = chain.segments[chain.last_caught_index]
        second = segment.kind != "catch"
        where = segment.argument(1 if second else 0) or segment.node
        status = "Some caught errors do not exit" if chain.catch_exits else "No caught errors exit"
        other = "all successful runs do" if chain.last_run_exits else (
            "some successful runs do" if chain.run_exits else "no successful runs do either"
        )
        target = f"second parameter of `{segment.name}`" if second else f"`{segment.name}`"
        found.append(Deficiency(
            line=where.loc.line,
            end_line=where.loc.end_line,
            message=f"{status}, while {other}. Adding an exit call to {target} call "
                    f"({_lines(where)}) will prevent hanging.",
            subject=subject,
        ))
    return found


def collect_chains(
    tree: N.Node, known: AbstractSet[str] = EXIT, modules: Iterable[str] = ("q",)
) -> List[PromiseChain]:
    """Scan every top-level statement rooted at a promise-returning function."""
    promised = promise_functions(tree, modules)
    if not promised:
        return []
    functions = {f.id.name: f for f in function_declarations(tree)}
    exits = _HandlerTest(known, functions)
    chains: List[PromiseChain] = []
    for stmt in body_statements(tree):
        if not (isinstance(stmt, N.ExpressionStatement) and isinstance(stmt.expression, N.CallExpression)):
            continue
        segments = flatten_chain(stmt.expression)
        if segments[0].name in promised and isinstance(segments[0].node, N.CallExpression):
            chain = _scan(stmt, segments, exits)
            logger.debug(
                "promise chain `%s` at line %d: run %d/%d caught %d/%d",
                chain.name, stmt.loc.line,
                chain.last_run_exit_index, chain.last_run_index,
                chain.last_caught_exit_index, chain.last_caught_index,
            )
            chains.append(chain)
    return chains


def promise_verdicts(chains: Sequence[PromiseChain]) -> VerdictSet:
    if not chains:
        return VerdictSet()
    deficiencies: List[Deficiency] = []
    for chain in chains:
        deficiencies.extend(chain_deficiencies(chain))
    return VerdictSet.build(
        deficiencies,
        any_exit=any(chain.any_exit for chain in chains),
        all_exit=True,
    )


def check_promises(
    tree: N.Node, known: AbstractSet[str] = EXIT, modules: Iterable[str] = ("q",)
) -> VerdictSet:
    return promise_verdicts(collect_chains(tree, known, modules))
