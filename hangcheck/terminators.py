"""
hangcheck/terminators.py
========================

The termination predicate and the exit-function resolver.

``terminates`` answers the atomic question "is this one node a call to a
terminator?".  Every analysis pass is built on it.  The resolver closes the
set of terminator names over user functions whose bodies directly call a
terminator, iterating to a least fixed point:

    known₀ = primitives
    knownₙ₊₁ = knownₙ ∪ { f | f declared, some statement of f's body terminates under knownₙ }

Calls are only followed where they are syntactically visible.  Nothing is
tracked through assignments, data structures or higher-order functions.
"""

from __future__ import annotations

import logging
from typing import AbstractSet, FrozenSet, Iterable, Iterator, List, Optional, Sequence, Tuple

from hangcheck import nodes as N
from hangcheck.walker import iter_nodes

__all__ = [
    "EXIT",
    "dotted_name",
    "terminates",
    "terminates_any",
    "always_terminates",
    "body_statements",
    "case_verdicts",
    "function_declarations",
    "iter_resolution",
    "resolve_terminators",
]

logger = logging.getLogger(__name__)

#: The default termination primitive.
EXIT: FrozenSet[str] = frozenset({"exit"})


# ---------------------------------------------------------------------------
# Predicate
# ---------------------------------------------------------------------------

def dotted_name(node: Optional[N.Node]) -> Optional[str]:
    """``a.b.c`` for a chain of non-computed member accesses on an identifier."""
    if isinstance(node, N.Identifier):
        return node.name
    if isinstance(node, N.MemberExpression) and not node.computed:
        base = dotted_name(node.object)
        if base is not None and isinstance(node.property, N.Identifier):
            return f"{base}.{node.property.name}"
    return None


def terminates(node: Optional[N.Node], known: AbstractSet[str] = EXIT) -> bool:
    """Is *node* itself a terminating call?

    Looks through expression statements, member-access objects (so that
    ``exit().then`` and ``a().exit()`` count when ``a`` is known), variable
    initialisers and return arguments.  A bare identifier naming a known
    terminator also counts.  Every other kind is conservatively ``False``.
    """
    if node is None:
        return False
    if isinstance(node, N.ExpressionStatement):
        return terminates(node.expression, known)
    if isinstance(node, N.CallExpression):
        if dotted_name(node.callee) in known:
            return True
        return terminates(node.callee, known)
    if isinstance(node, N.MemberExpression):
        return terminates(node.object, known)
    if isinstance(node, N.VariableDeclaration):
        return any(terminates(d.init, known) for d in node.declarations)
    if isinstance(node, N.ReturnStatement):
        return terminates(node.argument, known)
    if isinstance(node, N.Identifier):
        return node.name in known
    return False


def terminates_any(body: Iterable[N.Node], known: AbstractSet[str] = EXIT) -> bool:
    """True if any single statement of *body* terminates."""
    return any(terminates(stmt, known) for stmt in body)


def body_statements(node: Optional[N.Node]) -> Tuple[N.Node, ...]:
    """The statement list a construct executes.

    Functions yield their body block's statements (an arrow function with an
    expression body yields that expression), blocks and programs their
    ``body``, switch cases their ``consequent``.  Anything else is a
    one-statement list of itself.
    """
    if node is None:
        return ()
    if isinstance(node, N.FUNCTION_TYPES):
        return body_statements(node.body)
    if isinstance(node, (N.BlockStatement, N.Program)):
        return node.body
    if isinstance(node, N.SwitchCase):
        return node.consequent
    if isinstance(node, N.CatchClause):
        return body_statements(node.body)
    return (node,)


def case_verdicts(
    cases: Sequence[N.SwitchCase], known: AbstractSet[str] = EXIT
) -> List[bool]:
    """Per-case termination with fallthrough: an empty case takes the next one's."""
    verdicts = [False] * len(cases)
    following = False
    for index in range(len(cases) - 1, -1, -1):
        case = cases[index]
        if case.consequent:
            following = always_terminates(case.consequent, known)
        verdicts[index] = following
    return verdicts


def always_terminates(statements: Iterable[N.Node], known: AbstractSet[str] = EXIT) -> bool:
    """Does running *statements* in order always reach a terminator?

    True if one statement terminates, or one statement is a conditional
    every arm of which always terminates: an ``if`` with an ``else``, a
    ``switch`` with a ``default``, or a plain nested block.
    """
    for stmt in statements:
        if terminates(stmt, known):
            return True
        if isinstance(stmt, N.BlockStatement) and always_terminates(stmt.body, known):
            return True
        if isinstance(stmt, N.IfStatement) and stmt.alternate is not None:
            if always_terminates(body_statements(stmt.consequent), known) and always_terminates(
                body_statements(stmt.alternate), known
            ):
                return True
        if isinstance(stmt, N.SwitchStatement) and stmt.cases:
            if any(case.test is None for case in stmt.cases) and all(
                case_verdicts(stmt.cases, known)
            ):
                return True
    return False


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

def function_declarations(tree: N.Node) -> List[N.FunctionDeclaration]:
    """Every named function declaration in *tree*, in document order."""
    return [
        n for n in iter_nodes(tree)
        if isinstance(n, N.FunctionDeclaration) and isinstance(n.id, N.Identifier)
    ]


def iter_resolution(
    tree: N.Node, primitives: Iterable[str] = EXIT
) -> Iterator[FrozenSet[str]]:
    """Yield the terminator set after each resolver iteration.

    The first value is the primitive set; the last is the fixed point.
    Each value is a superset of the one before.
    """
    known = frozenset(primitives)
    declarations = function_declarations(tree)
    yield known
    iteration = 0
    while True:
        iteration += 1
        added = {
            decl.id.name
            for decl in declarations
            if decl.id.name not in known and terminates_any(body_statements(decl), known)
        }
        if not added:
            logger.debug("terminators fixed after %d iteration(s): %s", iteration, sorted(known))
            return
        known = known | added
        logger.debug("resolver iteration %d added %s", iteration, sorted(added))
        yield known


def resolve_terminators(tree: N.Node, primitives: Iterable[str] = EXIT) -> FrozenSet[str]:
    """The least fixed point of :func:`iter_resolution`."""
    known = frozenset(primitives)
    for known in iter_resolution(tree, primitives):
        pass
    return known
