"""
hangcheck/callback.py
=====================

Error-first callback analysis.

A *callback consumer* is a function that receives a callback among its
parameters and invokes it::

    function request(url, cb) {
        rest.get(url).on('success', function (data) { cb(null, data); })
                     .on('error',   function (err)  { cb(err); });
    }

Each consumer gets a :class:`CallbackDeclaration` recording which parameter
carries the success dispatch and which the error dispatch, or that the
consumer exits on that path by itself (index ``-1``).  Every top-level call
to a consumer is then resolved against its actual arguments
(:class:`CallSite`), descending into nested consumer calls inside success
callbacks so that whole "callback hell" pyramids are followed.

Error dispatches are told apart from success dispatches by name: an
invocation inside an error guard (``if (err)``, ``if (err != null)``, …), or
one passing an error-named argument, is the error channel.  What counts as
an error name is pluggable (:class:`hangcheck.config.ErrorNameHeuristic`).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AbstractSet, Dict, List, Optional, Sequence, Set, Tuple

from hangcheck import nodes as N
from hangcheck.config import ErrorNameHeuristic, SubstringHeuristic
from hangcheck.report import Deficiency, VerdictSet
from hangcheck.terminators import (
    EXIT,
    always_terminates,
    body_statements,
    function_declarations,
    terminates,
)
from hangcheck.walker import iter_nodes

__all__ = [
    "ErrorRelay",
    "CallbackDeclaration",
    "CallSite",
    "guard_subject",
    "test_declaration",
    "collect_declarations",
    "test_call_site",
    "collect_call_sites",
    "callback_verdicts",
    "check_callbacks",
]

logger = logging.getLogger(__name__)

FUNCTION_LITERALS = (N.FunctionExpression, N.ArrowFunctionExpression)

_NEGATED_EQUALITY = ("!=", "!==")


# ═══════════════════════════════════════════════════════════════════════════════
# RECORDS
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ErrorRelay:
    """How a consumer forwards an error to its caller.

    ``param_index`` is the consumer parameter that receives the error and
    ``err_position`` the argument position of that invocation carrying it.
    """

    param_index: int
    err_position: int = 0


@dataclass(frozen=True)
class CallbackDeclaration:
    """Dispatch summary of one callback consumer.

    An ``*_arg_index`` of ``-1`` means the consumer itself exits on that path;
    ``None`` means that path was never seen.
    """

    node: N.Node
    name: str
    success_seen: bool = False
    success_terminates: bool = False
    success_arg_index: Optional[int] = None
    error_seen: bool = False
    error_terminates: bool = False
    error_arg_index: Optional[int] = None
    error_relay: Optional[ErrorRelay] = None
    implicit: bool = False


@dataclass(frozen=True)
class CallSite:
    """A consumer call resolved against its actual arguments."""

    call: N.CallExpression
    declaration: CallbackDeclaration
    success_terminates: bool = False
    success_node: Optional[N.Node] = None
    error_terminates: bool = False
    error_node: Optional[N.Node] = None
    nested: Tuple["CallSite", ...] = ()

    @property
    def line(self) -> int:
        return self.call.loc.line

    def chain(self) -> List["CallSite"]:
        """This call site and every nested one, pre-order."""
        found = [self]
        for child in self.nested:
            found.extend(child.chain())
        return found

    @property
    def any_exit(self) -> bool:
        return any(s.success_terminates or s.error_terminates for s in self.chain())


# ═══════════════════════════════════════════════════════════════════════════════
# SHAPE HELPERS
# ═══════════════════════════════════════════════════════════════════════════════


def _param_name(param: N.Node) -> Optional[str]:
    if isinstance(param, N.Identifier):
        return param.name
    if isinstance(param, N.AssignmentPattern):
        return _param_name(param.left)
    return None


def _is_nullish(node: N.Node) -> bool:
    if isinstance(node, N.Literal):
        return node.value is None
    return isinstance(node, N.Identifier) and node.name == "undefined"


def guard_subject(test: N.Node) -> Optional[N.Identifier]:
    """The identifier an error guard tests, or ``None`` if *test* is not one.

    Recognised shapes: ``x``, ``x != null``, ``null != x``, ``x !== undefined``
    and the remaining combinations of ``!=`` / ``!==`` with ``null`` /
    ``undefined`` on either side.
    """
    if isinstance(test, N.Identifier):
        return test
    if isinstance(test, N.BinaryExpression) and test.operator in _NEGATED_EQUALITY:
        if isinstance(test.left, N.Identifier) and _is_nullish(test.right):
            return test.left
        if isinstance(test.right, N.Identifier) and _is_nullish(test.left):
            return test.right
    return None


def _is_error_arg(node: N.Node, is_error: ErrorNameHeuristic) -> bool:
    return isinstance(node, N.Identifier) and is_error(node.name)


def _is_error_guard(node: N.Node, is_error: ErrorNameHeuristic) -> bool:
    if not isinstance(node, N.IfStatement):
        return False
    subject = guard_subject(node.test)
    return subject is not None and is_error(subject.name)


def _guard_on(statements: Sequence[N.Node], name: str) -> Optional[N.IfStatement]:
    """First direct statement that is an error guard on the identifier *name*."""
    for stmt in statements:
        if isinstance(stmt, N.IfStatement):
            subject = guard_subject(stmt.test)
            if subject is not None and subject.name == name:
                return stmt
    return None


# ═══════════════════════════════════════════════════════════════════════════════
# DECLARATIONS
# ═══════════════════════════════════════════════════════════════════════════════


def test_declaration(
    node: N.Node,
    known: AbstractSet[str] = EXIT,
    is_error: ErrorNameHeuristic = SubstringHeuristic(),
) -> Optional[CallbackDeclaration]:
    """Summarise how function *node* dispatches to its callbacks.

    Returns ``None`` unless *node* is a function that invokes one of its own
    parameters somewhere in its body (nested function literals included).
    """
    if not isinstance(node, N.FUNCTION_TYPES):
        return None
    names = [_param_name(p) for p in node.params]
    positions = {name: i for i, name in enumerate(names) if name is not None}
    body = body_statements(node)

    guards = [n for n in iter_nodes(node.body) if _is_error_guard(n, is_error)]
    guarded: Set[N.Node] = set()
    for guard in guards:
        guarded.update(iter_nodes(guard.consequent))

    success: Optional[N.CallExpression] = None
    error: Optional[N.CallExpression] = None
    for found in iter_nodes(node.body):
        if not (isinstance(found, N.CallExpression) and isinstance(found.callee, N.Identifier)):
            continue
        if found.callee.name not in positions:
            continue
        if found in guarded or any(_is_error_arg(a, is_error) for a in found.arguments):
            error = error or found
        else:
            success = success or found

    if success is None and error is None:
        return None

    ident = getattr(node, "id", None)
    name = ident.name if isinstance(ident, N.Identifier) else "<anonymous>"
    fields: Dict[str, object] = {}

    if success is not None:
        fields["success_seen"] = True
        plain = [s for s in body if s not in guards]
        if always_terminates(plain, known):
            fields.update(success_terminates=True, success_arg_index=-1)
        else:
            fields["success_arg_index"] = positions[success.callee.name]

    exiting_guard = any(always_terminates(body_statements(g.consequent), known) for g in guards)
    if exiting_guard:
        fields.update(error_seen=True, error_terminates=True, error_arg_index=-1)
    elif error is not None:
        index = positions[error.callee.name]
        err_position = 0
        for i, arg in enumerate(error.arguments):
            if _is_error_arg(arg, is_error):
                err_position = i
                break
        fields.update(
            error_seen=True,
            error_arg_index=index,
            error_relay=ErrorRelay(index, err_position),
        )

    declaration = CallbackDeclaration(node=node, name=name, **fields)
    logger.debug(
        "callback consumer %s: success=%s error=%s",
        name, declaration.success_arg_index, declaration.error_arg_index,
    )
    return declaration


def collect_declarations(
    tree: N.Node,
    known: AbstractSet[str] = EXIT,
    is_error: ErrorNameHeuristic = SubstringHeuristic(),
) -> Dict[str, CallbackDeclaration]:
    """Callback consumers among the named function declarations of *tree*."""
    found: Dict[str, CallbackDeclaration] = {}
    for node in function_declarations(tree):
        declaration = test_declaration(node, known, is_error)
        if declaration is not None:
            found[declaration.name] = declaration
    return found


def _implicit_declaration(
    call: N.CallExpression, is_error: ErrorNameHeuristic
) -> Optional[CallbackDeclaration]:
    """Library call whose last argument is a ``function (err, data)`` literal."""
    if not call.arguments:
        return None
    last = call.arguments[-1]
    if not isinstance(last, FUNCTION_LITERALS) or len(last.params) < 2:
        return None
    first = _param_name(last.params[0])
    if first is None or not is_error(first):
        return None
    index = len(call.arguments) - 1
    return CallbackDeclaration(
        node=call,
        name=N.render(call.callee),
        success_seen=True,
        success_arg_index=index,
        error_seen=True,
        error_arg_index=index,
        error_relay=ErrorRelay(index, 0),
        implicit=True,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# CALL SITES
# ═══════════════════════════════════════════════════════════════════════════════


class _CallSiteResolver:
    """Resolves call sites for one analysis run."""

    def __init__(
        self,
        declarations: Dict[str, CallbackDeclaration],
        functions: Dict[str, N.FunctionDeclaration],
        known: AbstractSet[str],
        is_error: ErrorNameHeuristic,
        max_depth: int,
    ) -> None:
        self.declarations = declarations
        self.functions = functions
        self.known = known
        self.is_error = is_error
        self.max_depth = max_depth
        self._active: Set[N.Node] = set()

    def _function(self, arg: Optional[N.Node]) -> Optional[N.Node]:
        if isinstance(arg, FUNCTION_LITERALS):
            return arg
        if isinstance(arg, N.Identifier):
            return self.functions.get(arg.name)
        return None

    def _argument(self, call: N.CallExpression, index: Optional[int]) -> Optional[N.Node]:
        if index is None or index < 0 or index >= len(call.arguments):
            return None
        return call.arguments[index]

    def resolve(self, stmt: N.Node, depth: int = 0) -> Optional[CallSite]:
        call = stmt.expression if isinstance(stmt, N.ExpressionStatement) else stmt
        if not isinstance(call, N.CallExpression):
            return None
        if depth >= self.max_depth:
            logger.debug("callback nesting deeper than %d at line %d; not followed", depth, call.loc.line)
            return None
        if call in self._active:
            return None

        declaration = None
        if isinstance(call.callee, N.Identifier):
            declaration = self.declarations.get(call.callee.name)
        if declaration is None:
            declaration = _implicit_declaration(call, self.is_error)
        if declaration is None:
            return None

        self._active.add(call)
        try:
            return self._resolve(call, declaration, depth)
        finally:
            self._active.discard(call)

    def _resolve(self, call: N.CallExpression, declaration: CallbackDeclaration, depth: int) -> CallSite:
        success_terminates = declaration.success_terminates
        success_node: Optional[N.Node] = None
        nested: List[CallSite] = []

        if declaration.success_seen and not success_terminates:
            arg = self._argument(call, declaration.success_arg_index)
            success_node = arg
            function = self._function(arg)
            if function is not None:
                statements = body_statements(function)
                success_terminates = always_terminates(statements, self.known)
                if not success_terminates:
                    for stmt in statements:
                        site = self.resolve(stmt, depth + 1)
                        if site is not None:
                            nested.append(site)
                    success_terminates = any(s.success_terminates for s in nested)
            elif arg is not None:
                success_terminates = terminates(arg, self.known)

        error_terminates = declaration.error_terminates
        error_node: Optional[N.Node] = None
        relay = declaration.error_relay
        if declaration.error_seen and not error_terminates and relay is not None:
            arg = self._argument(call, relay.param_index)
            error_node = arg
            function = self._function(arg)
            if function is not None:
                statements = body_statements(function)
                error_terminates = always_terminates(statements, self.known)
                params = getattr(function, "params", ())
                if not error_terminates and relay.err_position < len(params):
                    name = _param_name(params[relay.err_position])
                    guard = _guard_on(statements, name) if name else None
                    if guard is not None:
                        error_node = guard
                        error_terminates = always_terminates(
                            body_statements(guard.consequent), self.known
                        )
            elif arg is not None:
                error_terminates = terminates(arg, self.known)

        return CallSite(
            call=call,
            declaration=declaration,
            success_terminates=success_terminates,
            success_node=success_node,
            error_terminates=error_terminates,
            error_node=error_node,
            nested=tuple(nested),
        )


def test_call_site(
    stmt: N.Node,
    declarations: Dict[str, CallbackDeclaration],
    known: AbstractSet[str] = EXIT,
    is_error: ErrorNameHeuristic = SubstringHeuristic(),
    max_depth: int = 32,
    functions: Optional[Dict[str, N.FunctionDeclaration]] = None,
) -> Optional[CallSite]:
    """Resolve *stmt* if it calls a callback consumer, else ``None``."""
    resolver = _CallSiteResolver(declarations, functions or {}, known, is_error, max_depth)
    return resolver.resolve(stmt)


# ═══════════════════════════════════════════════════════════════════════════════
# VERDICT
# ═══════════════════════════════════════════════════════════════════════════════


def _ordinal(n: int) -> str:
    if 10 <= n % 100 <= 13:
        return f"{n}th"
    suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def _site_deficiencies(site: CallSite) -> List[Deficiency]:
    subject = f"callback chain beginning on line {site.line}"
    found: List[Deficiency] = []
    for position, record in enumerate(site.chain(), 1):
        declaration = record.declaration
        if declaration.error_seen and not record.error_terminates:
            where = record.error_node or record.call
            found.append(Deficiency(
                line=where.loc.line,
                end_line=where.loc.end_line,
                message=f"Errors caught by {_ordinal(position)} callback "
                        f"(to `{declaration.name}`) do not exit.",
                subject=subject,
            ))
        # a nested consumer that dispatches success reports for itself
        relayed = any(n.declaration.success_seen for n in record.nested)
        if declaration.success_seen and not record.success_terminates and not relayed:
            where = record.success_node or record.call
            found.append(Deficiency(
                line=where.loc.line,
                end_line=where.loc.end_line,
                message=f"Successful callbacks of {_ordinal(position)} callback "
                        f"(to `{declaration.name}`) do not exit.",
                subject=subject,
            ))
    return found


def collect_call_sites(
    tree: N.Node,
    known: AbstractSet[str] = EXIT,
    is_error: ErrorNameHeuristic = SubstringHeuristic(),
    max_depth: int = 32,
) -> List[CallSite]:
    """Resolve every top-level statement that calls a callback consumer."""
    declarations = collect_declarations(tree, known, is_error)
    functions = {n.id.name: n for n in function_declarations(tree)}
    resolver = _CallSiteResolver(declarations, functions, known, is_error, max_depth)

    sites: List[CallSite] = []
    for stmt in body_statements(tree):
        site = resolver.resolve(stmt)
        if site is not None:
            sites.append(site)
    logger.debug("resolved %d callback call site(s)", len(sites))
    return sites


def callback_verdicts(sites: Sequence[CallSite]) -> VerdictSet:
    if not sites:
        return VerdictSet()
    deficiencies: List[Deficiency] = []
    for site in sites:
        deficiencies.extend(_site_deficiencies(site))
    return VerdictSet.build(
        deficiencies,
        any_exit=any(site.any_exit for site in sites),
        all_exit=True,
    )


def check_callbacks(
    tree: N.Node,
    known: AbstractSet[str] = EXIT,
    is_error: ErrorNameHeuristic = SubstringHeuristic(),
    max_depth: int = 32,
) -> VerdictSet:
    return callback_verdicts(collect_call_sites(tree, known, is_error, max_depth))
