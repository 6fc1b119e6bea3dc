"""
hangcheck/walker.py
===================

Table-driven traversal over :mod:`hangcheck.nodes` trees.

Provides:
- ``SYNTAX`` - the child-slot table, one ordered tuple of field names per node
  kind, in ESTree visitor-key order
- ``walk`` - apply a visitor to every descendant and collect truthy results
- ``iter_nodes`` / ``children`` - generator helpers built on the same table

No analysis logic lives here.
"""

from __future__ import annotations

from typing import Any, Callable, Iterator, List, Mapping, Optional, Tuple, TypeVar

from hangcheck import nodes as N

__all__ = [
    "SYNTAX",
    "Visitor",
    "walk",
    "iter_nodes",
    "children",
]

R = TypeVar("R")

Visitor = Callable[[N.Node], Any]

#: Ordered child slots per node kind.
SYNTAX: Mapping[str, Tuple[str, ...]] = {
    "Program": ("body",),
    "BlockStatement": ("body",),
    "ExpressionStatement": ("expression",),
    "EmptyStatement": (),
    "IfStatement": ("test", "consequent", "alternate"),
    "SwitchStatement": ("discriminant", "cases"),
    "SwitchCase": ("test", "consequent"),
    "ReturnStatement": ("argument",),
    "ThrowStatement": ("argument",),
    "BreakStatement": ("label",),
    "ContinueStatement": ("label",),
    "TryStatement": ("block", "handler", "finalizer"),
    "CatchClause": ("param", "body"),
    "WhileStatement": ("test", "body"),
    "DoWhileStatement": ("body", "test"),
    "ForStatement": ("init", "test", "update", "body"),
    "ForInStatement": ("left", "right", "body"),
    "ForOfStatement": ("left", "right", "body"),
    "LabeledStatement": ("label", "body"),
    "VariableDeclaration": ("declarations",),
    "VariableDeclarator": ("id", "init"),
    "FunctionDeclaration": ("id", "params", "body"),
    "FunctionExpression": ("id", "params", "body"),
    "ArrowFunctionExpression": ("params", "body"),
    "Identifier": (),
    "Literal": (),
    "TemplateLiteral": ("expressions",),
    "ThisExpression": (),
    "ArrayExpression": ("elements",),
    "ObjectExpression": ("properties",),
    "Property": ("key", "value"),
    "CallExpression": ("callee", "arguments"),
    "NewExpression": ("callee", "arguments"),
    "MemberExpression": ("object", "property"),
    "UnaryExpression": ("argument",),
    "UpdateExpression": ("argument",),
    "BinaryExpression": ("left", "right"),
    "LogicalExpression": ("left", "right"),
    "AssignmentExpression": ("left", "right"),
    "AssignmentPattern": ("left", "right"),
    "RestElement": ("argument",),
    "ConditionalExpression": ("test", "consequent", "alternate"),
    "SequenceExpression": ("expressions",),
    "SpreadElement": ("argument",),
    "AwaitExpression": ("argument",),
    "UnknownNode": (),
}


def children(
    node: N.Node, syntax: Optional[Mapping[str, Tuple[str, ...]]] = None
) -> Iterator[N.Node]:
    """Yield the direct children of *node* in slot order."""
    table = SYNTAX if syntax is None else syntax
    for slot in table.get(node.kind, ()):
        value = getattr(node, slot, None)
        if value is None:
            continue
        if isinstance(value, tuple):
            for element in value:
                if element is not None:
                    yield element
        elif isinstance(value, N.Node):
            yield value


def walk(
    node: N.Node,
    visitor: Callable[[N.Node], Optional[R]],
    syntax: Optional[Mapping[str, Tuple[str, ...]]] = None,
) -> List[R]:
    """Apply *visitor* to every descendant of *node*, pre-order.

    The root itself is not visited.  Results that are falsy (``None``,
    ``False``, empty containers) are dropped; the rest are returned in
    document order.  Kinds missing from the table are treated as leaves.
    """
    results: List[R] = []
    table = SYNTAX if syntax is None else syntax
    stack = [children(node, table)]
    while stack:
        child = next(stack[-1], None)
        if child is None:
            stack.pop()
            continue
        found = visitor(child)
        if found:
            results.append(found)
        stack.append(children(child, table))
    return results


def iter_nodes(node: N.Node, include_root: bool = True) -> Iterator[N.Node]:
    """Yield *node* (optionally) and all of its descendants, pre-order."""
    if include_root:
        yield node
    stack = [children(node)]
    while stack:
        child = next(stack[-1], None)
        if child is None:
            stack.pop()
            continue
        yield child
        stack.append(children(child))
