"""hangcheck/nodes.py – Syntax tree model for the JavaScript subset we analyse.

The analyses never look at raw source text.  A front end (tree-sitter, or a
pre-parsed ESTree document) produces a tree of the node classes below, and
every analysis reads that tree without modifying it.

Design invariants
-----------------
* Every node is a frozen, slotted dataclass (immutable after construction).
* Nodes that carry children use tuples, never lists.
* Nodes compare and hash by *identity* (``eq=False``).  Side tables keyed by
  node therefore work, and two textually identical sub-trees at different
  positions never collide.
* Every node records its source position (``Span``) for diagnostics.
* The set of node classes is closed: :data:`NODE_TYPES` enumerates them and
  :mod:`hangcheck.walker` keeps exactly one child-slot entry per class.
  Anything a front end cannot map becomes an :class:`UnknownNode` leaf.

Field names follow ESTree so that esprima / acorn output maps one-to-one.

Module layout
-------------
§1  Source spans
§2  Statements
§3  Functions and declarations
§4  Expressions
§5  Rendering helpers
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Type

__all__ = [
    "Span",
    "NO_SPAN",
    "Node",
    "NODE_TYPES",
    "FUNCTION_TYPES",
    "render",
]

# ════════════════════════════════════════════════════════════════════════
# §1  Source spans
# ════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Span:
    """A region of the analysed source.

    ``line`` / ``end_line`` are 1-based, ``column`` / ``end_column`` are
    0-based, ``start`` / ``end`` are character offsets into the program
    source (``end`` exclusive).
    """

    line: int = 0
    column: int = 0
    end_line: int = 0
    end_column: int = 0
    start: int = 0
    end: int = 0

    @property
    def known(self) -> bool:
        return self.end > self.start

    def __str__(self) -> str:
        if self.end_line and self.end_line != self.line:
            return f"lines {self.line}-{self.end_line}"
        return f"line {self.line}"


#: Sentinel for nodes built without position information.
NO_SPAN = Span()


class Node:
    """Common base of every syntax tree node."""

    __slots__ = ()

    loc: Span

    @property
    def kind(self) -> str:
        """The ESTree type name of this node."""
        return type(self).__name__

    @property
    def line(self) -> int:
        return self.loc.line


_node = dataclass(frozen=True, slots=True, eq=False)

# ════════════════════════════════════════════════════════════════════════
# §2  Statements
# ════════════════════════════════════════════════════════════════════════


@_node
class Program(Node):
    """Root of a parsed file.  Carries the full source text."""

    body: Tuple[Node, ...]
    source: str = field(default="", repr=False)
    loc: Span = field(default=NO_SPAN, repr=False)

    def text(self, node: Node) -> str:
        """Return the source text of *node*, or a rendering if unavailable."""
        span = node.loc
        if self.source and span.known and span.end <= len(self.source):
            return self.source[span.start:span.end]
        return render(node)


@_node
class BlockStatement(Node):
    body: Tuple[Node, ...]
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class ExpressionStatement(Node):
    expression: Node
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class EmptyStatement(Node):
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class IfStatement(Node):
    test: Node
    consequent: Node
    alternate: Optional[Node] = None
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class SwitchCase(Node):
    """One ``case`` arm; ``test`` is ``None`` for ``default``."""

    test: Optional[Node]
    consequent: Tuple[Node, ...]
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class SwitchStatement(Node):
    discriminant: Node
    cases: Tuple[SwitchCase, ...]
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class ReturnStatement(Node):
    argument: Optional[Node] = None
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class ThrowStatement(Node):
    argument: Node
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class BreakStatement(Node):
    label: Optional[Node] = None
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class ContinueStatement(Node):
    label: Optional[Node] = None
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class CatchClause(Node):
    param: Optional[Node]
    body: BlockStatement
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class TryStatement(Node):
    block: BlockStatement
    handler: Optional[CatchClause] = None
    finalizer: Optional[BlockStatement] = None
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class WhileStatement(Node):
    test: Node
    body: Node
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class DoWhileStatement(Node):
    body: Node
    test: Node
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class ForStatement(Node):
    init: Optional[Node]
    test: Optional[Node]
    update: Optional[Node]
    body: Node
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class ForInStatement(Node):
    left: Node
    right: Node
    body: Node
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class ForOfStatement(Node):
    left: Node
    right: Node
    body: Node
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class LabeledStatement(Node):
    label: Node
    body: Node
    loc: Span = field(default=NO_SPAN, repr=False)


# ════════════════════════════════════════════════════════════════════════
# §3  Functions and declarations
# ════════════════════════════════════════════════════════════════════════


@_node
class VariableDeclarator(Node):
    id: Node
    init: Optional[Node] = None
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class VariableDeclaration(Node):
    declarations: Tuple[VariableDeclarator, ...]
    kind_keyword: str = "var"
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class FunctionDeclaration(Node):
    id: Identifier
    params: Tuple[Node, ...]
    body: BlockStatement
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class FunctionExpression(Node):
    id: Optional[Identifier]
    params: Tuple[Node, ...]
    body: BlockStatement
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class ArrowFunctionExpression(Node):
    """``body`` is a ``BlockStatement`` or a bare expression."""

    params: Tuple[Node, ...]
    body: Node
    loc: Span = field(default=NO_SPAN, repr=False)


# ════════════════════════════════════════════════════════════════════════
# §4  Expressions
# ════════════════════════════════════════════════════════════════════════


@_node
class Identifier(Node):
    name: str
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class Literal(Node):
    value: Any
    raw: str = ""
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class TemplateLiteral(Node):
    expressions: Tuple[Node, ...]
    raw: str = ""
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class ThisExpression(Node):
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class ArrayExpression(Node):
    elements: Tuple[Node, ...]
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class Property(Node):
    key: Node
    value: Node
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class ObjectExpression(Node):
    properties: Tuple[Node, ...]
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class CallExpression(Node):
    callee: Node
    arguments: Tuple[Node, ...]
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class NewExpression(Node):
    callee: Node
    arguments: Tuple[Node, ...]
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class MemberExpression(Node):
    object: Node
    property: Node
    computed: bool = False
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class UnaryExpression(Node):
    operator: str
    argument: Node
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class UpdateExpression(Node):
    operator: str
    argument: Node
    prefix: bool = False
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class BinaryExpression(Node):
    operator: str
    left: Node
    right: Node
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class LogicalExpression(Node):
    operator: str
    left: Node
    right: Node
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class AssignmentExpression(Node):
    operator: str
    left: Node
    right: Node
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class AssignmentPattern(Node):
    left: Node
    right: Node
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class RestElement(Node):
    argument: Node
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class ConditionalExpression(Node):
    test: Node
    consequent: Node
    alternate: Node
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class SequenceExpression(Node):
    expressions: Tuple[Node, ...]
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class SpreadElement(Node):
    argument: Node
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class AwaitExpression(Node):
    argument: Node
    loc: Span = field(default=NO_SPAN, repr=False)


@_node
class UnknownNode(Node):
    """Opaque leaf for constructs outside the modelled subset."""

    type_name: str
    raw: str = ""
    loc: Span = field(default=NO_SPAN, repr=False)


#: Every concrete node class, keyed by ESTree type name.
NODE_TYPES: Dict[str, Type[Node]] = {
    cls.__name__: cls
    for cls in (
        Program, BlockStatement, ExpressionStatement, EmptyStatement,
        IfStatement, SwitchStatement, SwitchCase, ReturnStatement,
        ThrowStatement, BreakStatement, ContinueStatement, TryStatement,
        CatchClause, WhileStatement, DoWhileStatement, ForStatement,
        ForInStatement, ForOfStatement, LabeledStatement,
        VariableDeclaration, VariableDeclarator, FunctionDeclaration,
        FunctionExpression, ArrowFunctionExpression, Identifier, Literal,
        TemplateLiteral, ThisExpression, ArrayExpression, ObjectExpression,
        Property, CallExpression, NewExpression, MemberExpression,
        UnaryExpression, UpdateExpression, BinaryExpression,
        LogicalExpression, AssignmentExpression, AssignmentPattern,
        RestElement, ConditionalExpression, SequenceExpression,
        SpreadElement, AwaitExpression, UnknownNode,
    )
}

FUNCTION_TYPES = (FunctionDeclaration, FunctionExpression, ArrowFunctionExpression)


# ════════════════════════════════════════════════════════════════════════
# §5  Rendering helpers
# ════════════════════════════════════════════════════════════════════════


def _render_all(nodes: Tuple[Node, ...]) -> str:
    return ", ".join(render(n) for n in nodes)


def render(node: Optional[Node]) -> str:
    """Render an expression back to compact JavaScript.

    Only used when the program source text is not available (trees built
    by hand or ESTree input without ``source``).  Statements and other
    unmodelled shapes render as ``…``.
    """
    if node is None:
        return ""
    if isinstance(node, Identifier):
        return node.name
    if isinstance(node, Literal):
        if node.raw:
            return node.raw
        if node.value is None:
            return "null"
        if isinstance(node.value, bool):
            return "true" if node.value else "false"
        if isinstance(node.value, str):
            return repr(node.value)
        return str(node.value)
    if isinstance(node, ThisExpression):
        return "this"
    if isinstance(node, MemberExpression):
        if node.computed:
            return f"{render(node.object)}[{render(node.property)}]"
        return f"{render(node.object)}.{render(node.property)}"
    if isinstance(node, CallExpression):
        return f"{render(node.callee)}({_render_all(node.arguments)})"
    if isinstance(node, NewExpression):
        return f"new {render(node.callee)}({_render_all(node.arguments)})"
    if isinstance(node, (BinaryExpression, LogicalExpression, AssignmentExpression)):
        return f"{render(node.left)} {node.operator} {render(node.right)}"
    if isinstance(node, UnaryExpression):
        sep = " " if node.operator.isalpha() else ""
        return f"{node.operator}{sep}{render(node.argument)}"
    if isinstance(node, UpdateExpression):
        if node.prefix:
            return f"{node.operator}{render(node.argument)}"
        return f"{render(node.argument)}{node.operator}"
    if isinstance(node, ConditionalExpression):
        return (
            f"{render(node.test)} ? {render(node.consequent)}"
            f" : {render(node.alternate)}"
        )
    if isinstance(node, ArrayExpression):
        return f"[{_render_all(node.elements)}]"
    if isinstance(node, SequenceExpression):
        return _render_all(node.expressions)
    if isinstance(node, SpreadElement):
        return f"...{render(node.argument)}"
    if isinstance(node, AwaitExpression):
        return f"await {render(node.argument)}"
    if isinstance(node, (TemplateLiteral, UnknownNode)) and node.raw:
        return node.raw
    return "…"
