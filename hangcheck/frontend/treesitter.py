"""
hangcheck/frontend/treesitter.py
================================

JavaScript source → :mod:`hangcheck.nodes` tree, using tree-sitter.

The concrete syntax tree from ``tree-sitter-javascript`` is lowered into the
ESTree-shaped node classes the analyses consume.  Grammar node types are
dispatched to ``_visit_<type>`` methods; anything without a method (classes,
imports, JSX, parse errors, …) becomes an :class:`~hangcheck.nodes.UnknownNode`
leaf, which every analysis treats as "does not terminate".

Syntax errors do not raise.  tree-sitter recovers, the damaged region turns
into ``UnknownNode("ERROR")`` leaves and a warning is logged.

Usage::

    program = parse_source("if (x) { exit(); }")
"""

from __future__ import annotations

import functools
import logging
from typing import Callable, List, Optional, Tuple, Union

import tree_sitter as ts
import tree_sitter_javascript as ts_js

from hangcheck import nodes as N
from hangcheck.errors import ErrorCodes, SourceParseError

__all__ = [
    "JavaScriptFrontend",
    "parse_source",
]

logger = logging.getLogger(__name__)

_SKIPPED = frozenset({"comment", "hash_bang_line"})
_LOGICAL_OPERATORS = frozenset({"&&", "||", "??"})
_IDENTIFIER_TYPES = frozenset({
    "identifier",
    "property_identifier",
    "private_property_identifier",
    "shorthand_property_identifier",
    "shorthand_property_identifier_pattern",
    "statement_identifier",
    "undefined",
})


class _Lowering:
    """Converts one tree-sitter tree into hangcheck nodes."""

    def __init__(self, source: str, data: bytes) -> None:
        self.source = source
        self.data = data
        self._offsets: Optional[List[int]] = None
        if len(data) != len(source):
            # multi-byte characters: map byte offsets to character offsets
            offsets: List[int] = []
            for index, char in enumerate(source):
                offsets.extend([index] * len(char.encode("utf-8")))
            offsets.append(len(source))
            self._offsets = offsets

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _char(self, byte_offset: int) -> int:
        if self._offsets is None:
            return byte_offset
        return self._offsets[min(byte_offset, len(self._offsets) - 1)]

    def span(self, node: ts.Node) -> N.Span:
        return N.Span(
            line=node.start_point[0] + 1,
            column=node.start_point[1],
            end_line=node.end_point[0] + 1,
            end_column=node.end_point[1],
            start=self._char(node.start_byte),
            end=self._char(node.end_byte),
        )

    def text(self, node: ts.Node) -> str:
        return self.data[node.start_byte:node.end_byte].decode("utf-8", errors="replace")

    @staticmethod
    def named(node: ts.Node) -> List[ts.Node]:
        return [c for c in node.named_children if c.type not in _SKIPPED]

    def first(self, node: ts.Node) -> Optional[ts.Node]:
        found = self.named(node)
        return found[0] if found else None

    def optional(self, node: Optional[ts.Node]) -> Optional[N.Node]:
        return None if node is None else self.lower(node)

    def required(self, node: ts.Node, field: str) -> N.Node:
        child = node.child_by_field_name(field)
        if child is None:
            return N.UnknownNode(type_name=f"missing {field}", loc=self.span(node))
        return self.lower(child)

    def field(self, node: ts.Node, name: str) -> Optional[N.Node]:
        return self.optional(node.child_by_field_name(name))

    def all(self, nodes: List[ts.Node]) -> Tuple[N.Node, ...]:
        return tuple(self.lower(c) for c in nodes)

    def statements(self, node: ts.Node) -> Tuple[N.Node, ...]:
        return self.all(self.named(node))

    def block(self, node: Optional[ts.Node]) -> N.BlockStatement:
        if node is None:
            return N.BlockStatement(body=())
        lowered = self.lower(node)
        if isinstance(lowered, N.BlockStatement):
            return lowered
        return N.BlockStatement(body=(lowered,), loc=lowered.loc)

    def params(self, node: ts.Node) -> Tuple[N.Node, ...]:
        single = node.child_by_field_name("parameter")
        if single is not None:
            return (self.lower(single),)
        params = node.child_by_field_name("parameters")
        return self.statements(params) if params is not None else ()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def lower(self, node: ts.Node) -> N.Node:
        if node.type in _IDENTIFIER_TYPES:
            return N.Identifier(name=self.text(node), loc=self.span(node))
        visit: Optional[Callable[[ts.Node], N.Node]] = getattr(
            self, f"_visit_{node.type}", None
        )
        if visit is None:
            return N.UnknownNode(type_name=node.type, raw=self.text(node), loc=self.span(node))
        return visit(node)

    # --- statements ---

    def _visit_program(self, node: ts.Node) -> N.Node:
        return N.Program(body=self.statements(node), source=self.source, loc=self.span(node))

    def _visit_statement_block(self, node: ts.Node) -> N.Node:
        return N.BlockStatement(body=self.statements(node), loc=self.span(node))

    def _visit_expression_statement(self, node: ts.Node) -> N.Node:
        inner = self.first(node)
        expression = self.lower(inner) if inner is not None else N.UnknownNode("missing expression")
        return N.ExpressionStatement(expression=expression, loc=self.span(node))

    def _visit_empty_statement(self, node: ts.Node) -> N.Node:
        return N.EmptyStatement(loc=self.span(node))

    def _visit_if_statement(self, node: ts.Node) -> N.Node:
        alternate = None
        clause = node.child_by_field_name("alternative")
        if clause is not None:
            inner = self.first(clause) if clause.type == "else_clause" else clause
            alternate = self.optional(inner)
        return N.IfStatement(
            test=self.required(node, "condition"),
            consequent=self.required(node, "consequence"),
            alternate=alternate,
            loc=self.span(node),
        )

    def _visit_switch_statement(self, node: ts.Node) -> N.Node:
        body = node.child_by_field_name("body")
        cases = tuple(
            self.lower(c) for c in (self.named(body) if body is not None else [])
            if c.type in ("switch_case", "switch_default")
        )
        return N.SwitchStatement(
            discriminant=self.required(node, "value"), cases=cases, loc=self.span(node)
        )

    def _visit_switch_case(self, node: ts.Node) -> N.Node:
        value = node.child_by_field_name("value")
        body = [c for c in self.named(node) if value is None or c.id != value.id]
        return N.SwitchCase(test=self.optional(value), consequent=self.all(body), loc=self.span(node))

    _visit_switch_default = _visit_switch_case

    def _visit_return_statement(self, node: ts.Node) -> N.Node:
        return N.ReturnStatement(argument=self.optional(self.first(node)), loc=self.span(node))

    def _visit_throw_statement(self, node: ts.Node) -> N.Node:
        inner = self.first(node)
        argument = self.lower(inner) if inner is not None else N.UnknownNode("missing argument")
        return N.ThrowStatement(argument=argument, loc=self.span(node))

    def _visit_break_statement(self, node: ts.Node) -> N.Node:
        return N.BreakStatement(label=self.field(node, "label"), loc=self.span(node))

    def _visit_continue_statement(self, node: ts.Node) -> N.Node:
        return N.ContinueStatement(label=self.field(node, "label"), loc=self.span(node))

    def _visit_try_statement(self, node: ts.Node) -> N.Node:
        handler = node.child_by_field_name("handler")
        finalizer = node.child_by_field_name("finalizer")
        return N.TryStatement(
            block=self.block(node.child_by_field_name("body")),
            handler=self.lower(handler) if handler is not None else None,
            finalizer=self.block(finalizer.child_by_field_name("body")) if finalizer is not None else None,
            loc=self.span(node),
        )

    def _visit_catch_clause(self, node: ts.Node) -> N.Node:
        return N.CatchClause(
            param=self.field(node, "parameter"),
            body=self.block(node.child_by_field_name("body")),
            loc=self.span(node),
        )

    def _visit_while_statement(self, node: ts.Node) -> N.Node:
        return N.WhileStatement(
            test=self.required(node, "condition"), body=self.required(node, "body"), loc=self.span(node)
        )

    def _visit_do_statement(self, node: ts.Node) -> N.Node:
        return N.DoWhileStatement(
            body=self.required(node, "body"), test=self.required(node, "condition"), loc=self.span(node)
        )

    def _loop_clause(self, node: ts.Node, name: str) -> Optional[N.Node]:
        lowered = self.field(node, name)
        if isinstance(lowered, N.EmptyStatement):
            return None
        if isinstance(lowered, N.ExpressionStatement):
            return lowered.expression
        return lowered

    def _visit_for_statement(self, node: ts.Node) -> N.Node:
        return N.ForStatement(
            init=self._loop_clause(node, "initializer"),
            test=self._loop_clause(node, "condition"),
            update=self._loop_clause(node, "increment"),
            body=self.required(node, "body"),
            loc=self.span(node),
        )

    def _visit_for_in_statement(self, node: ts.Node) -> N.Node:
        operator = node.child_by_field_name("operator")
        kind = N.ForOfStatement if operator is not None and self.text(operator) == "of" else N.ForInStatement
        return kind(
            left=self.required(node, "left"),
            right=self.required(node, "right"),
            body=self.required(node, "body"),
            loc=self.span(node),
        )

    def _visit_labeled_statement(self, node: ts.Node) -> N.Node:
        return N.LabeledStatement(
            label=self.required(node, "label"), body=self.required(node, "body"), loc=self.span(node)
        )

    # --- declarations and functions ---

    def _visit_variable_declaration(self, node: ts.Node) -> N.Node:
        declarators = tuple(
            self.lower(c) for c in self.named(node) if c.type == "variable_declarator"
        )
        keyword = self.text(node.children[0]) if node.children else "var"
        return N.VariableDeclaration(declarations=declarators, kind_keyword=keyword, loc=self.span(node))

    _visit_lexical_declaration = _visit_variable_declaration

    def _visit_variable_declarator(self, node: ts.Node) -> N.Node:
        return N.VariableDeclarator(
            id=self.required(node, "name"), init=self.field(node, "value"), loc=self.span(node)
        )

    def _visit_function_declaration(self, node: ts.Node) -> N.Node:
        return N.FunctionDeclaration(
            id=self.required(node, "name"),
            params=self.params(node),
            body=self.block(node.child_by_field_name("body")),
            loc=self.span(node),
        )

    _visit_generator_function_declaration = _visit_function_declaration

    def _visit_function_expression(self, node: ts.Node) -> N.Node:
        return N.FunctionExpression(
            id=self.field(node, "name"),
            params=self.params(node),
            body=self.block(node.child_by_field_name("body")),
            loc=self.span(node),
        )

    # older grammar releases call the expression form ``function``
    _visit_function = _visit_function_expression
    _visit_generator_function = _visit_function_expression

    def _visit_arrow_function(self, node: ts.Node) -> N.Node:
        return N.ArrowFunctionExpression(
            params=self.params(node), body=self.required(node, "body"), loc=self.span(node)
        )

    def _visit_assignment_pattern(self, node: ts.Node) -> N.Node:
        return N.AssignmentPattern(
            left=self.required(node, "left"), right=self.required(node, "right"), loc=self.span(node)
        )

    def _visit_rest_pattern(self, node: ts.Node) -> N.Node:
        inner = self.first(node)
        argument = self.lower(inner) if inner is not None else N.UnknownNode("missing argument")
        return N.RestElement(argument=argument, loc=self.span(node))

    # --- expressions ---

    def _visit_parenthesized_expression(self, node: ts.Node) -> N.Node:
        inner = self.first(node)
        if inner is None:
            return N.UnknownNode(type_name=node.type, raw=self.text(node), loc=self.span(node))
        return self.lower(inner)

    def _arguments(self, node: Optional[ts.Node]) -> Tuple[N.Node, ...]:
        if node is None:
            return ()
        if node.type == "arguments":
            return self.statements(node)
        # tagged template
        return (self.lower(node),)

    def _visit_call_expression(self, node: ts.Node) -> N.Node:
        return N.CallExpression(
            callee=self.required(node, "function"),
            arguments=self._arguments(node.child_by_field_name("arguments")),
            loc=self.span(node),
        )

    def _visit_new_expression(self, node: ts.Node) -> N.Node:
        return N.NewExpression(
            callee=self.required(node, "constructor"),
            arguments=self._arguments(node.child_by_field_name("arguments")),
            loc=self.span(node),
        )

    def _visit_member_expression(self, node: ts.Node) -> N.Node:
        return N.MemberExpression(
            object=self.required(node, "object"),
            property=self.required(node, "property"),
            loc=self.span(node),
        )

    def _visit_subscript_expression(self, node: ts.Node) -> N.Node:
        return N.MemberExpression(
            object=self.required(node, "object"),
            property=self.required(node, "index"),
            computed=True,
            loc=self.span(node),
        )

    def _visit_string(self, node: ts.Node) -> N.Node:
        raw = self.text(node)
        value = "".join(
            self.text(c) for c in node.named_children
            if c.type in ("string_fragment", "escape_sequence")
        )
        return N.Literal(value=value, raw=raw, loc=self.span(node))

    def _visit_number(self, node: ts.Node) -> N.Node:
        raw = self.text(node)
        value: Union[int, float, str]
        try:
            value = int(raw, 0)
        except ValueError:
            try:
                value = float(raw)
            except ValueError:
                value = raw
        return N.Literal(value=value, raw=raw, loc=self.span(node))

    def _visit_true(self, node: ts.Node) -> N.Node:
        return N.Literal(value=True, raw="true", loc=self.span(node))

    def _visit_false(self, node: ts.Node) -> N.Node:
        return N.Literal(value=False, raw="false", loc=self.span(node))

    def _visit_null(self, node: ts.Node) -> N.Node:
        return N.Literal(value=None, raw="null", loc=self.span(node))

    def _visit_regex(self, node: ts.Node) -> N.Node:
        raw = self.text(node)
        return N.Literal(value=raw, raw=raw, loc=self.span(node))

    def _visit_this(self, node: ts.Node) -> N.Node:
        return N.ThisExpression(loc=self.span(node))

    def _visit_template_string(self, node: ts.Node) -> N.Node:
        expressions = []
        for child in node.named_children:
            if child.type == "template_substitution":
                inner = self.first(child)
                if inner is not None:
                    expressions.append(self.lower(inner))
        return N.TemplateLiteral(expressions=tuple(expressions), raw=self.text(node), loc=self.span(node))

    def _operator(self, node: ts.Node) -> str:
        operator = node.child_by_field_name("operator")
        return self.text(operator) if operator is not None else ""

    def _visit_binary_expression(self, node: ts.Node) -> N.Node:
        operator = self._operator(node)
        kind = N.LogicalExpression if operator in _LOGICAL_OPERATORS else N.BinaryExpression
        return kind(
            operator=operator,
            left=self.required(node, "left"),
            right=self.required(node, "right"),
            loc=self.span(node),
        )

    def _visit_unary_expression(self, node: ts.Node) -> N.Node:
        return N.UnaryExpression(
            operator=self._operator(node), argument=self.required(node, "argument"), loc=self.span(node)
        )

    def _visit_update_expression(self, node: ts.Node) -> N.Node:
        operator = self._operator(node)
        return N.UpdateExpression(
            operator=operator,
            argument=self.required(node, "argument"),
            prefix=self.text(node).startswith(operator),
            loc=self.span(node),
        )

    def _visit_assignment_expression(self, node: ts.Node) -> N.Node:
        return N.AssignmentExpression(
            operator=self._operator(node) or "=",
            left=self.required(node, "left"),
            right=self.required(node, "right"),
            loc=self.span(node),
        )

    _visit_augmented_assignment_expression = _visit_assignment_expression

    def _visit_ternary_expression(self, node: ts.Node) -> N.Node:
        return N.ConditionalExpression(
            test=self.required(node, "condition"),
            consequent=self.required(node, "consequence"),
            alternate=self.required(node, "alternative"),
            loc=self.span(node),
        )

    def _visit_sequence_expression(self, node: ts.Node) -> N.Node:
        flat: List[ts.Node] = []
        pending = self.named(node)
        while pending:
            child = pending.pop(0)
            if child.type == "sequence_expression":
                pending = self.named(child) + pending
            else:
                flat.append(child)
        return N.SequenceExpression(expressions=self.all(flat), loc=self.span(node))

    def _visit_array(self, node: ts.Node) -> N.Node:
        return N.ArrayExpression(elements=self.statements(node), loc=self.span(node))

    def _visit_object(self, node: ts.Node) -> N.Node:
        properties = []
        for child in self.named(node):
            if child.type == "shorthand_property_identifier":
                name = self.lower(child)
                properties.append(N.Property(key=name, value=name, loc=name.loc))
            else:
                properties.append(self.lower(child))
        return N.ObjectExpression(properties=tuple(properties), loc=self.span(node))

    def _visit_pair(self, node: ts.Node) -> N.Node:
        return N.Property(
            key=self.required(node, "key"), value=self.required(node, "value"), loc=self.span(node)
        )

    def _visit_method_definition(self, node: ts.Node) -> N.Node:
        function = N.FunctionExpression(
            id=None,
            params=self.params(node),
            body=self.block(node.child_by_field_name("body")),
            loc=self.span(node),
        )
        return N.Property(key=self.required(node, "name"), value=function, loc=self.span(node))

    def _visit_spread_element(self, node: ts.Node) -> N.Node:
        inner = self.first(node)
        argument = self.lower(inner) if inner is not None else N.UnknownNode("missing argument")
        return N.SpreadElement(argument=argument, loc=self.span(node))

    def _visit_await_expression(self, node: ts.Node) -> N.Node:
        inner = self.first(node)
        argument = self.lower(inner) if inner is not None else N.UnknownNode("missing argument")
        return N.AwaitExpression(argument=argument, loc=self.span(node))


class JavaScriptFrontend:
    """Parses JavaScript source into :class:`~hangcheck.nodes.Program` trees.

    The tree-sitter ``Language`` and ``Parser`` are created on first use and
    reused for the lifetime of the instance.
    """

    def __init__(self) -> None:
        self._parser: Optional[ts.Parser] = None

    def _get_parser(self) -> ts.Parser:
        if self._parser is None:
            try:
                self._parser = ts.Parser(ts.Language(ts_js.language()))
            except (TypeError, ValueError) as exc:
                raise SourceParseError(
                    f"cannot load the tree-sitter JavaScript grammar: {exc}",
                    code=ErrorCodes.PARSER_UNAVAILABLE,
                    cause=exc,
                ) from exc
        return self._parser

    def parse(self, code: Union[str, bytes]) -> N.Program:
        if isinstance(code, bytes):
            try:
                code = code.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise SourceParseError("source is not valid UTF-8", cause=exc) from exc
        if not isinstance(code, str):
            raise SourceParseError(f"expected source text, got {type(code).__name__}")

        data = code.encode("utf-8")
        tree = self._get_parser().parse(data)
        root = tree.root_node
        if root.has_error:
            logger.warning(
                "syntax errors in source; %d unparsed region(s) will be ignored",
                _count_errors(root),
            )
        program = _Lowering(code, data).lower(root)
        if not isinstance(program, N.Program):
            # unrecoverable input: the root itself is an ERROR node
            program = N.Program(body=(program,), source=code, loc=program.loc)
        return program


def _count_errors(root: ts.Node) -> int:
    count = 0
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            count += 1
        elif node.has_error:
            stack.extend(node.children)
    return count


@functools.lru_cache(maxsize=1)
def _default_frontend() -> JavaScriptFrontend:
    return JavaScriptFrontend()


def parse_source(code: Union[str, bytes]) -> N.Program:
    """Parse *code* with a shared :class:`JavaScriptFrontend`."""
    return _default_frontend().parse(code)
