# tests/test_frontend.py
"""
Tests for the tree-sitter front end.
"""

import logging

import pytest

from hangcheck import nodes as N
from hangcheck.errors import ErrorCodes, SourceParseError
from hangcheck.frontend import JavaScriptFrontend, parse_source


def first(code):
    return parse_source(code).body[0]


class TestStatements:

    def test_exit_call(self):
        program = parse_source("exit();\n")
        assert isinstance(program, N.Program)
        statement = program.body[0]
        assert isinstance(statement, N.ExpressionStatement)
        assert isinstance(statement.expression, N.CallExpression)
        assert statement.expression.callee.name == "exit"
        assert statement.line == 1

    def test_comments_skipped(self):
        program = parse_source("// setup\nexit(); /* done */\n")
        assert len(program.body) == 1
        assert program.body[0].line == 2

    def test_function_declaration(self):
        fn = first("function f(a, b) {\n  exit();\n}\n")
        assert isinstance(fn, N.FunctionDeclaration)
        assert fn.id.name == "f"
        assert [p.name for p in fn.params] == ["a", "b"]
        assert (fn.loc.line, fn.loc.end_line) == (1, 3)
        assert len(fn.body.body) == 1

    def test_if_else_if_chain(self):
        node = first("if (a) {\n  exit();\n} else if (b) {\n  f();\n} else {\n  g();\n}\n")
        assert isinstance(node, N.IfStatement)
        assert node.test.name == "a"
        assert isinstance(node.consequent, N.BlockStatement)
        assert isinstance(node.alternate, N.IfStatement)
        assert node.alternate.test.name == "b"
        assert isinstance(node.alternate.alternate, N.BlockStatement)
        assert node.alternate.alternate.line == 5

    def test_if_without_block(self):
        node = first("if (err) return exit(err);\n")
        assert isinstance(node.consequent, N.ReturnStatement)
        assert isinstance(node.consequent.argument, N.CallExpression)
        assert node.alternate is None

    def test_switch(self):
        node = first("switch (k) {\n  case 1:\n    exit();\n  default:\n    f();\n}\n")
        assert isinstance(node, N.SwitchStatement)
        assert node.discriminant.name == "k"
        assert [c.test.value if c.test else None for c in node.cases] == [1, None]
        assert [len(c.consequent) for c in node.cases] == [1, 1]
        assert node.cases[1].line == 4

    def test_variable_keyword(self):
        node = first("let x = 1;\n")
        assert isinstance(node, N.VariableDeclaration)
        assert node.kind_keyword == "let"
        assert node.declarations[0].id.name == "x"
        assert node.declarations[0].init.value == 1

    def test_try_catch(self):
        node = first("try { f(); } catch (e) { exit(); } finally { g(); }\n")
        assert isinstance(node, N.TryStatement)
        assert node.handler.param.name == "e"
        assert len(node.finalizer.body) == 1


class TestExpressions:

    def test_arrow_with_expression_body(self):
        init = first("var f = (x) => exit();\n").declarations[0].init
        assert isinstance(init, N.ArrowFunctionExpression)
        assert [p.name for p in init.params] == ["x"]
        assert isinstance(init.body, N.CallExpression)

    def test_arrow_single_parameter(self):
        init = first("var f = x => { exit(); };\n").declarations[0].init
        assert [p.name for p in init.params] == ["x"]
        assert isinstance(init.body, N.BlockStatement)

    def test_function_expression_argument(self):
        call = first("request(url, function (err, data) {\n  exit();\n});\n").expression
        handler = call.arguments[1]
        assert isinstance(handler, N.FunctionExpression)
        assert [p.name for p in handler.params] == ["err", "data"]
        assert (handler.loc.line, handler.loc.end_line) == (1, 3)

    def test_member_and_subscript(self):
        dotted = first("process.exit(0);\n").expression.callee
        assert isinstance(dotted, N.MemberExpression)
        assert not dotted.computed and dotted.property.name == "exit"
        indexed = first('a["b"];\n').expression
        assert indexed.computed and indexed.property.value == "b"

    def test_literals(self):
        values = first('[null, true, "s", 0x10, 1.5];\n').expression.elements
        assert [v.value for v in values] == [None, True, "s", 16, 1.5]

    def test_logical_vs_binary(self):
        assert isinstance(first("a && b;\n").expression, N.LogicalExpression)
        assert isinstance(first("a !== null;\n").expression, N.BinaryExpression)

    def test_parentheses_unwrapped(self):
        assert isinstance(first("(exit());\n").expression, N.CallExpression)

    def test_unmodelled_construct(self):
        node = first("class A {}\n")
        assert isinstance(node, N.UnknownNode)
        assert node.type_name == "class_declaration"
        assert node.raw == "class A {}"


class TestSourceText:

    def test_condition_text(self):
        program = parse_source("if (a > 1) { exit(); }\n")
        assert program.text(program.body[0].test) == "a > 1"

    def test_non_ascii_offsets(self):
        program = parse_source('var s = "héllo";\nif (a > 1) { exit(); }\n')
        test = program.body[1].test
        assert program.text(test) == "a > 1"

    def test_bytes_input(self):
        program = parse_source("exit();\n".encode("utf-8"))
        assert program.source == "exit();\n"


class TestErrors:

    def test_syntax_error_is_recovered(self, caplog):
        with caplog.at_level(logging.WARNING, logger="hangcheck"):
            program = parse_source("exit();\n@@@\n")
        assert "syntax errors" in caplog.text
        assert any(isinstance(n, N.UnknownNode) for n in program.body)

    def test_invalid_utf8(self):
        with pytest.raises(SourceParseError) as info:
            parse_source(b"\xff\xfe exit();")
        assert info.value.code == ErrorCodes.SYNTAX_ERROR
        assert isinstance(info.value.cause, UnicodeDecodeError)

    def test_not_source_text(self):
        with pytest.raises(SourceParseError, match="int"):
            parse_source(42)

    def test_frontend_reusable(self):
        frontend = JavaScriptFrontend()
        assert frontend.parse("f();").body[0].expression.callee.name == "f"
        assert frontend.parse("g();").body[0].expression.callee.name == "g"
