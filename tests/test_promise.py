# tests/test_promise.py
"""
Tests for the promise-chain analyzer.
"""

import pytest

from hangcheck import nodes as N
from hangcheck.promise import (
    ChainLatches,
    check_promises,
    collect_chains,
    flatten_chain,
    promise_bindings,
    promise_functions,
    scan_chain,
)
from tests.conftest import (
    at,
    call,
    exit_stmt,
    func,
    ident,
    lambda_,
    lit,
    member,
    program,
    ret,
    stmt,
    var,
)


def require(module):
    return call("require", lit(module))


def promised(name="load", provider="Q", inline_require=False):
    """``function load(p) { var d = Q.defer(); read(p, d); return d.promise; }``"""
    body = [
        var("d", call(member(provider, "defer"))),
        stmt(call("read", ident("p"), ident("d"))),
        ret(member("d", "promise")),
    ]
    if inline_require:
        body.insert(0, var(provider, require("q")))
    return func(name, ["p"], *body, line=2, end_line=6)


def chain(head, *links, line=10, end_line=None):
    """Build ``head().m1(a1).m2(a2)…`` as an expression statement."""
    expr = call(head, line=line)
    for method, args, link_line in links:
        expr = N.CallExpression(
            callee=N.MemberExpression(object=expr, property=ident(method)),
            arguments=tuple(args),
            loc=at(line, link_line),
        )
    return N.ExpressionStatement(expression=expr, loc=at(line, end_line or line))


def exiting(line, end_line=None):
    return lambda_(["x"], exit_stmt(line), line=line, end_line=end_line)


def idle(line, end_line=None):
    return lambda_(["x"], stmt(call("log")), line=line, end_line=end_line)


class TestRecognition:

    def test_bindings(self):
        body = [var("Q", require("q")), var("fs", require("fs")), stmt(call("f"))]
        assert promise_bindings(body) == {"Q"}

    def test_bindings_custom_module(self):
        assert promise_bindings([var("P", require("bluebird"))], ["bluebird"]) == {"P"}

    def test_promise_function(self):
        tree = program(var("Q", require("q")), promised())
        assert promise_functions(tree) == {"load"}

    def test_provider_required_inside_function(self):
        tree = program(promised(inline_require=True))
        assert promise_functions(tree) == {"load"}

    def test_no_provider(self):
        assert promise_functions(program(promised())) == frozenset()

    def test_must_return_the_deferred_promise(self):
        fn = func("load", [], var("d", call(member("Q", "defer"))), ret(ident("d")))
        assert promise_functions(program(var("Q", require("q")), fn)) == frozenset()


class TestFlattenChain:

    def test_segments_in_call_order(self):
        node = chain("load", ("then", [ident("a")], 11), ("catch", [ident("b")], 12))
        segments = flatten_chain(node.expression)
        assert [s.name for s in segments] == ["load", "then", "catch"]
        assert [s.kind for s in segments] == [None, "then", "catch"]

    def test_aliases(self):
        node = chain("load", ("spread", [], 11), ("fail", [], 12), ("fin", [], 13), ("done", [], 14))
        assert [s.kind for s in flatten_chain(node.expression)[1:]] == ["then", "catch", "finally", "done"]

    def test_single_call(self):
        assert [s.name for s in flatten_chain(call("load"))] == ["load"]


class TestScanChain:

    def test_then_and_catch_exit(self):
        node = chain("load", ("then", [exiting(11)], 11), ("catch", [exiting(12)], 12))
        scanned = scan_chain(node)
        assert scanned.last_run_index == 1 and scanned.last_run_exit_index == 1
        assert scanned.last_caught_index == 2 and scanned.last_caught_exit_index == 2
        assert scanned.last_run_exits and scanned.last_catch_exits

    def test_later_then_without_exit(self):
        node = chain("load", ("then", [exiting(11)], 11), ("then", [idle(12)], 12))
        scanned = scan_chain(node)
        assert scanned.last_run_index == 2
        assert scanned.last_run_exit_index == 1
        assert scanned.run_exits and not scanned.last_run_exits

    def test_second_then_argument_catches(self):
        node = chain("load", ("then", [idle(11), exiting(12)], 11))
        scanned = scan_chain(node)
        assert scanned.last_caught_index == 1
        assert scanned.last_caught_exit_index == 1
        assert not scanned.run_exits

    def test_finally_exit_counts_for_runs(self):
        node = chain("load", ("then", [idle(11)], 11), ("finally", [exiting(12)], 12))
        scanned = scan_chain(node)
        assert scanned.last_run_exit_index == 2
        assert scanned.last_run_exits

    def test_non_promise_method_stops_scan(self):
        node = chain("load", ("then", [exiting(11)], 11), ("pipe", [], 12))
        scanned = scan_chain(node)
        assert scanned.last_run_exit_index == 0
        assert scanned.last_run_index == 1

    def test_named_handler(self):
        handler = func("bail", [], exit_stmt())
        node = chain("load", ("then", [ident("bail")], 11))
        assert scan_chain(node, functions={"bail": handler}).last_run_exits

    def test_latches_default_open(self):
        assert ChainLatches() == ChainLatches(then=True, catch=True, fin=True, done=True)


class TestCheckPromises:

    def build(self, *links, end_line=14):
        return program(var("Q", require("q")), promised(), chain("load", *links, end_line=end_line))

    def test_success_path_missing(self):
        tree = self.build(("then", [idle(10, 12)], 10), ("catch", [exiting(12, 14)], 12))
        result = check_promises(tree)
        assert not result.always_exits and not result.never_exits
        assert [d.to_dict() for d in result.need_exits] == [{
            "line": 10,
            "message": "No successful runs exit, while all caught errors do. "
                       "Adding an exit call to `then` call (lines 10-12) will prevent hanging.",
        }]
        assert result.need_exits[0].subject == "promised function `load` (call lines 10-14)"

    def test_catch_missing(self):
        tree = self.build(("then", [exiting(10, 12)], 10), ("catch", [idle(12, 14)], 12))
        messages = [d.message for d in check_promises(tree).need_exits]
        assert messages == [
            "No caught errors exit, while all successful runs do. "
            "Adding an exit call to `catch` call (lines 12-14) will prevent hanging.",
        ]

    def test_second_parameter_of_then(self):
        tree = self.build(("then", [exiting(10, 11), idle(11, 12)], 10))
        messages = [d.message for d in check_promises(tree).need_exits]
        assert messages == [
            "No caught errors exit, while all successful runs do. Adding an exit call to "
            "second parameter of `then` call (lines 11-12) will prevent hanging.",
        ]

    def test_always_exits(self):
        tree = self.build(("then", [exiting(10)], 10), ("catch", [exiting(12)], 12))
        result = check_promises(tree)
        assert result.always_exits
        assert result.need_exits == ()

    def test_never_exits(self):
        tree = self.build(("then", [idle(10)], 10))
        result = check_promises(tree)
        assert result.never_exits
        assert result.need_exits == ()

    def test_no_promises(self):
        assert check_promises(program(exit_stmt())).never_exits

    def test_chain_on_unknown_function_ignored(self):
        tree = program(var("Q", require("q")), promised(), chain("other", ("then", [exiting(10)], 10)))
        assert collect_chains(tree) == []

    @pytest.mark.parametrize("modules, found", [(("q",), 1), (("bluebird",), 0)])
    def test_promise_modules(self, modules, found):
        tree = self.build(("then", [exiting(10)], 10))
        assert len(collect_chains(tree, modules=modules)) == found
