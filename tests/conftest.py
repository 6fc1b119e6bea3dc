# tests/conftest.py
"""
Shared builders, JavaScript snippets and fixtures for the hangcheck tests.

The builders create hand-made node trees with explicit line numbers, so
analysis tests run without a parser.  Source-level tests parse the
snippets below through the tree-sitter front end.
"""

from pathlib import Path

import pytest

from hangcheck import nodes as N

FIXTURES = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Node builders
# ---------------------------------------------------------------------------

def at(line, end_line=None):
    """A span covering *line* (to *end_line*)."""
    return N.Span(line=line, end_line=end_line or line)


def ident(name, line=0):
    return N.Identifier(name=name, loc=at(line))


def lit(value, line=0):
    raw = "null" if value is None else repr(value)
    return N.Literal(value=value, raw=raw, loc=at(line))


def call(callee, *args, line=0):
    if isinstance(callee, str):
        callee = ident(callee, line)
    return N.CallExpression(callee=callee, arguments=tuple(args), loc=at(line))


def member(obj, prop, line=0):
    if isinstance(obj, str):
        obj = ident(obj, line)
    return N.MemberExpression(object=obj, property=ident(prop, line), loc=at(line))


def stmt(expr, line=None):
    return N.ExpressionStatement(expression=expr, loc=at(expr.loc.line if line is None else line))


def exit_stmt(line=0):
    return stmt(call("exit", line=line))


def block(*body, line=0, end_line=None):
    return N.BlockStatement(body=tuple(body), loc=at(line, end_line))


def if_(test, consequent, alternate=None, line=0):
    if isinstance(test, str):
        test = ident(test, line)
    return N.IfStatement(test=test, consequent=consequent, alternate=alternate, loc=at(line))


def case(test, *body, line=0):
    return N.SwitchCase(test=test, consequent=tuple(body), loc=at(line))


def switch(discriminant, *cases, line=0):
    if isinstance(discriminant, str):
        discriminant = ident(discriminant, line)
    return N.SwitchStatement(discriminant=discriminant, cases=tuple(cases), loc=at(line))


def func(name, params, *body, line=0, end_line=None):
    return N.FunctionDeclaration(
        id=ident(name, line),
        params=tuple(ident(p, line) for p in params),
        body=block(*body, line=line, end_line=end_line),
        loc=at(line, end_line),
    )


def lambda_(params, *body, line=0, end_line=None):
    return N.FunctionExpression(
        id=None,
        params=tuple(ident(p, line) for p in params),
        body=block(*body, line=line, end_line=end_line),
        loc=at(line, end_line),
    )


def var(name, init, line=0):
    return N.VariableDeclaration(
        declarations=(N.VariableDeclarator(id=ident(name, line), init=init, loc=at(line)),),
        loc=at(line),
    )


def ret(argument=None, line=0):
    return N.ReturnStatement(argument=argument, loc=at(line))


def program(*body, source=""):
    return N.Program(body=tuple(body), source=source, loc=at(1))


# ---------------------------------------------------------------------------
# JavaScript snippets
# ---------------------------------------------------------------------------

IF_ELSE_MISSING_EXIT = """\
if (a) {
  exit();
} else {
  console.log('x');
}
"""

IF_ELSE_BOTH_EXIT = """\
if (a) {
  exit();
} else {
  exit(1);
}
"""

NESTED_IF = """\
if (a) {
  if (b) {
    exit();
  }
}
"""

SWITCH_WITH_DEFAULT = """\
switch (k) {
  case 1:
    exit();
    break;
  case 2:
  case 3:
    exit();
    break;
  default:
    console.log(k);
}
"""

WRAPPED_EXIT = """\
function quit() {
  exit();
}
function shutdown() {
  quit();
}
if (done) {
  shutdown();
} else {
  wait();
}
"""

GLOBAL_EXIT = """\
console.log('bye');
exit();
"""

NO_EXIT = """\
var x = 1;
console.log(x);
"""

CALLBACK_ALWAYS_EXITS = """\
function fetch(url, cb) {
  get(url, function (err, data) {
    if (err) {
      cb(err);
    } else {
      cb(null, data);
    }
  });
}
fetch('/a', function (err, data) {
  if (err) {
    exit(1);
  }
  exit();
});
"""

PROMISE_THEN_MISSING = """\
var Q = require('q');
function load(path) {
  var deferred = Q.defer();
  read(path, deferred);
  return deferred.promise;
}
load('a.txt').then(function (data) {
  console.log(data);
}).catch(function (err) {
  exit(1);
});
"""


@pytest.fixture
def fixture_source():
    """Read a program from tests/fixtures by file name."""
    def _read(name):
        return (FIXTURES / name).read_text(encoding="utf-8")
    return _read
