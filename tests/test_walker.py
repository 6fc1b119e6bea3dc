# tests/test_walker.py
"""
Tests for the child-slot table and tree traversal.
"""

from hangcheck import nodes as N
from hangcheck.walker import SYNTAX, children, iter_nodes, walk
from tests.conftest import block, call, exit_stmt, ident, if_, program, stmt


class TestSyntaxTable:

    def test_table_covers_every_node_kind(self):
        assert set(SYNTAX) == set(N.NODE_TYPES)

    def test_every_node_class_is_registered(self):
        def subclasses(cls):
            for sub in cls.__subclasses__():
                yield sub
                yield from subclasses(sub)

        assert {c.__name__ for c in subclasses(N.Node)} == set(N.NODE_TYPES)

    def test_slots_name_real_fields(self):
        for kind, slots in SYNTAX.items():
            fields = N.NODE_TYPES[kind].__dataclass_fields__
            for slot in slots:
                assert slot in fields, f"{kind}.{slot}"


class TestChildren:

    def test_slot_order(self):
        node = if_("a", block(), block())
        kinds = [c.kind for c in children(node)]
        assert kinds == ["Identifier", "BlockStatement", "BlockStatement"]

    def test_missing_optional_slot_skipped(self):
        node = if_("a", block())
        assert len(list(children(node))) == 2

    def test_leaf_has_no_children(self):
        assert list(children(ident("x"))) == []

    def test_custom_table(self):
        node = if_("a", block(), block())
        assert [c.kind for c in children(node, {"IfStatement": ("test",)})] == ["Identifier"]


class TestWalk:

    def test_root_not_visited(self):
        tree = program(exit_stmt(1))
        seen = walk(tree, lambda n: n)
        assert tree not in seen
        assert seen[0].kind == "ExpressionStatement"

    def test_preorder_document_order(self):
        tree = program(
            if_("a", block(stmt(call("f", line=2)), line=1), line=1),
            stmt(call("g", line=4)),
        )
        names = walk(tree, lambda n: n.name if isinstance(n, N.Identifier) else None)
        assert names == ["a", "f", "g"]

    def test_falsy_results_dropped(self):
        tree = program(exit_stmt(), exit_stmt())
        assert walk(tree, lambda n: [] if n.kind == "CallExpression" else None) == []

    def test_unknown_kind_is_leaf(self):
        tree = program(stmt(N.UnknownNode(type_name="class_declaration")))
        assert [n.kind for n in walk(tree, lambda n: n)] == ["ExpressionStatement", "UnknownNode"]

    def test_deep_tree(self):
        node = exit_stmt()
        for _ in range(3000):
            node = block(node)
        assert len(walk(program(node), lambda n: n.kind == "CallExpression" or None)) == 1


class TestIterNodes:

    def test_includes_root_by_default(self):
        tree = program(exit_stmt())
        assert next(iter_nodes(tree)) is tree

    def test_exclude_root(self):
        tree = program(exit_stmt())
        assert tree not in list(iter_nodes(tree, include_root=False))
