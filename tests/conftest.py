"""
Shared fixtures: hand-built trees shaped like tree-sitter-ruby output, and
the Ruby adapter (skipped when the grammar is not installed).
"""

import pytest

from treecop.nodes import Node, SourceDocument
from treecop.ruby_adapter import RubyAdapter


def build_node(shape) -> Node:
    """Build a Node from ``(kind, start, end, [options dict], [children list])``."""
    kind, start, end, *rest = shape
    children = ()
    options = {}
    for item in rest:
        if isinstance(item, list):
            children = tuple(build_node(child) for child in item)
        elif isinstance(item, dict):
            options = item
    return Node(kind, start, end, children, **options)


@pytest.fixture
def make_document():
    def make(text, shape, path="test.rb"):
        return SourceDocument(text, build_node(shape), path)
    return make


@pytest.fixture
def call_document(make_document):
    """Tree for ``a.b(1)\\nc\\n``."""
    return make_document("a.b(1)\nc\n", ("program", 0, 9, [
        ("call", 0, 6, [
            ("identifier", 0, 1, {"field_name": "receiver"}),
            (".", 1, 2, {"named": False, "field_name": "operator"}),
            ("identifier", 2, 3, {"field_name": "method"}),
            ("argument_list", 3, 6, {"field_name": "arguments"}, [
                ("(", 3, 4, {"named": False}),
                ("integer", 4, 5),
                (")", 5, 6, {"named": False}),
            ]),
        ]),
        ("identifier", 7, 8),
    ]))


@pytest.fixture
def let_document(make_document):
    """Tree for ``let(:foo, "x")\\n``."""
    return make_document('let(:foo, "x")\n', ("program", 0, 15, [
        ("call", 0, 14, [
            ("identifier", 0, 3, {"field_name": "method"}),
            ("argument_list", 3, 14, {"field_name": "arguments"}, [
                ("(", 3, 4, {"named": False}),
                ("simple_symbol", 4, 8),
                (",", 8, 9, {"named": False}),
                ("string", 10, 13, [
                    ('"', 10, 11, {"named": False}),
                    ("string_content", 11, 12),
                    ('"', 12, 13, {"named": False}),
                ]),
                (")", 13, 14, {"named": False}),
            ]),
        ]),
    ]))


@pytest.fixture
def ruby_adapter():
    pytest.importorskip("tree_sitter_ruby")
    adapter = RubyAdapter()
    if not adapter.available:
        pytest.skip("Tree-sitter Ruby parser not available")
    return adapter
