"""Tests for the tree walker.

Covers:
- pre-order document traversal
- SKIP_CHILDREN
- Replace: one-for-one swap, replacement not visited, count returned
- unsupported visitor instructions
"""

import pytest

from docspine.document.nodes import Element, Text
from docspine.document.walker import Action, Replace, iter_nodes, walk


def _tree():
    return [
        Element("paragraph", children=[Text("a"), Element("em", children=[Text("b")])]),
        Element("paragraph", children=[Text("c")]),
    ]


def _label(node):
    return node.content if isinstance(node, Text) else node.tag


class TestWalk:
    def test_visits_in_document_order(self):
        seen = []
        walk(_tree(), lambda node: seen.append(_label(node)))
        assert seen == ["paragraph", "a", "em", "b", "paragraph", "c"]

    def test_skip_children(self):
        seen = []

        def visitor(node):
            seen.append(_label(node))
            if isinstance(node, Element) and node.tag == "em":
                return Action.SKIP_CHILDREN
            return Action.CONTINUE

        walk(_tree(), visitor)
        assert seen == ["paragraph", "a", "em", "paragraph", "c"]

    def test_replace_swaps_node_in_place(self):
        tree = _tree()

        def visitor(node):
            if isinstance(node, Text) and node.content == "a":
                return Replace(Text("A"))
            return None

        count = walk(tree, visitor)
        assert count == 1
        assert [child.text() for child in tree[0].children] == ["A", "b"]

    def test_replacement_and_old_subtree_are_not_visited(self):
        tree = _tree()
        seen = []

        def visitor(node):
            seen.append(_label(node))
            if isinstance(node, Element) and node.tag == "em":
                return Replace(Element("strong", children=[Text("new")]))
            return None

        walk(tree, visitor)
        assert "b" not in seen
        assert "new" not in seen
        assert seen[-2:] == ["paragraph", "c"]
        assert tree[0].children[1].tag == "strong"

    def test_later_siblings_still_visited_after_replace(self):
        tree = [Text("x"), Text("y"), Text("z")]
        seen = []

        def visitor(node):
            seen.append(node.content)
            return Replace(Text(node.content.upper()))

        assert walk(tree, visitor) == 3
        assert seen == ["x", "y", "z"]
        assert [n.content for n in tree] == ["X", "Y", "Z"]

    def test_unsupported_instruction(self):
        with pytest.raises(TypeError):
            walk(_tree(), lambda node: "descend")


class TestIterNodes:
    def test_matches_walk_order(self):
        labels = [_label(node) for node in iter_nodes(_tree())]
        assert labels == ["paragraph", "a", "em", "b", "paragraph", "c"]
