"""Tests for hierarchical auto-layout and graph merging."""

import pytest

from flowsketch.document import DiagramDocument
from flowsketch.layout import (
    LEVEL_SPACING,
    NODE_SPACING,
    START_X,
    START_Y,
    assign_levels,
    auto_layout,
    merge_generated,
)
from flowsketch.types import DiagramEdge, DiagramNode, Dimensions, NodeType, Position


def make_node(node_id, width=180.0, height=80.0, x=0.0, y=0.0):
    return DiagramNode(node_id, NodeType.RECTANGLE, Position(x, y), Dimensions(width, height))


def make_document(node_ids, edges=(), **sizes):
    nodes = tuple(make_node(node_id, **sizes) for node_id in node_ids)
    return DiagramDocument(
        nodes=nodes,
        edges=tuple(DiagramEdge(f"e{i}", a, b) for i, (a, b) in enumerate(edges)),
    )


class TestAssignLevels:
    def test_chain(self):
        document = make_document(["a", "b", "c"], [("a", "b"), ("b", "c")])
        assert assign_levels(list(document.nodes), list(document.edges)) == {"a": 0, "b": 1, "c": 2}

    def test_cycle_starts_from_first_node(self):
        document = make_document(["A", "B", "C"], [("A", "B"), ("B", "C"), ("C", "A")])
        assert assign_levels(list(document.nodes), list(document.edges)) == {"A": 0, "B": 1, "C": 2}

    def test_diamond_shape_uses_deepest_visited_parent(self):
        document = make_document(
            ["root", "left", "right", "join"],
            [("root", "left"), ("root", "right"), ("left", "join"), ("right", "join")],
        )
        levels = assign_levels(list(document.nodes), list(document.edges))
        assert levels == {"root": 0, "left": 1, "right": 1, "join": 2}

    def test_unreached_nodes_get_level_zero(self):
        # "x" and "y" form a cycle with no root, so the walk never reaches them
        document = make_document(["a", "x", "y"], [("x", "y"), ("y", "x")])
        levels = assign_levels(list(document.nodes), list(document.edges))
        assert levels == {"a": 0, "x": 0, "y": 0}
        assert list(levels) == ["a", "x", "y"]

    def test_self_loop_makes_node_its_own_parent(self):
        # "a" loops onto itself so it is not a root; with no roots the walk starts at "b"
        document = make_document(["b", "a"], [("a", "a"), ("a", "b")])
        levels = assign_levels(list(document.nodes), list(document.edges))
        assert levels == {"b": 0, "a": 0}
        assert list(levels) == ["b", "a"]

    def test_self_loop_on_reached_node_does_not_requeue(self):
        document = make_document(["a", "b"], [("a", "b"), ("b", "b")])
        assert assign_levels(list(document.nodes), list(document.edges)) == {"a": 0, "b": 1}


class TestAutoLayout:
    def test_empty_document_is_unchanged(self):
        document = DiagramDocument()
        assert auto_layout(document) is document

    def test_two_disconnected_nodes_share_a_centred_row(self):
        document = DiagramDocument(nodes=(make_node("a", width=100), make_node("b", width=140)))
        laid_out = auto_layout(document)

        row_width = 100 + 140 + NODE_SPACING
        first_x = START_X - row_width / 2
        assert laid_out.node("a").position == Position(first_x, START_Y)
        assert laid_out.node("b").position == Position(first_x + 100 + NODE_SPACING, START_Y)

    def test_levels_become_rows(self):
        document = make_document(["a", "b"], [("a", "b")], width=180)
        laid_out = auto_layout(document)
        assert laid_out.node("a").position == Position(START_X - 90, START_Y)
        assert laid_out.node("b").position == Position(START_X - 90, START_Y + LEVEL_SPACING)

    def test_ids_edges_and_dimensions_are_preserved(self):
        document = make_document(["a", "b", "c"], [("a", "b"), ("a", "c")])
        laid_out = auto_layout(document)
        assert [node.id for node in laid_out.nodes] == ["a", "b", "c"]
        assert laid_out.edges == document.edges
        assert all(node.dimensions == Dimensions(180, 80) for node in laid_out.nodes)

    def test_layout_is_deterministic(self):
        document = make_document(
            ["a", "b", "c", "d", "e"],
            [("a", "b"), ("a", "c"), ("c", "d"), ("d", "a"), ("e", "d")],
        )
        assert auto_layout(document) == auto_layout(document)


class TestMergeGenerated:
    def test_merge_into_empty_document_uses_no_offset(self):
        generated = make_document(["a"])
        merged = merge_generated(DiagramDocument(), generated)
        assert merged.node("a").position == Position(START_X - 90, START_Y)

    def test_merge_offsets_to_the_right_of_existing_nodes(self):
        current = DiagramDocument(nodes=(make_node("existing", width=200, x=300, y=100),))
        merged = merge_generated(current, make_document(["a"]))

        offset = 300 + 200 + 100
        assert merged.node("existing").position == Position(300, 100)
        assert merged.node("a").position == Position(START_X - 90 + offset, START_Y)

    def test_colliding_ids_are_renamed_with_edges(self):
        current = make_document(["node-0", "node-1"], [("node-0", "node-1")])
        generated = make_document(["node-0", "node-1"], [("node-0", "node-1")])
        merged = merge_generated(current, generated)

        assert [node.id for node in merged.nodes] == ["node-0", "node-1", "node-0-1", "node-1-1"]
        assert len({edge.id for edge in merged.edges}) == 2
        assert merged.edges[1].from_id == "node-0-1"
        assert merged.edges[1].to_id == "node-1-1"

    @pytest.mark.parametrize("count", [1, 3])
    def test_paths_are_kept(self, count):
        from flowsketch.types import DrawingPath

        paths = tuple(DrawingPath(f"p{i}", (Position(0, 0), Position(1, 1))) for i in range(count))
        current = DiagramDocument(paths=paths)
        assert merge_generated(current, make_document(["a"])).paths == paths
