"""Tests for the diagram document model and JSON schema."""

import pytest

from flowsketch.document import DiagramDocument
from flowsketch.errors import ValidationError
from flowsketch.types import DiagramEdge, DiagramNode, Dimensions, DrawingPath, NodeType, Position


def make_node(node_id, x=100.0, y=100.0, width=100.0, height=60.0, node_type=NodeType.RECTANGLE, text=""):
    return DiagramNode(
        id=node_id,
        node_type=node_type,
        position=Position(x, y),
        dimensions=Dimensions(width, height),
        text=text,
    )


@pytest.fixture
def document():
    return DiagramDocument(
        nodes=(
            make_node("a", 100, 100, text="Start"),
            make_node("b", 300, 100, node_type=NodeType.DIAMOND),
            make_node("c", 140, 120),
        ),
        edges=(
            DiagramEdge("e1", "a", "b", "yes"),
            DiagramEdge("e2", "b", "c"),
        ),
        paths=(DrawingPath("p1", (Position(0, 0), Position(10, 10)), "#ef4444", 2.0),),
    )


class TestQueries:
    def test_empty_document(self):
        document = DiagramDocument()
        assert document.is_empty
        assert document.node_ids == frozenset()
        assert document.right_extent() == 0.0

    def test_node_lookup(self, document):
        assert document.node("b").node_type == NodeType.DIAMOND
        assert document.node("missing") is None

    def test_node_at_returns_topmost(self, document):
        # "c" overlaps "a" and is later in the list
        assert document.node_at(150, 130).id == "c"
        assert document.node_at(105, 105).id == "a"
        assert document.node_at(1000, 1000) is None

    def test_nodes_in_rect_requires_full_containment(self, document):
        assert document.nodes_in_rect(90, 90, 210, 170) == ["a"]
        assert document.nodes_in_rect(410, 190, 90, 90) == ["a", "b", "c"]
        assert document.nodes_in_rect(120, 90, 500, 500) == ["b", "c"]

    def test_right_extent(self, document):
        assert document.right_extent() == 400.0


class TestUpdates:
    def test_with_node_does_not_modify_original(self, document):
        updated = document.with_node(make_node("d"))
        assert "d" in updated.node_ids
        assert "d" not in document.node_ids

    def test_with_positions_moves_only_listed_nodes(self, document):
        updated = document.with_positions({"a": Position(500, 500), "unknown": Position(0, 0)})
        assert updated.node("a").position == Position(500, 500)
        assert updated.node("b").position == document.node("b").position
        assert document.node("a").position == Position(100, 100)

    def test_with_node_text(self, document):
        updated = document.with_node_text("b", "Decide")
        assert updated.node("b").text == "Decide"
        assert document.node("b").text == ""

    def test_without_nodes_cascades_edges(self, document):
        updated = document.without_nodes({"b"})
        assert updated.node_ids == frozenset({"a", "c"})
        assert updated.edges == ()
        assert updated.paths == document.paths


class TestSerialization:
    def test_to_dict_schema(self, document):
        data = document.to_dict()
        assert data["nodes"][0] == {
            "id": "a",
            "type": "rectangle",
            "text": "Start",
            "position": {"x": 100.0, "y": 100.0},
            "dimensions": {"width": 100.0, "height": 60.0},
        }
        assert data["edges"][0] == {"id": "e1", "from": "a", "to": "b", "label": "yes"}
        assert data["edges"][1] == {"id": "e2", "from": "b", "to": "c"}
        assert data["paths"][0]["points"] == [{"x": 0.0, "y": 0.0}, {"x": 10.0, "y": 10.0}]

    def test_from_dict_restores_document(self, document):
        assert DiagramDocument.from_dict(document.to_dict()) == document

    def test_image_node_keeps_url(self):
        data = {
            "nodes": [{
                "id": "img",
                "type": "image",
                "imageUrl": "https://example.com/a.png",
                "position": {"x": 500, "y": 300},
                "dimensions": {"width": 300, "height": 150},
            }],
        }
        node = DiagramDocument.from_dict(data).node("img")
        assert node.node_type == NodeType.IMAGE
        assert node.image_url == "https://example.com/a.png"

    def test_image_without_url_becomes_rectangle(self):
        data = {"nodes": [{"id": "x", "type": "image", "dimensions": {"width": 10, "height": 10}}]}
        assert DiagramDocument.from_dict(data).node("x").node_type == NodeType.RECTANGLE

    def test_unknown_type_becomes_rectangle(self):
        data = {"nodes": [{"id": "x", "type": "hexagon", "dimensions": {"width": 10, "height": 10}}]}
        assert DiagramDocument.from_dict(data).node("x").node_type == NodeType.RECTANGLE

    def test_missing_edges_and_paths_default_to_empty(self):
        document = DiagramDocument.from_dict({"nodes": []})
        assert document.is_empty

    def test_dangling_edges_are_dropped(self):
        data = {
            "nodes": [{"id": "a", "dimensions": {"width": 10, "height": 10}}],
            "edges": [{"id": "e", "from": "a", "to": "ghost"}],
        }
        assert DiagramDocument.from_dict(data).edges == ()

    def test_single_point_paths_are_dropped(self):
        data = {"nodes": [], "paths": [{"id": "p", "points": [{"x": 1, "y": 1}]}]}
        assert DiagramDocument.from_dict(data).paths == ()


class TestValidation:
    @pytest.mark.parametrize(
        "payload",
        [
            {"edges": []},
            {"nodes": {"a": 1}},
            {"nodes": None},
            [],
            "nodes",
            {"nodes": [], "edges": {"e": 1}},
        ],
    )
    def test_rejects_invalid_containers(self, payload):
        with pytest.raises(ValidationError):
            DiagramDocument.from_dict(payload)

    def test_rejects_duplicate_node_ids(self):
        node = {"id": "a", "dimensions": {"width": 10, "height": 10}}
        with pytest.raises(ValidationError):
            DiagramDocument.from_dict({"nodes": [node, dict(node)]})

    def test_rejects_non_positive_dimensions(self):
        with pytest.raises(ValidationError):
            DiagramDocument.from_dict({"nodes": [{"id": "a", "dimensions": {"width": 0, "height": 10}}]})

    def test_rejects_missing_dimensions(self):
        with pytest.raises(ValidationError):
            DiagramDocument.from_dict({"nodes": [{"id": "a"}]})

    def test_rejects_node_without_id(self):
        with pytest.raises(ValidationError):
            DiagramDocument.from_dict({"nodes": [{"dimensions": {"width": 10, "height": 10}}]})
