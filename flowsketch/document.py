"""Immutable diagram document and its JSON schema.

A :class:`DiagramDocument` holds nodes, edges and freehand paths. Every
mutation helper returns a new document; the undo history relies on old
values staying exactly as they were committed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from .errors import ValidationError
from .types import DiagramEdge, DiagramNode, Dimensions, DrawingPath, NodeType, Position

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiagramDocument:
    """The complete diagram state: nodes, edges and freehand paths."""

    nodes: Tuple[DiagramNode, ...] = ()
    edges: Tuple[DiagramEdge, ...] = ()
    paths: Tuple[DrawingPath, ...] = ()

    # --- Queries ------------------------------------------------------------
    @property
    def node_ids(self) -> FrozenSet[str]:
        return frozenset(node.id for node in self.nodes)

    @property
    def is_empty(self) -> bool:
        return not self.nodes and not self.edges and not self.paths

    def node(self, node_id: str) -> Optional[DiagramNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def node_at(self, x: float, y: float) -> Optional[DiagramNode]:
        """Return the top-most node under a canvas point."""
        for node in reversed(self.nodes):
            if node.contains(x, y):
                return node
        return None

    def nodes_in_rect(self, x1: float, y1: float, x2: float, y2: float) -> List[str]:
        """Return ids of nodes whose whole bounding box lies inside the rectangle."""
        min_x, max_x = min(x1, x2), max(x1, x2)
        min_y, max_y = min(y1, y2), max(y1, y2)
        return [
            node.id
            for node in self.nodes
            if node.position.x >= min_x
            and node.position.x + node.dimensions.width <= max_x
            and node.position.y >= min_y
            and node.position.y + node.dimensions.height <= max_y
        ]

    def right_extent(self) -> float:
        """Return the rightmost edge of all nodes (x + width), or 0 when empty."""
        return max((node.position.x + node.dimensions.width for node in self.nodes), default=0.0)

    # --- Structural updates -------------------------------------------------
    def with_node(self, node: DiagramNode) -> "DiagramDocument":
        return replace(self, nodes=self.nodes + (node,))

    def with_path(self, path: DrawingPath) -> "DiagramDocument":
        return replace(self, paths=self.paths + (path,))

    def with_positions(self, positions: Mapping[str, Position]) -> "DiagramDocument":
        """Move the given nodes; unknown ids are ignored."""
        return replace(
            self,
            nodes=tuple(
                replace(node, position=positions[node.id]) if node.id in positions else node
                for node in self.nodes
            ),
        )

    def with_node_text(self, node_id: str, text: str) -> "DiagramDocument":
        return replace(
            self,
            nodes=tuple(replace(node, text=text) if node.id == node_id else node for node in self.nodes),
        )

    def without_nodes(self, node_ids: Iterable[str]) -> "DiagramDocument":
        """Remove nodes together with every edge touching them."""
        removed = set(node_ids)
        return replace(
            self,
            nodes=tuple(node for node in self.nodes if node.id not in removed),
            edges=tuple(
                edge for edge in self.edges if edge.from_id not in removed and edge.to_id not in removed
            ),
        )

    # --- Serialization ------------------------------------------------------
    def to_dict(self) -> Dict[str, Any]:
        """Serialize the document to the JSON-compatible diagram schema."""
        nodes_data = []
        for node in self.nodes:
            node_dict: Dict[str, Any] = {
                "id": node.id,
                "type": node.node_type.value,
                "text": node.text,
                "position": {"x": node.position.x, "y": node.position.y},
                "dimensions": {"width": node.dimensions.width, "height": node.dimensions.height},
            }
            # Only image nodes carry a URL
            if node.image_url:
                node_dict["imageUrl"] = node.image_url
            nodes_data.append(node_dict)

        edges_data = []
        for edge in self.edges:
            edge_dict: Dict[str, Any] = {"id": edge.id, "from": edge.from_id, "to": edge.to_id}
            if edge.label:
                edge_dict["label"] = edge.label
            edges_data.append(edge_dict)

        paths_data = []
        for path in self.paths:
            paths_data.append({
                "id": path.id,
                "points": [{"x": pt.x, "y": pt.y} for pt in path.points],
                "color": path.color,
                "width": path.width,
            })

        return {"nodes": nodes_data, "edges": edges_data, "paths": paths_data}

    @classmethod
    def from_dict(cls, data: Any) -> "DiagramDocument":
        """Build a document from the diagram schema.

        Raises:
            ValidationError: If ``nodes`` is missing or not a list, or if the
                payload cannot form a valid document.
        """
        if not isinstance(data, dict):
            raise ValidationError("Invalid diagram format: expected a JSON object")
        nodes_data = data.get("nodes")
        if not isinstance(nodes_data, list):
            raise ValidationError("Invalid diagram format: missing nodes array")
        edges_data = data.get("edges") or []
        paths_data = data.get("paths") or []
        if not isinstance(edges_data, list) or not isinstance(paths_data, list):
            raise ValidationError("Invalid diagram format: edges and paths must be arrays")

        try:
            nodes = [_node_from_dict(node_data) for node_data in nodes_data]
            edges = [_edge_from_dict(edge_data) for edge_data in edges_data]
            paths = [_path_from_dict(path_data) for path_data in paths_data]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid diagram format: {exc}") from exc

        _ensure_unique((node.id for node in nodes), "node")
        _ensure_unique((edge.id for edge in edges), "edge")

        node_ids = {node.id for node in nodes}
        resolved = [edge for edge in edges if edge.from_id in node_ids and edge.to_id in node_ids]
        if len(resolved) != len(edges):
            logger.warning("Dropped %d edge(s) with missing endpoints", len(edges) - len(resolved))

        return cls(
            nodes=tuple(nodes),
            edges=tuple(resolved),
            paths=tuple(path for path in paths if len(path.points) >= 2),
        )


def _ensure_unique(ids: Iterable[str], kind: str) -> None:
    seen = set()
    for item_id in ids:
        if item_id in seen:
            raise ValidationError(f"Invalid diagram format: duplicate {kind} id {item_id!r}")
        seen.add(item_id)


def _node_from_dict(node_data: Dict[str, Any]) -> DiagramNode:
    node_id = node_data.get("id")
    if not isinstance(node_id, str) or not node_id:
        raise ValueError("node without id")

    image_url = node_data.get("imageUrl") or None
    try:
        node_type = NodeType(node_data.get("type", "rectangle"))
    except ValueError:
        node_type = NodeType.RECTANGLE
    if node_type == NodeType.IMAGE and not image_url:
        node_type = NodeType.RECTANGLE

    position_data = node_data.get("position") or {}
    dimensions_data = node_data.get("dimensions") or {}
    dimensions = Dimensions(
        width=float(dimensions_data["width"]),
        height=float(dimensions_data["height"]),
    )
    if dimensions.width <= 0 or dimensions.height <= 0:
        raise ValueError(f"node {node_id!r} has non-positive dimensions")

    return DiagramNode(
        id=node_id,
        node_type=node_type,
        position=Position(float(position_data.get("x", 0.0)), float(position_data.get("y", 0.0))),
        dimensions=dimensions,
        text=str(node_data.get("text") or ""),
        image_url=image_url if node_type == NodeType.IMAGE else None,
    )


def _edge_from_dict(edge_data: Dict[str, Any]) -> DiagramEdge:
    edge_id = edge_data.get("id")
    if not isinstance(edge_id, str) or not edge_id:
        raise ValueError("edge without id")
    return DiagramEdge(
        id=edge_id,
        from_id=str(edge_data["from"]),
        to_id=str(edge_data["to"]),
        label=str(edge_data.get("label") or ""),
    )


def _path_from_dict(path_data: Dict[str, Any]) -> DrawingPath:
    points = tuple(
        Position(float(pt_data.get("x", 0.0)), float(pt_data.get("y", 0.0)))
        for pt_data in path_data.get("points", [])
    )
    width = float(path_data.get("width", 2.0))
    if width <= 0:
        raise ValueError(f"path {path_data.get('id')!r} has non-positive width")
    return DrawingPath(
        id=str(path_data.get("id", "")),
        points=points,
        color=str(path_data.get("color", "#000000")),
        width=width,
    )
