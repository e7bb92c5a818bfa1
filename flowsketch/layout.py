"""Hierarchical auto-layout for generated diagrams.

Nodes are assigned levels by a breadth-first walk from the root nodes and
packed into centred rows, one row per level. The level rule is a heuristic:
a node's level is fixed the first time it is dequeued, from whichever of its
parents were visited before it. Results depend only on node and edge order.
"""

from __future__ import annotations

from collections import deque
from dataclasses import replace
from typing import Dict, List, Set

from .document import DiagramDocument
from .types import DiagramEdge, DiagramNode, Position

LEVEL_SPACING = 180.0
NODE_SPACING = 60.0
START_X = 100.0
START_Y = 100.0

# Horizontal gap between existing content and a merged graph.
MERGE_GAP = 100.0


def assign_levels(nodes: List[DiagramNode], edges: List[DiagramEdge]) -> Dict[str, int]:
    """Return a level per node id, in breadth-first visit order.

    Nodes unreachable from the roots are appended at level 0 in input order.
    """
    node_ids = [node.id for node in nodes]
    known = set(node_ids)

    # Build adjacency info (directed), keeping edge order; a self-loop makes
    # the node its own parent
    children: Dict[str, List[str]] = {node_id: [] for node_id in node_ids}
    parents: Dict[str, List[str]] = {node_id: [] for node_id in node_ids}
    for edge in edges:
        if edge.from_id in known and edge.to_id in known:
            children[edge.from_id].append(edge.to_id)
            parents[edge.to_id].append(edge.from_id)

    roots = [node_id for node_id in node_ids if not parents[node_id]]
    if not roots:
        # Entirely cyclic: start from the first node
        roots = [node_ids[0]]

    levels: Dict[str, int] = {}
    visited: Set[str] = set()
    queue = deque(roots)
    while queue:
        current = queue.popleft()
        if current in visited:
            continue
        settled = [levels[parent] for parent in parents[current] if parent in visited]
        levels[current] = max(settled) + 1 if settled else 0
        visited.add(current)
        queue.extend(child for child in children[current] if child not in visited)

    for node_id in node_ids:
        if node_id not in levels:
            levels[node_id] = 0
    return levels


def auto_layout(document: DiagramDocument) -> DiagramDocument:
    """Position every node of ``document`` in level rows.

    Ids, edges and paths are unchanged; an empty document is returned as is.
    """
    if not document.nodes:
        return document

    nodes = list(document.nodes)
    node_by_id = {node.id: node for node in nodes}
    levels = assign_levels(nodes, list(document.edges))

    rows: Dict[int, List[DiagramNode]] = {}
    for node_id, level in levels.items():
        rows.setdefault(level, []).append(node_by_id[node_id])

    positions: Dict[str, Position] = {}
    for level, row in rows.items():
        row_width = sum(node.dimensions.width for node in row) + (len(row) - 1) * NODE_SPACING
        current_x = START_X - row_width / 2
        y = START_Y + level * LEVEL_SPACING
        for node in row:
            positions[node.id] = Position(current_x, y)
            current_x += node.dimensions.width + NODE_SPACING

    return document.with_positions(positions)


def merge_generated(current: DiagramDocument, generated: DiagramDocument) -> DiagramDocument:
    """Lay out ``generated`` and append it to the right of ``current``.

    Incoming ids that collide with ids already in ``current`` get a numeric
    suffix, and edge endpoints follow the renamed nodes.
    """
    laid_out = auto_layout(generated)
    extent = current.right_extent()
    offset_x = extent + MERGE_GAP if extent > 0 else 0.0

    taken_nodes = set(current.node_ids)
    renamed: Dict[str, str] = {}
    new_nodes = []
    for node in laid_out.nodes:
        node_id = _unique_id(node.id, taken_nodes)
        renamed[node.id] = node_id
        new_nodes.append(replace(
            node,
            id=node_id,
            position=Position(node.position.x + offset_x, node.position.y),
        ))

    taken_edges = {edge.id for edge in current.edges}
    new_edges = []
    for edge in laid_out.edges:
        new_edges.append(replace(
            edge,
            id=_unique_id(edge.id, taken_edges),
            from_id=renamed.get(edge.from_id, edge.from_id),
            to_id=renamed.get(edge.to_id, edge.to_id),
        ))

    return DiagramDocument(
        nodes=current.nodes + tuple(new_nodes),
        edges=current.edges + tuple(new_edges),
        paths=current.paths,
    )


def _unique_id(candidate: str, taken: Set[str]) -> str:
    unique = candidate
    suffix = 1
    while unique in taken:
        unique = f"{candidate}-{suffix}"
        suffix += 1
    taken.add(unique)
    return unique
