"""Data types for FlowSketch diagrams.

This module contains the core data structures used throughout the
FlowSketch editing engine. All of them are frozen: a change to a diagram
always produces new values, so documents held by the undo history are never
modified behind its back.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class NodeType(Enum):
    """Supported node shapes."""

    RECTANGLE = "rectangle"
    ELLIPSE = "ellipse"
    DIAMOND = "diamond"
    IMAGE = "image"


@dataclass(frozen=True)
class Position:
    """A point in canvas space (not screen pixels)."""

    x: float
    y: float


@dataclass(frozen=True)
class Dimensions:
    width: float
    height: float


@dataclass(frozen=True)
class DiagramNode:
    """A placed shape or image with text and geometry."""

    id: str
    node_type: NodeType
    position: Position
    dimensions: Dimensions
    text: str = ""
    image_url: Optional[str] = None  # Required for IMAGE nodes

    @property
    def center(self) -> Position:
        return Position(
            self.position.x + self.dimensions.width / 2,
            self.position.y + self.dimensions.height / 2,
        )

    def contains(self, x: float, y: float) -> bool:
        return (
            self.position.x <= x <= self.position.x + self.dimensions.width
            and self.position.y <= y <= self.position.y + self.dimensions.height
        )


@dataclass(frozen=True)
class DiagramEdge:
    """A directed connection between two diagram nodes."""

    id: str
    from_id: str
    to_id: str
    label: str = ""


@dataclass(frozen=True)
class DrawingPath:
    """A freehand ink stroke on the canvas."""

    id: str
    points: Tuple[Position, ...]
    color: str = "#000000"
    width: float = 2.0


@dataclass(frozen=True)
class ViewTransform:
    """Pan offset (screen pixels) and zoom scale of the drawing surface."""

    offset_x: float = 0.0
    offset_y: float = 0.0
    scale: float = 1.0

    def to_canvas(self, screen_x: float, screen_y: float) -> Position:
        return Position((screen_x - self.offset_x) / self.scale, (screen_y - self.offset_y) / self.scale)

    def to_screen(self, position: Position) -> Tuple[float, float]:
        return (position.x * self.scale + self.offset_x, position.y * self.scale + self.offset_y)
