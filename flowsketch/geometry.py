"""Grid snapping and canvas bounds for placed shapes."""

from __future__ import annotations

import math

from .constants import CANVAS_MAX_X, CANVAS_MAX_Y, CANVAS_MIN_X, CANVAS_MIN_Y, GRID_SIZE
from .types import Dimensions, Position


def snap(value: float) -> float:
    """Round ``value`` to the nearest multiple of the grid size, halves upward."""
    return math.floor(value / GRID_SIZE + 0.5) * GRID_SIZE


def snap_position(position: Position) -> Position:
    return Position(snap(position.x), snap(position.y))


def clamp(position: Position, dimensions: Dimensions) -> Position:
    """Constrain a shape so its bounding box stays on the canvas.

    Each axis is clamped independently. A shape larger than the canvas ends
    up with its origin on the minimum bound and overflows the far edge.
    """
    return Position(
        max(CANVAS_MIN_X, min(position.x, CANVAS_MAX_X - dimensions.width)),
        max(CANVAS_MIN_Y, min(position.y, CANVAS_MAX_Y - dimensions.height)),
    )


def is_within_bounds(position: Position, dimensions: Dimensions) -> bool:
    return (
        position.x >= CANVAS_MIN_X
        and position.y >= CANVAS_MIN_Y
        and position.x + dimensions.width <= CANVAS_MAX_X
        and position.y + dimensions.height <= CANVAS_MAX_Y
    )


def snap_and_clamp(position: Position, dimensions: Dimensions) -> Position:
    """Grid-align a position, then keep the shape on the canvas."""
    return clamp(snap_position(position), dimensions)
