"""Constants and presets for FlowSketch diagrams."""

from typing import Dict, List

from .types import Dimensions, NodeType


GRID_SIZE = 20.0

CANVAS_MIN_X = 50.0
CANVAS_MIN_Y = 50.0
CANVAS_MAX_X = 2950.0
CANVAS_MAX_Y = 2950.0

MIN_ZOOM = 0.1
MAX_ZOOM = 3.0
ZOOM_OUT_FACTOR = 0.9
ZOOM_IN_FACTOR = 1.1

# Shapes drawn smaller than this on either axis are discarded.
MIN_SHAPE_SIZE = 20.0

TEXT_NODE_SIZE = Dimensions(150.0, 60.0)
GENERATED_NODE_SIZE = Dimensions(180.0, 80.0)

PEN_WIDTH = 2.0
DEFAULT_PEN_COLOR = "#000000"

PEN_COLORS: Dict[str, str] = {
    "Black": "#000000",
    "Red": "#ef4444",
    "Blue": "#3b82f6",
    "Green": "#22c55e",
    "Orange": "#f97316",
    "Purple": "#a855f7",
}

MAX_HISTORY_SIZE = 50
AUTOSAVE_DELAY_MS = 2000
SAVED_STATUS_MS = 2000

IMAGE_MAX_WIDTH = 300.0
IMAGE_DROP_X = 500.0
IMAGE_DROP_Y = 300.0

SHAPE_TOOLS: Dict[str, NodeType] = {
    "rectangle": NodeType.RECTANGLE,
    "ellipse": NodeType.ELLIPSE,
    "diamond": NodeType.DIAMOND,
}

SAVE_STATUSES: List[str] = ["idle", "saving", "saved", "unsaved"]
