"""FlowSketch diagram editor built with PySide6.

Documents are immutable values; the interaction controller, the undo history
and the autosave scheduler exchange whole documents rather than mutating a
shared model.
"""

from .document import DiagramDocument
from .editor import DiagramEditor
from .errors import (
    ConfigurationError,
    DiagramError,
    MalformedResponseError,
    PersistenceError,
    TransportError,
    ValidationError,
)
from .history import DiagramHistory
from .interaction import CanvasController, Tool
from .layout import auto_layout, merge_generated
from .types import (
    DiagramEdge,
    DiagramNode,
    Dimensions,
    DrawingPath,
    NodeType,
    Position,
    ViewTransform,
)
from .ui import create_editor_window, main

__all__ = [
    "CanvasController",
    "ConfigurationError",
    "DiagramDocument",
    "DiagramEdge",
    "DiagramEditor",
    "DiagramError",
    "DiagramHistory",
    "DiagramNode",
    "Dimensions",
    "DrawingPath",
    "MalformedResponseError",
    "NodeType",
    "PersistenceError",
    "Position",
    "Tool",
    "TransportError",
    "ValidationError",
    "ViewTransform",
    "auto_layout",
    "create_editor_window",
    "main",
    "merge_generated",
]
