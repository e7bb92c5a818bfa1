"""Canvas interaction state machine.

The :class:`CanvasController` turns pointer and keyboard events into new
documents committed to a :class:`~flowsketch.history.DiagramHistory`. It has
no rendering surface of its own: the canvas widget translates Qt events into
calls on this class, which keeps every tool testable without a window.

Pointer-down is dispatched on the active tool, pointer-move and pointer-up on
the gesture in progress. Holding space overrides every tool with panning.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from itertools import count
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

from PySide6.QtCore import Property, QObject, Signal, Slot

from .constants import (
    DEFAULT_PEN_COLOR,
    MAX_ZOOM,
    MIN_SHAPE_SIZE,
    MIN_ZOOM,
    PEN_WIDTH,
    SHAPE_TOOLS,
    TEXT_NODE_SIZE,
    ZOOM_IN_FACTOR,
    ZOOM_OUT_FACTOR,
)
from .document import DiagramDocument
from .geometry import snap_and_clamp
from .history import DiagramHistory
from .renderer import RenderState
from .types import DiagramNode, Dimensions, DrawingPath, NodeType, Position, ViewTransform

logger = logging.getLogger(__name__)


class Tool(Enum):
    """Drawing surface tools."""

    SELECT = "select"
    RECTANGLE = "rectangle"
    ELLIPSE = "ellipse"
    DIAMOND = "diamond"
    TEXT = "text"
    PEN = "pen"


class Gesture(Enum):
    """Phase of the pointer gesture in progress."""

    IDLE = "idle"
    PANNING = "panning"
    DRAGGING = "dragging"
    SELECTING = "selecting"
    DRAWING_SHAPE = "drawing_shape"
    DRAWING_PATH = "drawing_path"


@dataclass(frozen=True)
class Pointer:
    """A pointer event in both coordinate systems."""

    screen_x: float
    screen_y: float
    canvas: Position
    multi: bool = False


@dataclass(frozen=True)
class TextEdit:
    """An open inline text overlay.

    ``node_id`` is None when the overlay creates a new node.
    """

    screen_x: float
    screen_y: float
    canvas: Position
    node_id: Optional[str] = None
    initial_text: str = ""


class CanvasController(QObject):
    """Tool and gesture state for the drawing surface."""

    toolChanged = Signal()
    selectionChanged = Signal()
    viewChanged = Signal()
    previewChanged = Signal()
    textEditChanged = Signal()
    penColorChanged = Signal()
    documentChanged = Signal()

    # tool -> pointer-down handler
    _POINTER_DOWN: Dict[Tool, str] = {
        Tool.SELECT: "_press_select",
        Tool.RECTANGLE: "_press_shape",
        Tool.ELLIPSE: "_press_shape",
        Tool.DIAMOND: "_press_shape",
        Tool.TEXT: "_press_text",
        Tool.PEN: "_press_pen",
    }

    # gesture -> pointer-move handler
    _POINTER_MOVE: Dict[Gesture, str] = {
        Gesture.PANNING: "_move_pan",
        Gesture.DRAGGING: "_move_drag",
        Gesture.SELECTING: "_move_rubber_band",
        Gesture.DRAWING_PATH: "_move_pen",
    }

    # gesture -> pointer-up handler
    _POINTER_UP: Dict[Gesture, str] = {
        Gesture.DRAGGING: "_release_drag",
        Gesture.SELECTING: "_release_rubber_band",
        Gesture.DRAWING_SHAPE: "_release_shape",
        Gesture.DRAWING_PATH: "_release_pen",
    }

    _KEY_PRESS: Dict[str, str] = {
        "Escape": "_key_escape",
        "Delete": "_key_delete",
        "Backspace": "_key_delete",
        "Space": "_key_space",
    }

    def __init__(self, history: DiagramHistory, id_factory: Optional[Callable[[str], str]] = None):
        super().__init__()
        self._history = history
        self._id_source = count()
        self._id_factory = id_factory
        self._tool = Tool.SELECT
        self._gesture = Gesture.IDLE
        self._view = ViewTransform()
        self._selection: FrozenSet[str] = frozenset()
        self._pen_color = DEFAULT_PEN_COLOR
        self._space_held = False
        self._last_screen: Tuple[float, float] = (0.0, 0.0)

        # Transient gesture state
        self._drag_offsets: Dict[str, Position] = {}
        self._preview: Dict[str, Position] = {}
        self._rubber_band: Optional[Tuple[Position, Position]] = None
        self._draw_origin: Optional[Position] = None
        self._current_path: List[Position] = []
        self._text_edit: Optional[TextEdit] = None

        self._history.changed.connect(self._on_history_changed)

    # --- Read-only state ----------------------------------------------------
    @property
    def document(self) -> DiagramDocument:
        return self._history.present

    @property
    def tool(self) -> Tool:
        return self._tool

    @property
    def gesture(self) -> Gesture:
        return self._gesture

    @property
    def view(self) -> ViewTransform:
        return self._view

    @property
    def selection(self) -> FrozenSet[str]:
        return self._selection

    @property
    def preview_positions(self) -> Dict[str, Position]:
        return dict(self._preview)

    @property
    def current_path(self) -> Tuple[Position, ...]:
        return tuple(self._current_path)

    @property
    def selection_rect(self) -> Optional[Tuple[Position, Position]]:
        return self._rubber_band

    @property
    def text_edit(self) -> Optional[TextEdit]:
        return self._text_edit

    @property
    def space_held(self) -> bool:
        return self._space_held

    def render_state(self) -> RenderState:
        """Snapshot everything the renderer needs for one frame."""
        return RenderState(
            document=self.document,
            selection=self._selection,
            view=self._view,
            preview_positions=dict(self._preview),
            current_path=tuple(self._current_path),
            pen_color=self._pen_color,
            selection_rect=self._rubber_band,
        )

    # --- Properties exposed to Qt ------------------------------------------
    @Property(str, notify=toolChanged)
    def toolName(self) -> str:
        return self._tool.value

    @Property(int, notify=selectionChanged)
    def selectedCount(self) -> int:
        return len(self._selection)

    @Property(float, notify=viewChanged)
    def scale(self) -> float:
        return self._view.scale

    @Property(bool, notify=textEditChanged)
    def isEditingText(self) -> bool:
        return self._text_edit is not None

    @Property(str, notify=penColorChanged)
    def penColor(self) -> str:
        return self._pen_color

    @penColor.setter  # type: ignore[no-redef]
    def penColor(self, value: str) -> None:
        self.setPenColor(value)

    @Slot(str)
    def setPenColor(self, color: str) -> None:
        if self._pen_color != color:
            self._pen_color = color
            self.penColorChanged.emit()

    # --- Tool & selection ---------------------------------------------------
    @Slot(str)
    def setTool(self, tool: str) -> None:
        self.set_tool(Tool(tool))

    def set_tool(self, tool: Tool) -> None:
        if self._tool != tool:
            self._tool = tool
            self.toolChanged.emit()

    def set_selection(self, node_ids) -> None:
        selection = frozenset(node_ids) & self.document.node_ids
        if selection != self._selection:
            self._selection = selection
            self.selectionChanged.emit()

    @Slot()
    def clearSelection(self) -> None:
        self.set_selection(())

    # --- Pointer events -----------------------------------------------------
    def pointer_down(self, screen_x: float, screen_y: float, multi: bool = False) -> None:
        """Start a gesture at a screen position.

        Args:
            screen_x: X coordinate in widget pixels.
            screen_y: Y coordinate in widget pixels.
            multi: True when the multi-select modifier (Ctrl/Cmd) is held.
        """
        pointer = self._pointer(screen_x, screen_y, multi)
        self._last_screen = (screen_x, screen_y)
        if self._space_held:
            self._gesture = Gesture.PANNING
            return
        getattr(self, self._POINTER_DOWN[self._tool])(pointer)

    def pointer_move(self, screen_x: float, screen_y: float) -> None:
        handler = self._POINTER_MOVE.get(self._gesture)
        if handler is not None:
            getattr(self, handler)(self._pointer(screen_x, screen_y))
        self._last_screen = (screen_x, screen_y)

    def pointer_up(self, screen_x: float, screen_y: float) -> None:
        handler = self._POINTER_UP.get(self._gesture)
        self._gesture = Gesture.IDLE
        if handler is not None:
            getattr(self, handler)(self._pointer(screen_x, screen_y))
        self._last_screen = (screen_x, screen_y)

    def double_click(self, screen_x: float, screen_y: float) -> None:
        """Open the text overlay on the node under the pointer (select tool only)."""
        if self._tool != Tool.SELECT:
            return
        pointer = self._pointer(screen_x, screen_y)
        node = self.document.node_at(pointer.canvas.x, pointer.canvas.y)
        if node is None:
            return
        self._open_text_edit(TextEdit(screen_x, screen_y, pointer.canvas, node.id, node.text))

    def wheel(self, delta: float) -> None:
        """Zoom out for positive (downward) deltas, in for negative ones."""
        if delta == 0:
            return
        factor = ZOOM_OUT_FACTOR if delta > 0 else ZOOM_IN_FACTOR
        scale = max(MIN_ZOOM, min(MAX_ZOOM, self._view.scale * factor))
        if scale != self._view.scale:
            self._view = replace(self._view, scale=scale)
            self.viewChanged.emit()

    # --- Keyboard events ----------------------------------------------------
    def key_press(self, key: str) -> bool:
        """Handle a named key; return True when it was consumed."""
        handler = self._KEY_PRESS.get(key)
        if handler is None:
            return False
        return getattr(self, handler)()

    def key_release(self, key: str) -> bool:
        if key != "Space" or not self._space_held:
            return False
        self._space_held = False
        if self._gesture == Gesture.PANNING:
            self._gesture = Gesture.IDLE
        return True

    # --- Text overlay -------------------------------------------------------
    @Slot(str, result=bool)
    def submitText(self, text: str) -> bool:
        """Apply the open text overlay; return True when a commit happened."""
        edit = self._text_edit
        if edit is None:
            return False
        self._close_text_edit()
        text = text.strip()

        if edit.node_id is None:
            if not text:
                return False
            node = DiagramNode(
                id=self.next_id("node"),
                node_type=NodeType.RECTANGLE,
                position=snap_and_clamp(edit.canvas, TEXT_NODE_SIZE),
                dimensions=TEXT_NODE_SIZE,
                text=text,
            )
            self._history.commit(self.document.with_node(node))
            self.set_tool(Tool.SELECT)
            return True

        node = self.document.node(edit.node_id)
        if node is None:
            return False
        new_text = text or node.text
        if new_text == node.text:
            return False
        self._history.commit(self.document.with_node_text(node.id, new_text))
        return True

    @Slot()
    def cancelTextEdit(self) -> None:
        self._close_text_edit()

    # --- Select tool --------------------------------------------------------
    def _press_select(self, pointer: Pointer) -> None:
        position = pointer.canvas
        node = self.document.node_at(position.x, position.y)
        if node is None:
            if not pointer.multi:
                self.set_selection(())
            self._rubber_band = (position, position)
            self._gesture = Gesture.SELECTING
            self.previewChanged.emit()
            return

        if pointer.multi:
            self.set_selection(self._selection ^ {node.id})
            return

        if node.id in self._selection:
            targets = [n for n in self.document.nodes if n.id in self._selection]
        else:
            targets = [node]
            self.set_selection({node.id})

        self._drag_offsets = {
            target.id: Position(position.x - target.position.x, position.y - target.position.y)
            for target in targets
        }
        self._gesture = Gesture.DRAGGING

    def _move_drag(self, pointer: Pointer) -> None:
        preview: Dict[str, Position] = {}
        for node_id, offset in self._drag_offsets.items():
            node = self.document.node(node_id)
            if node is None:
                continue
            candidate = Position(pointer.canvas.x - offset.x, pointer.canvas.y - offset.y)
            preview[node_id] = snap_and_clamp(candidate, node.dimensions)
        self._preview = preview
        self.previewChanged.emit()

    def _release_drag(self, pointer: Pointer) -> None:
        preview = self._preview
        self._preview = {}
        self._drag_offsets = {}
        moved: Dict[str, Position] = {}
        for node_id, position in preview.items():
            node = self.document.node(node_id)
            if node is not None and node.position != position:
                moved[node_id] = position
        if moved:
            self._history.commit(self.document.with_positions(moved))
        self.previewChanged.emit()

    def _move_rubber_band(self, pointer: Pointer) -> None:
        if self._rubber_band is None:
            return
        self._rubber_band = (self._rubber_band[0], pointer.canvas)
        self.previewChanged.emit()

    def _release_rubber_band(self, pointer: Pointer) -> None:
        if self._rubber_band is None:
            return
        start = self._rubber_band[0]
        self._rubber_band = None
        found = self.document.nodes_in_rect(start.x, start.y, pointer.canvas.x, pointer.canvas.y)
        if found:
            self.set_selection(found)
        self.previewChanged.emit()

    # --- Shape tools --------------------------------------------------------
    def _press_shape(self, pointer: Pointer) -> None:
        self._draw_origin = pointer.canvas
        self._gesture = Gesture.DRAWING_SHAPE

    def _release_shape(self, pointer: Pointer) -> None:
        origin = self._draw_origin
        self._draw_origin = None
        if origin is None:
            return
        end = pointer.canvas
        width = abs(end.x - origin.x)
        height = abs(end.y - origin.y)
        if width <= MIN_SHAPE_SIZE or height <= MIN_SHAPE_SIZE:
            return

        dimensions = Dimensions(width, height)
        node = DiagramNode(
            id=self.next_id("node"),
            node_type=SHAPE_TOOLS[self._tool.value],
            position=snap_and_clamp(Position(min(origin.x, end.x), min(origin.y, end.y)), dimensions),
            dimensions=dimensions,
            text=self._tool.value.capitalize(),
        )
        self._history.commit(self.document.with_node(node))
        self.set_tool(Tool.SELECT)

    # --- Text tool ----------------------------------------------------------
    def _press_text(self, pointer: Pointer) -> None:
        if self.document.node_at(pointer.canvas.x, pointer.canvas.y) is not None:
            return
        self._open_text_edit(TextEdit(pointer.screen_x, pointer.screen_y, pointer.canvas))

    # --- Pen tool -----------------------------------------------------------
    def _press_pen(self, pointer: Pointer) -> None:
        self._current_path = [pointer.canvas]
        self._gesture = Gesture.DRAWING_PATH
        self.previewChanged.emit()

    def _move_pen(self, pointer: Pointer) -> None:
        self._current_path.append(pointer.canvas)
        self.previewChanged.emit()

    def _release_pen(self, pointer: Pointer) -> None:
        points = tuple(self._current_path)
        self._current_path = []
        if len(points) > 2:
            path = DrawingPath(
                id=self.next_id("path"),
                points=points,
                color=self._pen_color,
                width=PEN_WIDTH,
            )
            self._history.commit(self.document.with_path(path))
        self.previewChanged.emit()

    # --- Panning ------------------------------------------------------------
    def _move_pan(self, pointer: Pointer) -> None:
        dx = pointer.screen_x - self._last_screen[0]
        dy = pointer.screen_y - self._last_screen[1]
        self._view = replace(self._view, offset_x=self._view.offset_x + dx, offset_y=self._view.offset_y + dy)
        self.viewChanged.emit()

    # --- Keys ---------------------------------------------------------------
    def _key_escape(self) -> bool:
        self.set_tool(Tool.SELECT)
        self.set_selection(())
        self._close_text_edit()
        if self._rubber_band is not None:
            self._rubber_band = None
            self.previewChanged.emit()
        if self._gesture == Gesture.SELECTING:
            self._gesture = Gesture.IDLE
        return True

    def _key_delete(self) -> bool:
        if not self._selection or self._text_edit is not None:
            return False
        removed = self._selection
        self._history.commit(self.document.without_nodes(removed))
        self.set_selection(())
        logger.debug("Deleted %d node(s)", len(removed))
        return True

    def _key_space(self) -> bool:
        if self._text_edit is not None:
            return False
        self._space_held = True
        return True

    # --- Helpers ------------------------------------------------------------
    def _pointer(self, screen_x: float, screen_y: float, multi: bool = False) -> Pointer:
        return Pointer(screen_x, screen_y, self._view.to_canvas(screen_x, screen_y), multi)

    def next_id(self, prefix: str) -> str:
        """Return a fresh id that no node or path in the document uses."""
        if self._id_factory is not None:
            return self._id_factory(prefix)
        taken = self.document.node_ids | {path.id for path in self.document.paths}
        while True:
            candidate = f"{prefix}-{next(self._id_source)}"
            if candidate not in taken:
                return candidate

    def _open_text_edit(self, edit: TextEdit) -> None:
        self._text_edit = edit
        self.textEditChanged.emit()

    def _close_text_edit(self) -> None:
        if self._text_edit is not None:
            self._text_edit = None
            self.textEditChanged.emit()

    def _on_history_changed(self, reason: str) -> None:
        # Keep the selection a subset of the present document
        self.set_selection(self._selection)
        self.documentChanged.emit()
        if self._text_edit is not None and self._text_edit.node_id is not None:
            if self.document.node(self._text_edit.node_id) is None:
                self._close_text_edit()
