"""QPainter renderer for diagram documents.

The renderer reads a :class:`RenderState` snapshot and draws it; it never
modifies the document it is given.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple

from PySide6.QtCore import QPointF, QRectF, Qt
from PySide6.QtGui import QBrush, QColor, QFont, QFontMetricsF, QPainter, QPainterPath, QPen, QPolygonF

from .constants import GRID_SIZE
from .document import DiagramDocument
from .images import ImageCache
from .types import DiagramEdge, DiagramNode, DrawingPath, NodeType, Position, ViewTransform

BACKGROUND_COLOR = "#f9fafb"
GRID_COLOR = "#e5e7eb"
STROKE_COLOR = "#1f2937"
SELECTED_COLOR = "#3b82f6"
NODE_FILL = "#ffffff"
LABEL_COLOR = "#4b5563"

STROKE_WIDTH = 1.5
SELECTED_STROKE_WIDTH = 2.5
ARROW_LENGTH = 12.0
TEXT_PADDING = 20.0
LINE_HEIGHT = 18.0


@dataclass(frozen=True)
class RenderState:
    """Everything needed to draw one frame of the canvas."""

    document: DiagramDocument
    selection: FrozenSet[str] = frozenset()
    view: ViewTransform = ViewTransform()
    preview_positions: Dict[str, Position] = field(default_factory=dict)
    current_path: Tuple[Position, ...] = ()
    pen_color: str = "#000000"
    selection_rect: Optional[Tuple[Position, Position]] = None


def wrap_text(text: str, max_width: float, metrics: QFontMetricsF) -> List[str]:
    """Greedy word wrap; a single word wider than ``max_width`` gets its own line."""
    lines: List[str] = []
    current = ""
    for word in text.split(" "):
        candidate = f"{current} {word}" if current else word
        if metrics.horizontalAdvance(candidate) > max_width and current:
            lines.append(current)
            current = word
        else:
            current = candidate
    if current:
        lines.append(current)
    return lines


class DiagramRenderer:
    """Draw grid, paths, edges and nodes with a QPainter."""

    def __init__(self, image_cache: Optional[ImageCache] = None):
        self._images = image_cache if image_cache is not None else ImageCache()
        self._node_font = QFont("Arial")
        self._node_font.setPixelSize(14)
        self._label_font = QFont("Arial")
        self._label_font.setPixelSize(12)

    @property
    def image_cache(self) -> ImageCache:
        return self._images

    def render(self, painter: QPainter, state: RenderState, width: float, height: float) -> None:
        painter.save()
        painter.setRenderHint(QPainter.Antialiasing, True)
        painter.fillRect(QRectF(0, 0, width, height), QColor(BACKGROUND_COLOR))
        self.draw_grid(painter, state.view, width, height)

        painter.save()
        painter.translate(state.view.offset_x, state.view.offset_y)
        painter.scale(state.view.scale, state.view.scale)

        document = state.document
        for path in document.paths:
            self.draw_path(painter, path)

        centers = {}
        for node in document.nodes:
            position = state.preview_positions.get(node.id, node.position)
            centers[node.id] = QPointF(
                position.x + node.dimensions.width / 2,
                position.y + node.dimensions.height / 2,
            )
        for edge in document.edges:
            self.draw_edge(painter, edge, centers)

        for node in document.nodes:
            preview = state.preview_positions.get(node.id)
            self.draw_node(painter, node, node.id in state.selection, preview)

        if state.current_path:
            self.draw_path(painter, DrawingPath("current", state.current_path, state.pen_color, 2.0))
        painter.restore()

        if state.selection_rect is not None:
            self.draw_selection_rect(painter, state.view, state.selection_rect)
        painter.restore()

    # --- Primitives ---------------------------------------------------------
    def draw_grid(self, painter: QPainter, view: ViewTransform, width: float, height: float) -> None:
        grid = GRID_SIZE * view.scale
        if grid <= 0:
            return
        painter.save()
        pen = QPen(QColor(GRID_COLOR))
        pen.setWidthF(1.0)
        painter.setPen(pen)
        x = view.offset_x % grid
        while x < width + grid:
            painter.drawLine(QPointF(x, 0), QPointF(x, height))
            x += grid
        y = view.offset_y % grid
        while y < height + grid:
            painter.drawLine(QPointF(0, y), QPointF(width, y))
            y += grid
        painter.restore()

    def draw_path(self, painter: QPainter, path: DrawingPath) -> None:
        if len(path.points) < 2:
            return
        painter.save()
        pen = QPen(QColor(path.color))
        pen.setWidthF(path.width)
        pen.setCapStyle(Qt.RoundCap)
        pen.setJoinStyle(Qt.RoundJoin)
        painter.setPen(pen)
        painter.setBrush(Qt.NoBrush)
        painter_path = QPainterPath(QPointF(path.points[0].x, path.points[0].y))
        for point in path.points[1:]:
            painter_path.lineTo(point.x, point.y)
        painter.drawPath(painter_path)
        painter.restore()

    def draw_edge(self, painter: QPainter, edge: DiagramEdge, centers: Dict[str, QPointF]) -> None:
        start = centers.get(edge.from_id)
        end = centers.get(edge.to_id)
        if start is None or end is None:
            return

        painter.save()
        pen = QPen(QColor(STROKE_COLOR))
        pen.setWidthF(STROKE_WIDTH)
        painter.setPen(pen)
        painter.drawLine(start, end)
        self._draw_arrow_head(painter, start, end)

        if edge.label:
            mid = QPointF((start.x() + end.x()) / 2, (start.y() + end.y()) / 2)
            painter.setFont(self._label_font)
            metrics = QFontMetricsF(self._label_font)
            text_width = metrics.horizontalAdvance(edge.label)
            padding = 4.0
            painter.fillRect(
                QRectF(mid.x() - text_width / 2 - padding, mid.y() - 8, text_width + padding * 2, 16),
                QColor(NODE_FILL),
            )
            painter.setPen(QColor(LABEL_COLOR))
            painter.drawText(
                QRectF(mid.x() - text_width / 2 - padding, mid.y() - 8, text_width + padding * 2, 16),
                Qt.AlignCenter,
                edge.label,
            )
        painter.restore()

    def _draw_arrow_head(self, painter: QPainter, start: QPointF, tip: QPointF) -> None:
        angle = math.atan2(tip.y() - start.y(), tip.x() - start.x())
        left = QPointF(
            tip.x() - ARROW_LENGTH * math.cos(angle - math.pi / 6),
            tip.y() - ARROW_LENGTH * math.sin(angle - math.pi / 6),
        )
        right = QPointF(
            tip.x() - ARROW_LENGTH * math.cos(angle + math.pi / 6),
            tip.y() - ARROW_LENGTH * math.sin(angle + math.pi / 6),
        )
        painter.setBrush(QBrush(QColor(STROKE_COLOR)))
        painter.drawPolygon(QPolygonF([tip, left, right]))

    def draw_node(
        self,
        painter: QPainter,
        node: DiagramNode,
        selected: bool = False,
        position: Optional[Position] = None,
    ) -> None:
        position = position or node.position
        rect = QRectF(position.x, position.y, node.dimensions.width, node.dimensions.height)

        painter.save()
        pen = QPen(QColor(SELECTED_COLOR if selected else STROKE_COLOR))
        pen.setWidthF(SELECTED_STROKE_WIDTH if selected else STROKE_WIDTH)
        painter.setPen(pen)
        painter.setBrush(QBrush(QColor(NODE_FILL)))

        if node.node_type == NodeType.RECTANGLE:
            painter.drawRect(rect)
        elif node.node_type == NodeType.ELLIPSE:
            painter.drawEllipse(rect)
        elif node.node_type == NodeType.DIAMOND:
            center = rect.center()
            painter.drawPolygon(QPolygonF([
                QPointF(center.x(), rect.top()),
                QPointF(rect.right(), center.y()),
                QPointF(center.x(), rect.bottom()),
                QPointF(rect.left(), center.y()),
            ]))
        elif node.node_type == NodeType.IMAGE and node.image_url:
            image = self._images.image(node.image_url)
            if image is not None:
                painter.drawImage(rect, image)
                if selected:
                    painter.setBrush(Qt.NoBrush)
                    painter.drawRect(rect)

        if node.node_type != NodeType.IMAGE:
            self._draw_text(painter, node.text, rect)
        painter.restore()

    def _draw_text(self, painter: QPainter, text: str, rect: QRectF) -> None:
        if not text:
            return
        painter.setFont(self._node_font)
        painter.setPen(QColor(STROKE_COLOR))
        lines = wrap_text(text, rect.width() - TEXT_PADDING, QFontMetricsF(self._node_font))
        top = rect.center().y() - len(lines) * LINE_HEIGHT / 2
        for index, line in enumerate(lines):
            line_rect = QRectF(rect.left(), top + index * LINE_HEIGHT, rect.width(), LINE_HEIGHT)
            painter.drawText(line_rect, Qt.AlignCenter, line)

    def draw_selection_rect(
        self,
        painter: QPainter,
        view: ViewTransform,
        selection_rect: Tuple[Position, Position],
    ) -> None:
        start, end = selection_rect
        x1, y1 = view.to_screen(start)
        x2, y2 = view.to_screen(end)
        rect = QRectF(QPointF(min(x1, x2), min(y1, y2)), QPointF(max(x1, x2), max(y1, y2)))
        painter.save()
        pen = QPen(QColor(SELECTED_COLOR))
        pen.setWidthF(1.0)
        pen.setStyle(Qt.DashLine)
        painter.setPen(pen)
        painter.setBrush(QBrush(QColor(59, 130, 246, 25)))
        painter.drawRect(rect)
        painter.restore()
