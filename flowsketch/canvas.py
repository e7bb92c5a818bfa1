"""Drawing surface widget.

:class:`DiagramCanvas` paints the controller's render state and forwards Qt
mouse, wheel and key events to it. Text entry uses an inline ``QLineEdit``
placed at the pointer position.
"""

from __future__ import annotations

from typing import Optional

from PySide6.QtCore import QEvent, Qt
from PySide6.QtGui import QCursor, QKeyEvent, QMouseEvent, QPainter, QWheelEvent
from PySide6.QtWidgets import QLineEdit, QWidget

from .interaction import CanvasController, Tool
from .renderer import DiagramRenderer

_KEY_NAMES = {
    Qt.Key_Escape: "Escape",
    Qt.Key_Delete: "Delete",
    Qt.Key_Backspace: "Backspace",
    Qt.Key_Space: "Space",
}

_CURSORS = {
    Tool.SELECT: Qt.ArrowCursor,
    Tool.TEXT: Qt.IBeamCursor,
}


class TextOverlay(QLineEdit):
    """Inline editor; Enter submits, Escape cancels, losing focus submits."""

    def __init__(self, controller: CanvasController, parent: QWidget):
        super().__init__(parent)
        self._controller = controller
        self.setMinimumWidth(150)
        self.returnPressed.connect(self.submit)
        self.hide()

    def submit(self) -> None:
        if self.isVisible():
            text = self.text()
            self.hide()
            self._controller.submitText(text)

    def keyPressEvent(self, event: QKeyEvent) -> None:
        if event.key() == Qt.Key_Escape:
            self.hide()
            self._controller.cancelTextEdit()
            return
        super().keyPressEvent(event)

    def focusOutEvent(self, event) -> None:
        super().focusOutEvent(event)
        self.submit()


class DiagramCanvas(QWidget):
    """QWidget host for the diagram renderer and interaction controller."""

    def __init__(
        self,
        controller: CanvasController,
        renderer: Optional[DiagramRenderer] = None,
        parent: Optional[QWidget] = None,
    ):
        super().__init__(parent)
        self._controller = controller
        self._renderer = renderer if renderer is not None else DiagramRenderer()
        self._overlay = TextOverlay(controller, self)

        self.setFocusPolicy(Qt.StrongFocus)
        self.setMouseTracking(True)
        self.setMinimumSize(640, 480)

        controller.previewChanged.connect(self.update)
        controller.viewChanged.connect(self.update)
        controller.selectionChanged.connect(self.update)
        controller.toolChanged.connect(self._update_cursor)
        controller.textEditChanged.connect(self._sync_overlay)
        controller.documentChanged.connect(self.update)
        self._renderer.image_cache.imageLoaded.connect(self.update)

    @property
    def controller(self) -> CanvasController:
        return self._controller

    @property
    def overlay(self) -> QLineEdit:
        return self._overlay

    # --- Painting -----------------------------------------------------------
    def paintEvent(self, event) -> None:
        painter = QPainter(self)
        try:
            self._renderer.render(painter, self._controller.render_state(), self.width(), self.height())
        finally:
            painter.end()

    # --- Pointer ------------------------------------------------------------
    def mousePressEvent(self, event: QMouseEvent) -> None:
        if event.button() != Qt.LeftButton:
            return
        self.setFocus()
        position = event.position()
        multi = bool(event.modifiers() & (Qt.ControlModifier | Qt.MetaModifier))
        self._controller.pointer_down(position.x(), position.y(), multi)
        self.update()

    def mouseMoveEvent(self, event: QMouseEvent) -> None:
        position = event.position()
        self._controller.pointer_move(position.x(), position.y())

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:
        if event.button() != Qt.LeftButton:
            return
        position = event.position()
        self._controller.pointer_up(position.x(), position.y())
        self.update()

    def mouseDoubleClickEvent(self, event: QMouseEvent) -> None:
        position = event.position()
        self._controller.double_click(position.x(), position.y())

    def leaveEvent(self, event: QEvent) -> None:
        # Leaving the surface ends the gesture as if the button was released
        cursor = self.mapFromGlobal(QCursor.pos())
        self._controller.pointer_up(cursor.x(), cursor.y())
        self.update()
        super().leaveEvent(event)

    def wheelEvent(self, event: QWheelEvent) -> None:
        # Qt reports scrolling down as a negative angle
        self._controller.wheel(-event.angleDelta().y())
        event.accept()

    # --- Keyboard -----------------------------------------------------------
    def keyPressEvent(self, event: QKeyEvent) -> None:
        name = _KEY_NAMES.get(event.key())
        if name is not None and not event.isAutoRepeat() and self._controller.key_press(name):
            self.update()
            event.accept()
            return
        super().keyPressEvent(event)

    def keyReleaseEvent(self, event: QKeyEvent) -> None:
        name = _KEY_NAMES.get(event.key())
        if name is not None and not event.isAutoRepeat() and self._controller.key_release(name):
            event.accept()
            return
        super().keyReleaseEvent(event)

    # --- Helpers ------------------------------------------------------------
    def _update_cursor(self) -> None:
        self.setCursor(_CURSORS.get(self._controller.tool, Qt.CrossCursor))

    def _sync_overlay(self) -> None:
        edit = self._controller.text_edit
        if edit is None:
            if self._overlay.isVisible():
                self._overlay.hide()
            self.setFocus()
            self.update()
            return
        self._overlay.setText(edit.initial_text)
        self._overlay.move(int(edit.screen_x), int(edit.screen_y))
        self._overlay.show()
        self._overlay.setFocus()
        self._overlay.selectAll()
