"""UI creation functions for FlowSketch."""

from __future__ import annotations

import logging
import sys

from PySide6.QtGui import QAction, QActionGroup, QKeySequence, QShortcut
from PySide6.QtWidgets import (
    QComboBox,
    QFileDialog,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QPushButton,
    QToolBar,
    QVBoxLayout,
    QWidget,
)

from .canvas import DiagramCanvas
from .config import EditorConfig
from .constants import PEN_COLORS
from .editor import DiagramEditor
from .interaction import Tool

logger = logging.getLogger(__name__)

TOOL_LABELS = [
    (Tool.SELECT, "Select"),
    (Tool.RECTANGLE, "Rectangle"),
    (Tool.ELLIPSE, "Ellipse"),
    (Tool.DIAMOND, "Diamond"),
    (Tool.TEXT, "Text"),
    (Tool.PEN, "Pen"),
]

SAVE_STATUS_LABELS = {
    "idle": "",
    "saving": "Saving...",
    "saved": "Saved",
    "unsaved": "Unsaved changes",
}


def _build_tool_bar(window: QMainWindow, editor: DiagramEditor) -> QToolBar:
    controller = editor.controller
    tool_bar = QToolBar("Tools", window)
    tool_bar.setMovable(False)

    group = QActionGroup(tool_bar)
    group.setExclusive(True)
    tool_actions = {}
    for tool, label in TOOL_LABELS:
        action = QAction(label, tool_bar)
        action.setCheckable(True)
        action.setChecked(controller.tool == tool)
        action.triggered.connect(lambda checked=False, t=tool: controller.set_tool(t))
        group.addAction(action)
        tool_bar.addAction(action)
        tool_actions[tool] = action

    def sync_tool() -> None:
        tool_actions[controller.tool].setChecked(True)

    controller.toolChanged.connect(sync_tool)

    colors = QComboBox(tool_bar)
    for name, value in PEN_COLORS.items():
        colors.addItem(name, value)
    colors.setCurrentIndex(max(0, colors.findData(editor.penColor)))
    colors.currentIndexChanged.connect(lambda index: editor.setPenColor(colors.itemData(index)))
    tool_bar.addWidget(colors)
    tool_bar.addSeparator()

    undo_action = QAction("Undo", tool_bar)
    undo_action.triggered.connect(editor.undo)
    redo_action = QAction("Redo", tool_bar)
    redo_action.triggered.connect(editor.redo)
    save_action = QAction("Save", tool_bar)
    save_action.triggered.connect(editor.save)

    def sync_history() -> None:
        undo_action.setEnabled(editor.canUndo)
        redo_action.setEnabled(editor.canRedo)

    editor.historyChanged.connect(sync_history)
    sync_history()
    for action in (undo_action, redo_action, save_action):
        tool_bar.addAction(action)

    status_label = QLabel(tool_bar)
    editor.saveStatusChanged.connect(
        lambda: status_label.setText(SAVE_STATUS_LABELS.get(editor.saveStatus, ""))
    )
    tool_bar.addWidget(status_label)
    tool_bar.addSeparator()

    export_action = QAction("Export", tool_bar)
    export_action.triggered.connect(lambda: _export(window, editor))
    import_action = QAction("Import", tool_bar)
    import_action.triggered.connect(lambda: _import(window, editor))
    image_action = QAction("Image", tool_bar)
    image_action.triggered.connect(lambda: _insert_image(window, editor))
    for action in (export_action, import_action, image_action):
        tool_bar.addAction(action)

    window._status_label = status_label
    return tool_bar


def _build_prompt_bar(editor: DiagramEditor) -> QWidget:
    bar = QWidget()
    layout = QHBoxLayout(bar)
    layout.setContentsMargins(8, 4, 8, 4)

    prompt = QLineEdit(bar)
    prompt.setPlaceholderText("Describe a diagram to generate...")
    button = QPushButton("Generate", bar)
    error_label = QLabel(bar)
    error_label.setStyleSheet("color: #ef4444;")

    def generate() -> None:
        editor.clearError()
        if editor.generateDiagram(prompt.text()):
            prompt.clear()

    def sync_generating() -> None:
        busy = editor.isGenerating
        button.setEnabled(not busy)
        button.setText("Generating..." if busy else "Generate")

    prompt.returnPressed.connect(generate)
    button.clicked.connect(generate)
    editor.generatingChanged.connect(sync_generating)
    editor.errorMessageChanged.connect(lambda: error_label.setText(editor.errorMessage))

    layout.addWidget(prompt, 1)
    layout.addWidget(button)
    layout.addWidget(error_label)
    return bar


def _export(window: QMainWindow, editor: DiagramEditor) -> None:
    directory = QFileDialog.getExistingDirectory(window, "Export diagram")
    if directory:
        editor.exportDiagram(directory)


def _import(window: QMainWindow, editor: DiagramEditor) -> None:
    file_path, _ = QFileDialog.getOpenFileName(window, "Import diagram", "", "Diagram files (*.json)")
    if file_path:
        editor.importDiagram(file_path)


def _insert_image(window: QMainWindow, editor: DiagramEditor) -> None:
    file_path, _ = QFileDialog.getOpenFileName(
        window, "Insert image", "", "Images (*.png *.jpg *.jpeg *.gif *.webp)"
    )
    if file_path:
        editor.insertImage(file_path)


def create_editor_window(editor: DiagramEditor) -> QMainWindow:
    """Create and return the main window hosting the diagram editor."""
    window = QMainWindow()
    window.setWindowTitle("FlowSketch")
    window.resize(1280, 800)

    canvas = DiagramCanvas(editor.controller)
    window.addToolBar(_build_tool_bar(window, editor))

    central = QWidget(window)
    layout = QVBoxLayout(central)
    layout.setContentsMargins(0, 0, 0, 0)
    layout.setSpacing(0)
    layout.addWidget(_build_prompt_bar(editor))
    layout.addWidget(canvas, 1)
    window.setCentralWidget(central)

    shortcuts = [
        (QKeySequence.Save, "s", False),
        (QKeySequence("Ctrl+Z"), "z", False),
        (QKeySequence("Ctrl+Shift+Z"), "z", True),
    ]
    for sequence, key, shift in shortcuts:
        shortcut = QShortcut(sequence, window)
        shortcut.activated.connect(lambda k=key, s=shift: editor.handleShortcut(k, True, s))

    window.canvas = canvas
    window.editor = editor
    canvas.setFocus()
    return window


def main() -> int:
    """Main entry point for FlowSketch."""
    from PySide6.QtWidgets import QApplication

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    config = EditorConfig.from_env()
    smoke_mode = "--smoke" in sys.argv or config.smoke

    app = QApplication.instance()
    if app is None:
        app = QApplication(sys.argv)

    editor = DiagramEditor(config)
    window = create_editor_window(editor)
    editor.loadLatest()

    if smoke_mode:
        return 0

    app.aboutToQuit.connect(editor.shutdown)
    window.show()
    return app.exec()
