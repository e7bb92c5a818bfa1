"""Editor facade tying the engine to its collaborators.

:class:`DiagramEditor` owns the history, the interaction controller, the
autosave scheduler and the remote collaborators. Every operation that can
fail catches the collaborator's :class:`~flowsketch.errors.DiagramError`,
logs it and reports it through ``errorOccurred``; the document in memory is
never rolled back.
"""

from __future__ import annotations

import json
import logging
import os
import time
from typing import List, Optional

from PySide6.QtCore import Property, QObject, QSettings, QThreadPool, Signal, Slot
from PySide6.QtGui import QImageReader

from .autosave import AutosaveScheduler
from .config import EditorConfig
from .constants import DEFAULT_PEN_COLOR, IMAGE_DROP_X, IMAGE_DROP_Y, IMAGE_MAX_WIDTH, PEN_COLORS
from .document import DiagramDocument
from .errors import DiagramError, ValidationError
from .generation import DiagramGenerator, GenerationSignals, GenerationTask
from .history import DiagramHistory
from .interaction import CanvasController
from .layout import merge_generated
from .storage import (
    DiagramStore,
    LocalDiagramStore,
    Session,
    SupabaseDiagramStore,
    SupabaseImageStorage,
)
from .types import DiagramNode, Dimensions, NodeType, Position

logger = logging.getLogger(__name__)


def build_collaborators(config: EditorConfig):
    """Create the generator, diagram store and image storage for ``config``.

    The Supabase collaborators need both the project settings and an active
    session; without them a local JSON store is used when a path is set.
    """
    generator = DiagramGenerator(config.ai_endpoint, config.ai_api_key)
    session = Session(config.user_id, config.access_token)

    store: Optional[DiagramStore] = None
    image_storage: Optional[SupabaseImageStorage] = None
    if config.has_supabase and session.is_active:
        store = SupabaseDiagramStore(config.supabase_url, config.supabase_key, session)
        image_storage = SupabaseImageStorage(config.supabase_url, config.supabase_key, session)
    elif config.diagram_path:
        store = LocalDiagramStore(config.diagram_path)
    return generator, store, image_storage


class DiagramEditor(QObject):
    """Qt-facing editor: undo/redo, persistence, generation and import/export."""

    historyChanged = Signal()
    saveStatusChanged = Signal()
    generatingChanged = Signal()
    errorMessageChanged = Signal()
    penColorChanged = Signal()
    documentChanged = Signal()

    saveCompleted = Signal()  # Emitted after a successful save
    loadCompleted = Signal()  # Emitted after the latest diagram was loaded
    errorOccurred = Signal(str)  # Emitted with error message on failure
    generationCompleted = Signal(str)  # Emitted with the prompt after a merge

    def __init__(
        self,
        config: Optional[EditorConfig] = None,
        generator: Optional[DiagramGenerator] = None,
        store: Optional[DiagramStore] = None,
        image_storage: Optional[SupabaseImageStorage] = None,
        settings: Optional[QSettings] = None,
        thread_pool: Optional[QThreadPool] = None,
    ):
        super().__init__()
        self._config = config or EditorConfig()
        if generator is None and store is None and image_storage is None:
            generator, store, image_storage = build_collaborators(self._config)
        self._generator = generator or DiagramGenerator(self._config.ai_endpoint, self._config.ai_api_key)
        self._store = store
        self._image_storage = image_storage
        self._settings = settings if settings is not None else QSettings("FlowSketch", "FlowSketch")
        self._thread_pool = thread_pool if thread_pool is not None else QThreadPool.globalInstance()

        self._history = DiagramHistory()
        self._controller = CanvasController(self._history)
        self._autosave = AutosaveScheduler(store, delay_ms=self._config.autosave_ms)
        self._error_message = ""
        self._pending_generations = 0
        self._active_signals: List[GenerationSignals] = []
        self._last_save_error = ""

        self._controller.setPenColor(self._load_pen_color())

        self._history.changed.connect(self._on_history_changed)
        self._history.availabilityChanged.connect(self.historyChanged)
        self._controller.penColorChanged.connect(self._on_pen_color_changed)
        self._autosave.statusChanged.connect(self.saveStatusChanged)
        self._autosave.saveCompleted.connect(self.saveCompleted)
        self._autosave.saveFailed.connect(self._on_save_failed)

    # --- Collaborators ------------------------------------------------------
    @property
    def history(self) -> DiagramHistory:
        return self._history

    @property
    def controller(self) -> CanvasController:
        return self._controller

    @property
    def autosave(self) -> AutosaveScheduler:
        return self._autosave

    @property
    def document(self) -> DiagramDocument:
        return self._history.present

    @property
    def config(self) -> EditorConfig:
        return self._config

    # --- Properties exposed to Qt ------------------------------------------
    @Property(bool, notify=historyChanged)
    def canUndo(self) -> bool:
        return self._history.canUndo

    @Property(bool, notify=historyChanged)
    def canRedo(self) -> bool:
        return self._history.canRedo

    @Property(str, notify=saveStatusChanged)
    def saveStatus(self) -> str:
        return self._autosave.status

    @Property(bool, notify=generatingChanged)
    def isGenerating(self) -> bool:
        return self._pending_generations > 0

    @Property(str, notify=errorMessageChanged)
    def errorMessage(self) -> str:
        return self._error_message

    @Property(str, notify=penColorChanged)
    def penColor(self) -> str:
        return self._controller.penColor

    @penColor.setter  # type: ignore[no-redef]
    def penColor(self, value: str) -> None:
        self.setPenColor(value)

    @Slot(str)
    def setPenColor(self, color: str) -> None:
        if color not in PEN_COLORS.values():
            logger.warning("Ignoring unknown pen colour %s", color)
            return
        self._controller.setPenColor(color)

    @Slot()
    def clearError(self) -> None:
        self._set_error("")

    # --- History ------------------------------------------------------------
    @Slot(result=bool)
    def undo(self) -> bool:
        return self._history.undo()

    @Slot(result=bool)
    def redo(self) -> bool:
        return self._history.redo()

    # --- Persistence --------------------------------------------------------
    @Slot(result=bool)
    def save(self) -> bool:
        """Save immediately, superseding any pending autosave."""
        if self._store is None:
            self._report("Sign in or set a diagram file to save")
            return False
        if self._autosave.save_now(self.document):
            return True
        self._report(f"Failed to save diagram: {self._last_save_error}")
        return False

    @Slot(result=bool)
    def loadLatest(self) -> bool:
        """Replace the document with the stored one; history starts over."""
        if self._store is None:
            return False
        try:
            document = self._store.load()
        except DiagramError as exc:
            self._report(f"Failed to load diagram: {exc}")
            return False
        if document is None:
            logger.info("No stored diagram to load")
            return False

        self._autosave.cancel()
        self._history.reset(document)
        self._controller.clearSelection()
        self.loadCompleted.emit()
        logger.info("Loaded diagram with %d node(s)", len(document.nodes))
        return True

    @Slot(str, result=str)
    def exportDiagram(self, directory: str) -> str:
        """Write the document to ``diagram-<ms>.json`` in ``directory``.

        Returns:
            The written file path, or an empty string on failure.
        """
        file_name = f"diagram-{int(time.time() * 1000)}.json"
        file_path = os.path.join(directory, file_name)
        try:
            with open(file_path, "w", encoding="utf-8") as f:
                json.dump(self.document.to_dict(), f, ensure_ascii=False, indent=2)
        except OSError as exc:
            self._report(f"Failed to export diagram: {exc}")
            return ""
        logger.info("Diagram exported to %s", file_path)
        return file_path

    @Slot(str, result=bool)
    def importDiagram(self, file_path: str) -> bool:
        """Replace the document with a JSON file's contents as one undoable step."""
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            document = DiagramDocument.from_dict(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            self._report(f"Failed to import diagram: Invalid JSON: {exc}")
            return False
        except OSError as exc:
            self._report(f"Failed to import diagram: {exc}")
            return False
        except ValidationError as exc:
            self._report(f"Failed to import diagram: {exc}")
            return False

        self._history.commit(document)
        self._controller.clearSelection()
        logger.info("Imported %d node(s) from %s", len(document.nodes), file_path)
        return True

    @Slot(str, result=bool)
    def insertImage(self, file_path: str) -> bool:
        """Upload an image and add it as a node scaled to at most 300 px wide."""
        if self._image_storage is None:
            self._report("Sign in to upload images")
            return False

        size = QImageReader(file_path).size()
        if not size.isValid() or size.width() <= 0 or size.height() <= 0:
            self._report(f"Failed to read image: {file_path}")
            return False

        try:
            url = self._image_storage.upload(file_path)
        except DiagramError as exc:
            self._report(f"Failed to upload image: {exc}")
            return False

        aspect_ratio = size.width() / size.height()
        width = min(IMAGE_MAX_WIDTH, float(size.width()))
        node = DiagramNode(
            id=self._controller.next_id("image"),
            node_type=NodeType.IMAGE,
            position=Position(IMAGE_DROP_X, IMAGE_DROP_Y),
            dimensions=Dimensions(width, width / aspect_ratio),
            image_url=url,
        )
        self._history.commit(self.document.with_node(node))
        return True

    # --- Generation ---------------------------------------------------------
    @Slot(str, result=bool)
    def generateDiagram(self, prompt: str) -> bool:
        """Start generating a diagram for ``prompt`` on the thread pool."""
        prompt = prompt.strip()
        if not prompt:
            return False
        if not self._generator.is_configured:
            self._report("Missing AI generation credentials")
            return False

        task = GenerationTask(self._generator, prompt)
        task.signals.finished.connect(self._on_generation_finished)
        task.signals.failed.connect(self._on_generation_failed)
        self._active_signals.append(task.signals)
        self._set_generating(self._pending_generations + 1)
        self._thread_pool.start(task)
        return True

    def applyGeneratedGraph(self, generated: DiagramDocument, prompt: str = "") -> DiagramDocument:
        """Lay out ``generated``, merge it beside the current nodes and save."""
        merged = merge_generated(self.document, generated)
        self._history.commit(merged)
        self._controller.clearSelection()
        if self._store is not None:
            self._autosave.save_now(merged, title=prompt[:100] or None, description=prompt or None)
        self.generationCompleted.emit(prompt)
        return merged

    @Slot(str, object)
    def _on_generation_finished(self, prompt: str, generated: DiagramDocument) -> None:
        self._forget_task()
        self.applyGeneratedGraph(generated, prompt)

    @Slot(str, str)
    def _on_generation_failed(self, prompt: str, message: str) -> None:
        self._forget_task()
        self._report(f"Failed to generate diagram: {message}")

    def _forget_task(self) -> None:
        sender = self.sender()
        self._active_signals = [signals for signals in self._active_signals if signals is not sender]
        self._set_generating(max(0, self._pending_generations - 1))

    # --- Keyboard -----------------------------------------------------------
    @Slot(str, bool, bool, result=bool)
    def handleShortcut(self, key: str, ctrl: bool, shift: bool) -> bool:
        """Ctrl/Cmd+S saves, Ctrl/Cmd+Z undoes and Ctrl/Cmd+Shift+Z redoes."""
        if not ctrl:
            return False
        key = key.lower()
        if key == "s":
            self.save()
            return True
        if key == "z":
            if shift:
                self.redo()
            else:
                self.undo()
            return True
        return False

    @Slot()
    def shutdown(self) -> None:
        """Wait for generation workers and write any pending autosave."""
        self._thread_pool.waitForDone()
        self._autosave.flush()

    # --- Helpers ------------------------------------------------------------
    def _on_history_changed(self, reason: str) -> None:
        self.documentChanged.emit()
        if reason != "reset":
            self._autosave.schedule(self.document)

    def _on_save_failed(self, message: str) -> None:
        self._last_save_error = message

    def _on_pen_color_changed(self) -> None:
        self._settings.setValue("penColor", self._controller.penColor)
        self.penColorChanged.emit()

    def _load_pen_color(self) -> str:
        stored = self._settings.value("penColor", DEFAULT_PEN_COLOR)
        if isinstance(stored, str) and stored in PEN_COLORS.values():
            return stored
        return DEFAULT_PEN_COLOR

    def _set_generating(self, count: int) -> None:
        was_generating = self._pending_generations > 0
        self._pending_generations = count
        if was_generating != (count > 0):
            self.generatingChanged.emit()

    def _set_error(self, message: str) -> None:
        if self._error_message != message:
            self._error_message = message
            self.errorMessageChanged.emit()

    def _report(self, message: str) -> None:
        logger.warning(message)
        self._set_error(message)
        self.errorOccurred.emit(message)
