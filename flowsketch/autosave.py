"""Debounced autosave with a small status machine.

Status moves ``idle -> unsaved -> saving -> saved -> idle``. A failed save
lands on ``unsaved`` and stays there until the next edit or manual save.
"""

from __future__ import annotations

import logging
from typing import Optional

from PySide6.QtCore import Property, QObject, QTimer, Signal, Slot

from .constants import AUTOSAVE_DELAY_MS, SAVE_STATUSES, SAVED_STATUS_MS
from .document import DiagramDocument
from .errors import DiagramError
from .storage import DiagramStore

logger = logging.getLogger(__name__)

IDLE, SAVING, SAVED, UNSAVED = SAVE_STATUSES


class AutosaveScheduler(QObject):
    """Save the latest document once edits have been quiet for ``delay_ms``."""

    statusChanged = Signal()
    saveCompleted = Signal()
    saveFailed = Signal(str)

    def __init__(
        self,
        store: Optional[DiagramStore] = None,
        delay_ms: int = AUTOSAVE_DELAY_MS,
        saved_ms: int = SAVED_STATUS_MS,
    ):
        super().__init__()
        self._store = store
        self._status = IDLE
        self._pending: Optional[DiagramDocument] = None

        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setInterval(delay_ms)
        self._timer.timeout.connect(self.flush)

        self._idle_timer = QTimer(self)
        self._idle_timer.setSingleShot(True)
        self._idle_timer.setInterval(saved_ms)
        self._idle_timer.timeout.connect(self._on_idle_timeout)

    @Property(str, notify=statusChanged)
    def status(self) -> str:
        return self._status

    @property
    def store(self) -> Optional[DiagramStore]:
        return self._store

    def set_store(self, store: Optional[DiagramStore]) -> None:
        self.cancel()
        self._store = store

    def is_pending(self) -> bool:
        return self._timer.isActive()

    def schedule(self, document: DiagramDocument) -> None:
        """Queue ``document`` for saving, restarting the quiet period."""
        if self._store is None:
            return
        self._pending = document
        self._idle_timer.stop()
        self._set_status(UNSAVED)
        self._timer.start()

    @Slot()
    def cancel(self) -> None:
        """Drop the queued save; an ``unsaved`` status falls back to ``idle``."""
        self._timer.stop()
        self._pending = None
        if self._status == UNSAVED:
            self._set_status(IDLE)

    @Slot()
    def flush(self) -> None:
        """Save the queued document now, if there is one."""
        self._timer.stop()
        document = self._pending
        self._pending = None
        if document is not None:
            self._save(document)

    def save_now(
        self,
        document: DiagramDocument,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> bool:
        """Drop any queued save and store ``document`` immediately."""
        self.cancel()
        if self._store is None:
            return False
        return self._save(document, title, description)

    def _save(
        self,
        document: DiagramDocument,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> bool:
        self._idle_timer.stop()
        self._set_status(SAVING)
        try:
            self._store.save(document, title=title, description=description)
        except DiagramError as exc:
            logger.warning("Save failed: %s", exc)
            self._set_status(UNSAVED)
            self.saveFailed.emit(str(exc))
            return False
        self._set_status(SAVED)
        self._idle_timer.start()
        self.saveCompleted.emit()
        return True

    def _on_idle_timeout(self) -> None:
        if self._status == SAVED:
            self._set_status(IDLE)

    def _set_status(self, status: str) -> None:
        if self._status != status:
            self._status = status
            self.statusChanged.emit()
