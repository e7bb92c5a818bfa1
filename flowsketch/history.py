"""Bounded undo/redo history for diagram documents."""

from __future__ import annotations

from collections import deque
from typing import Deque, List, Optional, Tuple

from PySide6.QtCore import Property, QObject, Signal, Slot

from .constants import MAX_HISTORY_SIZE
from .document import DiagramDocument


class DiagramHistory(QObject):
    """Own the present document plus bounded past and future stacks.

    ``changed`` is emitted with the reason for every transition: ``commit``,
    ``replace``, ``undo``, ``redo`` or ``reset``. While an undo or redo is
    being announced, a listener's ``commit`` only replaces the present and
    nested undo/redo calls are ignored, so restoring a state never creates a
    new history entry.
    """

    changed = Signal(str)
    availabilityChanged = Signal()

    def __init__(self, initial: Optional[DiagramDocument] = None, limit: int = MAX_HISTORY_SIZE):
        super().__init__()
        self._limit = limit
        self._past: Deque[DiagramDocument] = deque(maxlen=limit)
        self._present = initial if initial is not None else DiagramDocument()
        self._future: List[DiagramDocument] = []
        self._restoring = False

    # --- State --------------------------------------------------------------
    @property
    def present(self) -> DiagramDocument:
        return self._present

    @property
    def past(self) -> Tuple[DiagramDocument, ...]:
        return tuple(self._past)

    @property
    def future(self) -> Tuple[DiagramDocument, ...]:
        return tuple(self._future)

    @Property(bool, notify=availabilityChanged)
    def canUndo(self) -> bool:
        return len(self._past) > 0

    @Property(bool, notify=availabilityChanged)
    def canRedo(self) -> bool:
        return len(self._future) > 0

    # --- Transitions --------------------------------------------------------
    def commit(self, document: DiagramDocument) -> None:
        """Make ``document`` the present state, recording one undo step."""
        if self._restoring:
            self.replace_present(document)
            return
        # deque(maxlen=...) drops the oldest entry once the bound is reached
        self._past.append(self._present)
        self._present = document
        self._future.clear()
        self._notify("commit")

    def replace_present(self, document: DiagramDocument) -> None:
        """Swap the present state without touching past or future."""
        self._present = document
        self._notify("replace")

    @Slot(result=bool)
    def undo(self) -> bool:
        return self.undo_document() is not None

    @Slot(result=bool)
    def redo(self) -> bool:
        return self.redo_document() is not None

    def undo_document(self) -> Optional[DiagramDocument]:
        """Step back one commit; return the restored document or None."""
        if self._restoring or not self._past:
            return None
        self._future.insert(0, self._present)
        self._present = self._past.pop()
        self._announce_restore("undo")
        return self._present

    def redo_document(self) -> Optional[DiagramDocument]:
        """Re-apply the most recently undone commit; return it or None."""
        if self._restoring or not self._future:
            return None
        self._past.append(self._present)
        self._present = self._future.pop(0)
        self._announce_restore("redo")
        return self._present

    def reset(self, document: DiagramDocument) -> None:
        """Forget all history and start over from ``document``."""
        self._past.clear()
        self._future.clear()
        self._present = document
        self._notify("reset")

    # --- Helpers ------------------------------------------------------------
    def _announce_restore(self, reason: str) -> None:
        self._restoring = True
        try:
            self._notify(reason)
        finally:
            self._restoring = False

    def _notify(self, reason: str) -> None:
        self.changed.emit(reason)
        self.availabilityChanged.emit()
