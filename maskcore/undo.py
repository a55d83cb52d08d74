"""
Undo log - two-stack patch history over a MaskStore.

Each entry is the raw before-state of the bounding box an edit touched.
Undo and redo both capture the current content of the box before writing,
so the opposite operation restores it bit-exactly.
"""

import logging
from typing import Optional

from maskcore.config import UNDO_MAX_LEVELS, UNDO_MAX_MEMORY_BYTES
from maskcore.mask_store import MaskStore
from maskcore.models import Rect, UndoAction

logger = logging.getLogger(__name__)


class UndoLog:
    """
    Bounded undo/redo history.

    The undo stack is pruned oldest-first whenever it holds more than
    `max_levels` entries or more than `max_memory_bytes` of patches
    (including per-entry overhead).
    """

    def __init__(
        self,
        max_levels: int = UNDO_MAX_LEVELS,
        max_memory_bytes: int = UNDO_MAX_MEMORY_BYTES,
    ):
        if max_levels < 1 or max_memory_bytes < 1:
            raise ValueError("Undo budget must be positive")
        self.max_levels = max_levels
        self.max_memory_bytes = max_memory_bytes
        self._undo_stack: list[UndoAction] = []
        self._redo_stack: list[UndoAction] = []
        self._memory_usage = 0

    # ==================== State ====================

    @property
    def can_undo(self) -> bool:
        return bool(self._undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo_stack)

    @property
    def undo_count(self) -> int:
        return len(self._undo_stack)

    @property
    def redo_count(self) -> int:
        return len(self._redo_stack)

    @property
    def memory_usage(self) -> int:
        """Bytes held by the undo stack."""
        return self._memory_usage

    @property
    def undo_actions(self) -> list[UndoAction]:
        """Undo entries, oldest first."""
        return list(self._undo_stack)

    # ==================== Operations ====================

    @staticmethod
    def begin_edit(store: MaskStore, bbox: Rect, class_id: int) -> UndoAction:
        """
        Capture the before-state of a region about to be edited.

        Must be called before any pixel inside `bbox` changes. The stored
        bbox is the pixel-aligned, clamped region actually read.
        """
        region = store.region_rect(bbox)
        return UndoAction(
            class_id=class_id,
            bbox=region,
            previous_patch=store.read_region(region),
        )

    def commit(self, action: UndoAction):
        """Push a finished edit, dropping redo history."""
        self._push_undo(action)
        self._redo_stack.clear()
        self._prune()

    def undo(self, store: MaskStore) -> Optional[UndoAction]:
        """
        Revert the most recent edit.

        Returns:
            The reverted action, or None if there was nothing to undo
        """
        if not self._undo_stack:
            logger.debug("Nothing to undo")
            return None

        action = self._undo_stack.pop()
        self._memory_usage -= action.memory_size

        self._redo_stack.append(self.begin_edit(store, action.bbox, action.class_id))
        store.write_region(action.bbox, action.previous_patch)
        return action

    def redo(self, store: MaskStore) -> Optional[UndoAction]:
        """
        Re-apply the most recently undone edit.

        Returns:
            The re-applied action, or None if there was nothing to redo
        """
        if not self._redo_stack:
            logger.debug("Nothing to redo")
            return None

        action = self._redo_stack.pop()
        self._push_undo(self.begin_edit(store, action.bbox, action.class_id))
        store.write_region(action.bbox, action.previous_patch)
        self._prune()
        return action

    def clear(self):
        """Drop all history."""
        self._undo_stack.clear()
        self._redo_stack.clear()
        self._memory_usage = 0

    # ==================== Internals ====================

    def _push_undo(self, action: UndoAction):
        self._undo_stack.append(action)
        self._memory_usage += action.memory_size

    def _prune(self):
        evicted = 0
        while self._undo_stack and (
            len(self._undo_stack) > self.max_levels
            or self._memory_usage > self.max_memory_bytes
        ):
            oldest = self._undo_stack.pop(0)
            self._memory_usage -= oldest.memory_size
            evicted += 1

        if evicted:
            logger.debug(
                f"Evicted {evicted} undo entries "
                f"({len(self._undo_stack)} left, {self._memory_usage} bytes)"
            )
