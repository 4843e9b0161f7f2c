"""Linear snapshot history for undo/redo.

History is a list of captured snapshots plus a pointer to the current one.
Recording a new state while the pointer is behind the end discards the redo
branch; history is overwritten, never forked. The list is bounded, and once
full the oldest entry is evicted to make room.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from conceptmap.observability.logging import get_logger

if TYPE_CHECKING:
    from conceptmap.graph.models import Snapshot

log = get_logger(__name__)

MAX_HISTORY_SIZE = 100


class History:
    """Bounded undo/redo stack of snapshots.

    The pointer is -1 until the first state is saved. Stored entries are
    structural copies, and so are the snapshots handed back by undo/redo,
    so nothing outside this class can alias a historized state.
    """

    def __init__(self, max_size: int = MAX_HISTORY_SIZE) -> None:
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")
        self.max_size = max_size
        self._entries: list[Snapshot] = []
        self._pointer = -1

    @property
    def pointer(self) -> int:
        return self._pointer

    def __len__(self) -> int:
        return len(self._entries)

    def save_state(self, snapshot: Snapshot) -> None:
        """Record *snapshot* as the new current state."""
        if self._pointer < len(self._entries) - 1:
            discarded = len(self._entries) - 1 - self._pointer
            del self._entries[self._pointer + 1 :]
            log.debug("history_redo_discarded", count=discarded)

        if len(self._entries) >= self.max_size:
            self._entries.pop(0)
            self._pointer -= 1
            log.debug("history_evicted_oldest", max_size=self.max_size)

        self._entries.append(snapshot.clone())
        self._pointer += 1
        log.debug("history_saved", size=len(self._entries), pointer=self._pointer)

    def can_undo(self) -> bool:
        return self._pointer > 0

    def can_redo(self) -> bool:
        return self._pointer < len(self._entries) - 1

    def undo(self) -> Snapshot | None:
        """Step back one state.

        Returns:
            A copy of the now-current snapshot, or None at the oldest state.
        """
        if not self.can_undo():
            log.debug("history_undo_unavailable", pointer=self._pointer)
            return None
        self._pointer -= 1
        log.debug("history_undo", pointer=self._pointer)
        return self._entries[self._pointer].clone()

    def redo(self) -> Snapshot | None:
        """Step forward one state.

        Returns:
            A copy of the now-current snapshot, or None at the newest state.
        """
        if not self.can_redo():
            log.debug("history_redo_unavailable", pointer=self._pointer)
            return None
        self._pointer += 1
        log.debug("history_redo", pointer=self._pointer)
        return self._entries[self._pointer].clone()

    def current(self) -> Snapshot | None:
        """Return a copy of the state at the pointer, or None if empty."""
        if self._pointer < 0:
            return None
        return self._entries[self._pointer].clone()

    def reset(self, snapshot: Snapshot | None = None) -> None:
        """Drop every entry, optionally starting over from *snapshot*."""
        self._entries.clear()
        self._pointer = -1
        if snapshot is not None:
            self.save_state(snapshot)
