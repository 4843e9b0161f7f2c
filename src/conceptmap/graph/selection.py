"""Selection state that stays consistent with the store.

Element identity is snapshot-local. After each publication the tracker
resolves the selected id against the new snapshot. If the id no longer
resolves, the selection is cleared and a "cleared" event is emitted.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict

from conceptmap.graph.models import ElementKind  # noqa: TC001 - pydantic needs it at runtime
from conceptmap.observability.logging import get_logger

if TYPE_CHECKING:
    from conceptmap.graph.models import Snapshot
    from conceptmap.graph.store import GraphStore, Subscription

log = get_logger(__name__)


class SelectionEvent(BaseModel):
    """Selection change reported to consumers.

    ``id`` and ``type`` are both None when the selection is cleared.
    ``data`` carries the element's full camelCase payload when selected.
    """

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    type: ElementKind | None = None
    data: dict[str, Any] | None = None

    @property
    def cleared(self) -> bool:
        return self.id is None


SelectionListener = Callable[[SelectionEvent], None]


class SelectionTracker:
    """Track one selected node or edge across store mutations."""

    def __init__(self, store: GraphStore) -> None:
        self._store = store
        self._listeners: list[SelectionListener] = []
        self._current = SelectionEvent()
        self._subscription: Subscription | None = store.subscribe(self._on_snapshot, replay=False)

    @property
    def current(self) -> SelectionEvent:
        return self._current

    def add_listener(self, listener: SelectionListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SelectionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def select(self, element_id: str | None) -> SelectionEvent:
        """Select an element by id, as reported by a tap in the view.

        Unknown ids and None clear the selection.
        """
        if element_id is None or self._store.kind_of(element_id) is None:
            return self.clear()
        self._emit(self._resolve(element_id))
        return self._current

    def clear(self) -> SelectionEvent:
        if not self._current.cleared:
            self._emit(SelectionEvent())
        return self._current

    def close(self) -> None:
        """Detach from the store."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def _resolve(self, element_id: str) -> SelectionEvent:
        element = self._store.get_element(element_id)
        if element is None:
            return SelectionEvent()
        return SelectionEvent(
            id=element_id,
            type=self._store.kind_of(element_id),
            data=element.to_data(),
        )

    def _on_snapshot(self, snapshot: Snapshot) -> None:
        if self._current.cleared:
            return
        refreshed = self._resolve(self._current.id)  # type: ignore[arg-type]
        if refreshed.cleared:
            log.info("selection_cleared", element_id=self._current.id, reason="element_removed")
            self._emit(refreshed)
        elif refreshed != self._current:
            self._emit(refreshed)

    def _emit(self, event: SelectionEvent) -> None:
        self._current = event
        for listener in list(self._listeners):
            listener(event)
