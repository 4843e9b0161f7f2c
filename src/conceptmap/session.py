"""Editor session: one store wired to its persistence and helpers.

A session is the explicit unit of initialization and teardown. Opening one
loads the persisted document (or the seed graph), builds the store and its
history, and attaches the debounced writer. Closing it writes any pending
changes and releases the storage backend.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from conceptmap.config import EditorConfig, load_config
from conceptmap.graph.history import History
from conceptmap.graph.propagation import StylePropagator
from conceptmap.graph.store import GraphStore
from conceptmap.observability.logging import get_logger
from conceptmap.persistence.adapter import LoadResult, PersistenceAdapter, load_snapshot
from conceptmap.persistence.storage import JsonFileStorage, SqliteStorage

if TYPE_CHECKING:
    from types import TracebackType

    from conceptmap.persistence.storage import SnapshotStorage

log = get_logger(__name__)


def create_storage(project_path: Path, config: EditorConfig) -> SnapshotStorage:
    """Build the storage backend named by *config*."""
    location = project_path / config.storage.resolved_path
    if config.storage.backend == "sqlite":
        return SqliteStorage(location)
    return JsonFileStorage(location)


@dataclass
class EditorSession:
    """A live document with its store, persistence and propagation engine."""

    store: GraphStore
    persistence: PersistenceAdapter
    propagator: StylePropagator
    loaded: LoadResult
    config: EditorConfig = field(default_factory=EditorConfig)
    closed: bool = False

    def flush(self) -> bool:
        """Write pending changes immediately."""
        return self.persistence.flush()

    def close(self) -> None:
        """Flush, detach persistence and release storage. Idempotent."""
        if self.closed:
            return
        self.persistence.close()
        self.persistence.storage.close()
        self.closed = True
        log.debug("session_closed")

    def __enter__(self) -> EditorSession:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def open_session(
    project_path: Path | None = None,
    config: EditorConfig | None = None,
    *,
    storage: SnapshotStorage | None = None,
) -> EditorSession:
    """Open a session on a project directory.

    Args:
        project_path: Project directory. Defaults to the current directory.
        config: Configuration to use. Loaded from the project if omitted.
        storage: Explicit backend, overriding the configured one.

    Returns:
        An open EditorSession.

    Raises:
        ConfigError: If *config* is omitted and the project config is invalid.
    """
    project_path = project_path if project_path is not None else Path()
    config = config if config is not None else load_config(project_path)
    storage = storage if storage is not None else create_storage(project_path, config)

    loaded = load_snapshot(storage)
    store = GraphStore(loaded.snapshot, history=History(config.history_size))
    persistence = PersistenceAdapter(storage, debounce_seconds=config.debounce_seconds)
    persistence.attach(store)

    log.info(
        "session_opened",
        project=str(project_path),
        source=loaded.source,
        nodes=len(loaded.snapshot.nodes),
        edges=len(loaded.snapshot.edges),
    )
    return EditorSession(
        store=store,
        persistence=persistence,
        propagator=StylePropagator(store),
        loaded=loaded,
        config=config,
    )
