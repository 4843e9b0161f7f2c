"""Project configuration loading.

Settings come from ``conceptmap.yaml`` in the project directory. Environment
variables override the file:

- CMAP_STORAGE_BACKEND: ``json`` or ``sqlite``
- CMAP_DEBOUNCE_MS: persistence debounce window in milliseconds
- CMAP_HISTORY_SIZE: maximum number of undo states
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path  # noqa: TC003 - used at runtime
from typing import Any

from ruamel.yaml import YAML

from conceptmap.graph.history import MAX_HISTORY_SIZE

CONFIG_FILENAME = "conceptmap.yaml"

STORAGE_BACKENDS = ("json", "sqlite")
DEFAULT_BACKEND = "json"
DEFAULT_STORAGE_PATHS = {"json": "data", "sqlite": "conceptmap.db"}
DEFAULT_DEBOUNCE_MS = 500


class ConfigError(Exception):
    """Raised when project configuration cannot be loaded."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load config at {path}: {reason}")


@dataclass
class StorageConfig:
    """Where snapshots are persisted."""

    backend: str = DEFAULT_BACKEND
    path: str | None = None

    @property
    def resolved_path(self) -> str:
        return self.path or DEFAULT_STORAGE_PATHS[self.backend]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StorageConfig:
        backend = os.getenv("CMAP_STORAGE_BACKEND") or data.get("backend", DEFAULT_BACKEND)
        if backend not in STORAGE_BACKENDS:
            expected = ", ".join(STORAGE_BACKENDS)
            raise ValueError(f"Unknown storage backend '{backend}'; expected one of: {expected}")
        return cls(backend=backend, path=data.get("path"))


@dataclass
class EditorConfig:
    """Configuration for a concept map project."""

    name: str = "untitled"
    storage: StorageConfig = field(default_factory=StorageConfig)
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    history_size: int = MAX_HISTORY_SIZE

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EditorConfig:
        """Create config from a parsed ``conceptmap.yaml`` mapping.

        Args:
            data: Mapping with optional ``name``, ``storage``,
                ``persistence.debounce_ms`` and ``history.max_size`` keys.

        Returns:
            EditorConfig with environment overrides applied.

        Raises:
            ValueError: If a value is out of range.
        """
        storage = StorageConfig.from_dict(dict(data.get("storage") or {}))

        persistence = dict(data.get("persistence") or {})
        debounce_ms = int(
            os.getenv("CMAP_DEBOUNCE_MS") or persistence.get("debounce_ms", DEFAULT_DEBOUNCE_MS)
        )
        if debounce_ms < 0:
            raise ValueError(f"debounce_ms must be >= 0, got {debounce_ms}")

        history = dict(data.get("history") or {})
        history_size = int(
            os.getenv("CMAP_HISTORY_SIZE") or history.get("max_size", MAX_HISTORY_SIZE)
        )
        if history_size < 1:
            raise ValueError(f"history.max_size must be >= 1, got {history_size}")

        return cls(
            name=str(data.get("name", "untitled")),
            storage=storage,
            debounce_ms=debounce_ms,
            history_size=history_size,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for writing ``conceptmap.yaml``."""
        storage: dict[str, Any] = {"backend": self.storage.backend}
        if self.storage.path:
            storage["path"] = self.storage.path
        return {
            "name": self.name,
            "storage": storage,
            "persistence": {"debounce_ms": self.debounce_ms},
            "history": {"max_size": self.history_size},
        }


def load_config(project_path: Path) -> EditorConfig:
    """Load configuration from ``conceptmap.yaml``.

    A missing file yields defaults (with environment overrides).

    Raises:
        ConfigError: If the file exists but cannot be read or is invalid.
    """
    config_path = project_path / CONFIG_FILENAME

    if not config_path.exists():
        return EditorConfig.from_dict({"name": project_path.resolve().name})

    yaml = YAML()
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)

        if data is None:
            raise ConfigError(config_path, "Empty file")

        return EditorConfig.from_dict(dict(data))
    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(config_path, str(e)) from e


def write_config(project_path: Path, config: EditorConfig) -> Path:
    """Write *config* to ``conceptmap.yaml`` in *project_path*."""
    config_path = project_path / CONFIG_FILENAME
    yaml = YAML()
    yaml.default_flow_style = False
    with config_path.open("w", encoding="utf-8") as f:
        yaml.dump(config.to_dict(), f)
    return config_path
