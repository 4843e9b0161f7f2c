"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import itertools
from collections.abc import Callable

import pytest

from conceptmap.graph import GraphStore, Snapshot
from conceptmap.persistence import seed_snapshot


@pytest.fixture(autouse=True)
def isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer environment overrides out of the tests."""
    for var in ("CMAP_STORAGE_BACKEND", "CMAP_DEBOUNCE_MS", "CMAP_HISTORY_SIZE", "CMAP_PROJECT"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def id_factory() -> Callable[[], str]:
    """Deterministic element ids: n1, n2, ..."""
    counter = itertools.count(1)
    return lambda: f"n{next(counter)}"


@pytest.fixture
def store(id_factory: Callable[[], str]) -> GraphStore:
    """Empty store with deterministic ids."""
    return GraphStore(Snapshot(), id_factory=id_factory)


@pytest.fixture
def seeded_store(id_factory: Callable[[], str]) -> GraphStore:
    """Store holding the seed graph (a, b, c, c1 under c, d)."""
    return GraphStore(seed_snapshot(), id_factory=id_factory)
