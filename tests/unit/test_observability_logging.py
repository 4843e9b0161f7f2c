"""Tests for structured logging configuration."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import pytest

from conceptmap.observability import (
    close_file_logging,
    configure_logging,
    get_logger,
    get_logs_dir,
)

if TYPE_CHECKING:
    from pathlib import Path


def test_configure_logging_sets_level_warning() -> None:
    """Default verbosity (0) sets WARNING level."""
    configure_logging(verbosity=0)

    assert logging.getLogger().level == logging.WARNING


def test_configure_logging_verbose_opens_root() -> None:
    """verbosity=1 opens the root logger; the console handler filters to INFO."""
    configure_logging(verbosity=1)

    root_logger = logging.getLogger()
    assert root_logger.level == logging.DEBUG
    assert root_logger.handlers[0].level == logging.INFO


def test_configure_logging_very_verbose_sets_debug() -> None:
    """verbosity=2 sets DEBUG level."""
    configure_logging(verbosity=2)

    root_logger = logging.getLogger()
    assert root_logger.level == logging.DEBUG
    assert root_logger.handlers[0].level == logging.DEBUG


def test_get_logger_returns_bound_logger() -> None:
    """get_logger returns a structlog logger with expected methods."""
    logger = get_logger(__name__)

    assert hasattr(logger, "info")
    assert hasattr(logger, "debug")
    assert hasattr(logger, "warning")
    assert hasattr(logger, "exception")


def test_get_logger_auto_configures() -> None:
    """get_logger configures logging if not already done."""
    import conceptmap.observability.logging as log_module

    log_module._configured = False

    logger = get_logger("test")

    assert log_module._configured is True
    assert logger is not None


def test_configure_logging_with_file_logging(tmp_path: Path) -> None:
    """File logging creates the logs directory."""
    configure_logging(verbosity=0, log_to_file=True, project_path=tmp_path)

    assert (tmp_path / "logs").exists()
    assert get_logs_dir() == tmp_path / "logs"
    close_file_logging()


def test_configure_logging_without_file_logging(tmp_path: Path) -> None:
    """Without file logging flag, logs directory is not created."""
    configure_logging(verbosity=0, log_to_file=False, project_path=tmp_path)

    assert not (tmp_path / "logs").exists()


def test_configure_logging_requires_project_path_for_file_logging() -> None:
    """log_to_file=True without project_path raises ValueError."""
    with pytest.raises(ValueError, match="project_path is required"):
        configure_logging(verbosity=0, log_to_file=True, project_path=None)


def test_configure_logging_reconfiguration_closes_handler(tmp_path: Path) -> None:
    """Reconfiguring logging closes previous file handler."""
    import conceptmap.observability.logging as log_module

    configure_logging(verbosity=0, log_to_file=True, project_path=tmp_path)
    first_handler = log_module._file_handler
    assert first_handler is not None

    configure_logging(verbosity=0, log_to_file=True, project_path=tmp_path)
    second_handler = log_module._file_handler

    assert first_handler.stream is None or first_handler.stream.closed
    assert second_handler is not None
    close_file_logging()


def test_close_file_logging_clears_handler(tmp_path: Path) -> None:
    """close_file_logging closes handler and clears reference."""
    import conceptmap.observability.logging as log_module

    configure_logging(verbosity=0, log_to_file=True, project_path=tmp_path)
    assert log_module._file_handler is not None

    close_file_logging()

    assert log_module._file_handler is None


def test_jsonl_file_handler_writes_structlog_context(tmp_path: Path) -> None:
    """JSONLFileHandler extracts structlog context to JSONL."""
    configure_logging(verbosity=2, log_to_file=True, project_path=tmp_path)

    logger = get_logger("test.context")
    logger.info("node_added", node_id="n1", edges_removed=2)

    close_file_logging()

    log_file = tmp_path / "logs" / "debug.jsonl"
    assert log_file.exists()

    found = False
    with log_file.open() as f:
        for line in f:
            entry = json.loads(line)
            if entry.get("message") == "node_added":
                found = True
                assert entry["node_id"] == "n1"
                assert entry["edges_removed"] == 2
                assert entry["level"] == "INFO"
                break

    assert found, "Log entry with structlog context not found in JSONL"


def test_project_name_is_bound_to_events(tmp_path: Path) -> None:
    """Every event carries the project directory name."""
    project = tmp_path / "my-map"
    configure_logging(verbosity=0, log_to_file=True, project_path=project)

    get_logger("test.project").debug("snapshot_loaded", nodes=3)
    close_file_logging()

    lines = (project / "logs" / "debug.jsonl").read_text().splitlines()
    entries = [json.loads(line) for line in lines]
    assert [e["project"] for e in entries if e["message"] == "snapshot_loaded"] == ["my-map"]


def test_reconfiguring_without_project_unbinds_it() -> None:
    """Dropping the project path also drops the bound project name."""
    import structlog

    configure_logging(verbosity=0, project_path=None)

    assert "project" not in structlog.contextvars.get_contextvars()
