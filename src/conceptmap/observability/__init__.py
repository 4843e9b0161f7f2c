"""Observability module for conceptmap.

Provides structured logging for the document store and its collaborators.
"""

from conceptmap.observability.logging import (
    close_file_logging,
    configure_logging,
    get_logger,
    get_logs_dir,
)

__all__ = [
    "close_file_logging",
    "configure_logging",
    "get_logger",
    "get_logs_dir",
]
