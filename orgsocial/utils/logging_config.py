"""Logging Configuration for orgsocial

This module provides centralized logging configuration using structlog with JSON output.
Parsing and aggregation code logs recoverable problems (malformed header fields,
orphaned replies, unparseable poll deadlines) at WARNING/DEBUG, and the fetch layer
logs per-source failures with full context so a partially failed batch can be audited.

Usage:
    >>> from orgsocial.utils.logging_config import setup_logging
    >>> setup_logging()
    >>> import structlog
    >>> logger = structlog.get_logger()
    >>> logger.info("feed_ingested", nick="alice", post_count=12)
    >>> logger.error("document_fetch_failed", exc_info=True, url="https://example.org/social.org")
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import structlog


def setup_logging(
    log_dir: Optional[str] = "logs",
    log_filename: str = "orgsocial.log",
    console_level: int = logging.INFO,
) -> None:
    """Configure structlog with JSON renderer and optional file output.

    Sets up both Python stdlib logging and structlog to write JSON-formatted
    log entries to <log_dir>/<log_filename>. Creates the log directory if it
    doesn't exist. Passing log_dir=None disables the file handler, which is
    what library consumers embedding orgsocial in a larger app usually want.

    Args:
        log_dir: Directory for log files, relative to current working directory
            (default: "logs"). None skips file logging.
        log_filename: Name of the log file (default: "orgsocial.log")
        console_level: Minimum level echoed to stdout (default: INFO)

    Log entry format (JSON):
        {
            "event": "feed_ingested",
            "level": "info",
            "timestamp": "2026-02-10T12:34:56.789Z",
            "logger": "orgsocial.feed",
            ...additional context fields...
        }
    """
    # Shared processors for structlog
    shared_processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
        structlog.processors.StackInfoRenderer(),
    ]

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Final JSON rendering happens in the stdlib formatter
    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(),
        foreign_pre_chain=shared_processors,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(str(log_path / log_filename), encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # urllib3 is chatty at DEBUG for every connection it opens
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def get_logger(name: str = None):
    """Get a configured structlog logger instance.

    Convenience wrapper around structlog.get_logger() for consistent usage.

    Args:
        name: Logger name (typically __name__). If None, returns root logger.

    Returns:
        Configured structlog logger ready for use (BoundLoggerLazyProxy)

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("thread_view_built", thread_count=4)
    """
    return structlog.get_logger(name)
