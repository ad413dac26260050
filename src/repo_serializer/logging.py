from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from pathlib import Path

LOGGER_NAME = "repo_serializer"

_LOGGING_CONFIGURED = False
_FILE_HANDLER: logging.FileHandler | None = None


def _attach_file_handler(filename: str | Path) -> logging.FileHandler:
    """Send package events to `filename`, closing the previously attached log file."""
    global _FILE_HANDLER  # noqa: PLW0603
    package_logger = logging.getLogger(LOGGER_NAME)
    if _FILE_HANDLER is not None:
        if _FILE_HANDLER.baseFilename == os.path.abspath(filename):  # noqa: PTH100
            return _FILE_HANDLER
        package_logger.removeHandler(_FILE_HANDLER)
        _FILE_HANDLER.close()
    handler = logging.FileHandler(str(filename), encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(message)s"))
    package_logger.addHandler(handler)
    _FILE_HANDLER = handler
    return handler


def setup_logging(filename: str | Path | None = None) -> structlog.BoundLogger:
    """Set up structured logging for the repo_serializer module.

    Args:
        filename: Optional path to a log file. If None, logs are written to stderr.

    Returns:
        A structlog logger instance configured for the repo_serializer module.
    """
    global _LOGGING_CONFIGURED  # noqa: PLW0603
    if not _LOGGING_CONFIGURED:
        handlers: list[logging.Handler] = []
        if filename:
            handlers.append(logging.FileHandler(str(filename), encoding="utf-8"))
        else:
            handlers.append(logging.StreamHandler(sys.stderr))

        logging.basicConfig(
            level=logging.INFO,
            handlers=handlers,
            format="%(message)s",
        )
        # Level filtering is left to the stdlib logger so `set_verbosity` can
        # change it between runs.
        structlog.configure(
            processors=[
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        logging.getLogger(LOGGER_NAME).setLevel(logging.INFO)
        _LOGGING_CONFIGURED = True
    elif filename:
        # At most one run log file is open at a time.
        _attach_file_handler(filename)

    return structlog.get_logger(LOGGER_NAME)


def set_verbosity(*, silent: bool = False, verbose: bool = False) -> int:
    """Map an output mode onto the package logger level.

    Args:
        silent: only warnings and errors are emitted.
        verbose: per-entry trace events are emitted as well.

    Returns:
        int: the stdlib level that was applied.
    """
    if silent:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO
    logging.getLogger(LOGGER_NAME).setLevel(level)
    return level


logger = setup_logging()
