"""Console output and logging configuration.

Provides Rich-based logging setup:
    - stderr_console: Rich console for stderr, used by the log handler
    - setup_logging(): Configure logging with a single Rich handler
    - get_logger(): Get a named logger instance

Model output is never routed through Rich; it is written to ``sys.stdout``
verbatim so downstream pipes see the exact bytes the API produced.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

stderr_console = Console(stderr=True)

LOG_LEVELS: dict[str, int] = {
    "silent": logging.CRITICAL + 10,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def _normalize_level(level: str | int) -> int:
    if isinstance(level, str):
        return LOG_LEVELS.get(level.lower(), logging.INFO)
    return int(level)


def setup_logging(level: str | int = "info") -> logging.Logger:
    """Configure logging with a Rich handler and return the app logger."""
    numeric_level = _normalize_level(level)

    handler = RichHandler(
        console=stderr_console,
        markup=False,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.setLevel(numeric_level)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(numeric_level)
    root.addHandler(handler)

    # Records propagate to the root handler; one handler means one line per record.
    logger = logging.getLogger("pai_openai")
    logger.handlers.clear()
    logger.setLevel(numeric_level)

    # The SDK's transport logs every request at INFO.
    for noisy in ("httpx", "httpcore", "openai"):
        logging.getLogger(noisy).setLevel(max(numeric_level, logging.WARNING))

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    return logging.getLogger(name or "pai_openai")
