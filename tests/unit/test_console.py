from __future__ import annotations

import logging

import pytest
from rich.logging import RichHandler

from pai_openai.core.console import LOG_LEVELS, get_logger, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("pai_openai").setLevel(logging.NOTSET)


@pytest.mark.parametrize(
    "name,expected",
    [
        ("debug", logging.DEBUG),
        ("info", logging.INFO),
        ("warn", logging.WARNING),
        ("error", logging.ERROR),
    ],
)
def test_named_levels(name: str, expected: int) -> None:
    logger = setup_logging(name)

    assert logger.level == expected


def test_silent_suppresses_errors() -> None:
    logger = setup_logging("silent")

    assert logger.level == LOG_LEVELS["silent"]
    assert not logger.isEnabledFor(logging.CRITICAL)


def test_single_rich_handler_on_root() -> None:
    setup_logging("info")
    setup_logging("debug")

    handlers = logging.getLogger().handlers
    assert len(handlers) == 1
    assert isinstance(handlers[0], RichHandler)
    assert get_logger().handlers == []


def test_sdk_transport_logs_stay_quiet() -> None:
    setup_logging("debug")

    assert logging.getLogger("httpx").level == logging.WARNING
