from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest

from marksync.common.logging import CHATTY_LOGGERS, configure_logging


@pytest.fixture(autouse=True)
def restore_logging() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET)


def test_library_loggers_are_quiet_by_default() -> None:
    configure_logging(level=logging.INFO, force=True)

    assert logging.getLogger().level == logging.INFO
    assert all(logging.getLogger(name).level == logging.WARNING for name in CHATTY_LOGGERS)


def test_debug_level_lets_library_loggers_through() -> None:
    configure_logging(level=logging.DEBUG, force=True)

    assert logging.getLogger().level == logging.DEBUG
    assert all(logging.getLogger(name).level == logging.NOTSET for name in CHATTY_LOGGERS)
