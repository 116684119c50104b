"""Logging setup for the marksync command line."""

from __future__ import annotations

import logging

CHATTY_LOGGERS = ("httpx", "httpcore")


def configure_logging(*, level: int = logging.WARNING, force: bool = False) -> None:
    """Configure the root logger for CLI output.

    ``httpx`` logs every request at INFO; those loggers stay at WARNING unless
    ``level`` asks for DEBUG output.
    """

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    library_level = logging.NOTSET if level <= logging.DEBUG else logging.WARNING
    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
