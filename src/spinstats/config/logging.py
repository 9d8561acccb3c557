"""Root logger setup for the command line."""

from __future__ import annotations

import logging

# Chatty third-party loggers stay at WARNING unless debugging.
_QUIET_LOGGERS = ("httpx", "httpcore", "alembic.runtime.migration")


def configure_logging(*, verbose: bool = False, force: bool = False) -> None:
    """Log to stderr at INFO, or DEBUG with ``verbose``; ``force`` replaces handlers."""

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)
