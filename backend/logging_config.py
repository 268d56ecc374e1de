"""Centralized logging configuration."""

import logging

from config import settings

# Library loggers that would otherwise log every request or query
QUIET_LOGGERS = (
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "httpx",
    "httpcore",
    "keyring",
    "asyncio",
)


def setup_logging(level: str | None = None) -> None:
    """Configure logging for the API process and the sync scripts.

    The root level comes from ``level`` when given, else settings.LOG_LEVEL.
    Timestamps carry the date because scheduled runs are read back across
    days. Library loggers in QUIET_LOGGERS stay at WARNING.
    """
    level = (level or settings.LOG_LEVEL).upper()
    logging.basicConfig(
        format="%(asctime)s %(levelname)-8s %(name)s  %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        level=getattr(logging, level),
        force=True,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
