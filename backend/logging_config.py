"""Logging setup shared by the API server and the debug scripts."""

import logging

from config import settings

# Libraries that log every request or statement at INFO
QUIET_LOGGERS = (
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "httpx",
    "httpcore",
    "uvicorn.access",
)


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger.

    Args:
        level: Level name overriding ``settings.LOG_LEVEL`` (scripts pass
            ``"DEBUG"`` for ``--verbose``).

    Cache hits, misses and invalidations are logged at INFO by the returns
    services; ``QUIET_LOGGERS`` stay at WARNING whatever the root level is.
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    logging.basicConfig(
        format="%(asctime)s %(levelname)-8s %(name)s  %(message)s",
        datefmt="%H:%M:%S",
        level=getattr(logging, level_name),
        force=True,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
