"""Logging configuration."""
import logging
import sys
from typing import Optional

from app.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Chatty libraries kept at WARNING unless the app itself runs at DEBUG
QUIET_LOGGERS = ["httpx", "httpcore", "sqlalchemy.engine", "aiosqlite", "uvicorn.access"]


def setup_logging(level: Optional[str] = None) -> None:
    """Configure application logging from LOG_LEVEL (or ``level``)."""
    level_name = (level or settings.log_level).upper()
    root_level = logging.getLevelName(level_name)
    if not isinstance(root_level, int):
        root_level = logging.INFO

    logging.basicConfig(
        level=root_level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    if root_level > logging.DEBUG:
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"[LOGGING] Configured - Level: {logging.getLevelName(root_level)}")
