"""loguru sinks for fitgen, driven by ``Settings``."""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from fitgen.config import Settings, get_settings

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> <level>{level: <7}</level> "
    "<cyan>{name}</cyan> {message} <dim>{extra}</dim>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} {level: <7} {name}:{line} {message} {extra}"


def setup_logger(settings: Optional[Settings] = None) -> None:
    """Replace loguru's default sink with a console sink and, when LOG_FILE is set, a rotating file.

    Structured kwargs passed to ``logger.info(...)`` land in ``{extra}``. Variable
    values are only rendered in tracebacks when APP_ENV is "dev".
    """
    s = settings or get_settings()
    level = s.LOG_LEVEL.upper()
    dev = s.APP_ENV == "dev"

    logger.remove()
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True, diagnose=dev)

    if s.LOG_FILE:
        path = Path(s.LOG_FILE)
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            path,
            format=FILE_FORMAT,
            level=level,
            rotation=s.LOG_ROTATION,
            retention=s.LOG_RETENTION,
            compression="zip",
            diagnose=dev,
        )

    logger.debug("Logging configured", level=level, log_file=s.LOG_FILE, app_env=s.APP_ENV)
