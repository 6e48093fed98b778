"""Loguru sink configuration."""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from .config import get_settings


LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def configure_logging(level: Optional[str] = None, log_file: Optional[Path] = None) -> None:
    """
    Replace loguru's default sink with the configured ones.

    Console output goes to stderr at `level`; when a log file is configured
    everything from DEBUG up is also written there with rotation.
    """
    settings = get_settings()
    level = (level or settings.log_level).upper()
    log_file = log_file or settings.log_file

    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_file),
            level="DEBUG",
            rotation="5 MB",
            retention=5,
            encoding="utf-8",
        )

    logger.debug(f"Logging configured (level={level}, file={log_file})")
