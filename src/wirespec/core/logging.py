"""Loguru setup.

Library modules log through `logger` from this module. Output stays disabled
until an application (the CLI, or a caller) runs `setup_logging`.
"""

from __future__ import annotations

import sys
from typing import Optional

from loguru import logger

from wirespec.core.config import Settings, get_settings

logger.disable("wirespec")

_CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level> {extra}"
)


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Install a single stderr sink and enable the `wirespec` namespace.

    Calling it again replaces the sink, so a CLI run can switch levels.
    """
    settings = settings or get_settings()

    logger.remove()
    if settings.log_format == "json":
        logger.add(sys.stderr, level=settings.log_level, serialize=True)
    else:
        logger.add(sys.stderr, level=settings.log_level, format=_CONSOLE_FORMAT)
    logger.enable("wirespec")


__all__ = ["logger", "setup_logging"]
