"""Logging setup for the integration hub.

Modules log through ``logging.getLogger(__name__)``; this only attaches a
handler to the package logger for entry points such as the CLI.
"""

import logging
from typing import Optional

LOGGER_NAME = "integrationhub"
_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach a single stream handler to the package logger.

    Calling it again only updates the level.

    Args:
        level: Level name (e.g. "INFO"). Defaults to config.log_level.

    Returns:
        The package logger
    """
    if level is None:
        from integrationhub.config import config

        level = config.log_level

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    if not any(getattr(h, "_integrationhub", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._integrationhub = True  # type: ignore[attr-defined]
        logger.addHandler(handler)

    return logger
