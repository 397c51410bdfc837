"""Log handler setup for the agentloop logger hierarchy."""

import logging
from typing import Optional

from agentloop.config.schema import LoggingConfig

ROOT_LOGGER_NAME = "agentloop"

# Marks the handler this module installed so reconfiguring replaces it
_HANDLER_ATTR = "_agentloop_handler"


def configure_logging(
    settings: Optional[LoggingConfig] = None, stream=None
) -> logging.Logger:
    """
    Attach a single stream handler to the agentloop logger.

    Calling this again replaces the handler instead of adding another.

    Args:
        settings: Level and format. Defaults to LoggingConfig().
        stream: Output stream. Defaults to stderr.

    Returns:
        The configured agentloop logger.
    """
    settings = settings or LoggingConfig()
    logger = logging.getLogger(ROOT_LOGGER_NAME)

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_ATTR, False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter(settings.format))
    setattr(handler, _HANDLER_ATTR, True)

    logger.addHandler(handler)
    logger.setLevel(settings.level)
    return logger
