"""
Retrieve Logger
Standard library logging with an env-selectable level.
"""
import json
import logging
import os
from typing import Any, Optional, Union

LOG_PREFIX = "[Retrieve]"
ENV_LOG_LEVEL = "RETRIEVE_LOG_LEVEL"

LOG_LEVELS = {
    "silent": logging.CRITICAL + 10,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

ROOT_LOGGER_NAME = "retrieve"


def parse_level(level: Union[str, int, None]) -> int:
    """Map a level name (or number) to a logging level, defaulting to WARNING."""
    if isinstance(level, int):
        return level
    if not level:
        return logging.WARNING
    return LOG_LEVELS.get(level.lower(), logging.WARNING)


def setup_logging(level: Union[str, int, None] = None) -> logging.Logger:
    """
    Configure the package logger.

    Level comes from the argument, then RETRIEVE_LOG_LEVEL, then WARNING.
    Calling it again only updates the level.
    """
    if level is None:
        level = os.getenv(ENV_LOG_LEVEL)
    resolved = parse_level(level)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(resolved)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        logger.addHandler(handler)
    for handler in logger.handlers:
        handler.setLevel(resolved)

    # Keep transport chatter down unless we are debugging
    logging.getLogger("httpx").setLevel(logging.DEBUG if resolved <= logging.DEBUG else logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    return logger


def format_body(body: Optional[Any]) -> str:
    """
    Summarize a request body for logging without dumping binary data.
    """
    if body is None:
        return "<empty>"
    if isinstance(body, (bytes, bytearray)):
        return f"<binary data: {len(body)} bytes>"
    if isinstance(body, str):
        if len(body) > 500:
            return body[:500] + "... (truncated)"
        return body
    try:
        return json.dumps(body)
    except (TypeError, ValueError):
        return repr(body)
