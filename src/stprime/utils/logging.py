"""
Structured logging for the ST Prime SDK.

Thin layer over the standard library ``logging`` module. Modules obtain a
logger with ``get_logger(__name__)`` and pass context through ``extra``;
applications call ``configure_logging`` once at startup.

Example:
    >>> from stprime.utils.logging import configure_logging, get_logger
    >>> configure_logging("DEBUG")
    >>> _logger = get_logger(__name__)
    >>> _logger.info("Transfer accepted", extra={"transfer_id": "5f0c..."})
"""

from __future__ import annotations

import logging
from typing import Optional, Union

ROOT_LOGGER_NAME = "stprime"

DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Attributes every LogRecord carries; anything else came from ``extra``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys()
) | {"message", "asctime"}


class ContextFormatter(logging.Formatter):
    """Formatter that appends ``extra`` fields as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        context = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        if not context:
            return base
        pairs = " ".join(f"{key}={value}" for key, value in sorted(context.items()))
        return f"{base} | {pairs}"


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger within the ``stprime`` hierarchy.

    Args:
        name: Module name, usually ``__name__``

    Returns:
        Logger instance
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def configure_logging(
    level: Union[int, str] = logging.INFO,
    fmt: Optional[str] = None,
    handler: Optional[logging.Handler] = None,
) -> logging.Logger:
    """
    Install a handler on the SDK root logger.

    Calling it again replaces the previously installed handler.

    Args:
        level: Log level name or number
        fmt: Format string (defaults to DEFAULT_FORMAT)
        handler: Handler to install (defaults to a StreamHandler)

    Returns:
        The configured ``stprime`` logger
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for existing in list(logger.handlers):
        if getattr(existing, "_stprime_handler", False):
            logger.removeHandler(existing)

    handler = handler or logging.StreamHandler()
    handler.setFormatter(ContextFormatter(fmt or DEFAULT_FORMAT))
    handler._stprime_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    return logger


def set_level(level: Union[int, str]) -> None:
    """Change the SDK log level."""
    logging.getLogger(ROOT_LOGGER_NAME).setLevel(
        level.upper() if isinstance(level, str) else level
    )


logging.getLogger(ROOT_LOGGER_NAME).addHandler(logging.NullHandler())
