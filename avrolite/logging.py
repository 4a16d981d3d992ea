"""Logging for avrolite.

Every component logs through a child of the ``avrolite`` logger:
``avrolite.datafile`` for container blocks and headers, ``avrolite.resolver``
for fields skipped or defaulted while resolving, ``avrolite.schema`` for
parsing. Library code only logs at DEBUG and installs no handlers; call
:func:`configure_logging` to see the output.

Example:
    >>> from avrolite.logging import configure_logging
    >>> configure_logging(level=logging.DEBUG)
"""

import logging
from typing import Optional


AVROLITE_ROOT_LOGGER = "avrolite"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_logger(component: str = "") -> logging.Logger:
    """Get the logger of an avrolite component, or the root avrolite logger."""
    if component:
        return logging.getLogger(f"{AVROLITE_ROOT_LOGGER}.{component}")
    return logging.getLogger(AVROLITE_ROOT_LOGGER)


def configure_logging(
    level: int = logging.INFO,
    format_string: str = DEFAULT_FORMAT,
    handler: Optional[logging.Handler] = None,
) -> logging.Logger:
    """Set the avrolite log level and attach a handler.

    The handler is only attached when the avrolite logger has none yet, so
    calling this again just changes the level.

    Args:
        level: Logging level for the avrolite logger and its new handler.
        format_string: Format for the new handler.
        handler: Handler to attach; a ``StreamHandler`` on stderr if None.

    Returns:
        The root avrolite logger.
    """
    logger = get_logger()
    logger.setLevel(level)
    if not logger.handlers:
        handler = handler or logging.StreamHandler()
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(format_string))
        logger.addHandler(handler)
    return logger


def set_level(level: int, component: str = "") -> None:
    """Set the level of one component, such as ``"resolver"``, or of all of avrolite."""
    get_logger(component).setLevel(level)
