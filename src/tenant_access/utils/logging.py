"""
Logging helpers shared by every tenant-access module.

Modules obtain their logger with ``get_logger(__name__)``; entry points (the CLI,
the Flask app factory) call ``setup_logging`` once with a verbosity level.
"""

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ROOT_LOGGER_NAME = "tenant_access"

# Verbosity scale used by the CLI (0 = quiet ... 4 = debug)
VERBOSITY_LEVELS = {
    0: logging.CRITICAL,
    1: logging.ERROR,
    2: logging.WARNING,
    3: logging.INFO,
    4: logging.DEBUG,
}


def _qualify(name: str) -> str:
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return name
    return f"{ROOT_LOGGER_NAME}.{name}"


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger namespaced under the package root logger.

    Args:
        name: Usually ``__name__``; short names such as ``'rbac.audit'`` are
              prefixed with ``tenant_access.``

    Returns:
        logging.Logger instance
    """
    return logging.getLogger(_qualify(name))


def verbosity_to_level(verbosity: int) -> int:
    verbosity = max(0, min(4, verbosity))
    return VERBOSITY_LEVELS[verbosity]


def setup_logging(verbosity: int = 3, stream=None, fmt: Optional[str] = None) -> logging.Logger:
    """
    Configure the package root logger.

    Calling this more than once replaces the handler instead of stacking a new one.

    Args:
        verbosity: 0-4, see VERBOSITY_LEVELS
        stream: Output stream (defaults to stderr)
        fmt: Optional log format override

    Returns:
        The configured root logger for the package
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(verbosity_to_level(verbosity))

    for handler in list(root.handlers):
        if getattr(handler, "_tenant_access_handler", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(fmt or LOG_FORMAT, datefmt=DATE_FORMAT))
    handler._tenant_access_handler = True
    root.addHandler(handler)
    return root


def setup_cli_logging(verbosity: int = 3) -> logging.Logger:
    """Plain message-only output for interactive commands."""
    return setup_logging(verbosity=verbosity, fmt="%(message)s")
