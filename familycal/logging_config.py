"""
Logger levels for familycal and the libraries it sits on.

familycal's own loggers run at INFO, or DEBUG when asked. aiohttp access logs,
httpx and asyncio are held back so request handling stays readable.
"""

import logging
import os
from typing import Optional

THIRD_PARTY_LEVELS: dict[str, int] = {
    "aiohttp.access": logging.WARNING,
    "aiohttp.server": logging.WARNING,
    "aiohttp.web": logging.INFO,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
}

FAMILYCAL_MODULES = [
    "familycal",
    "familycal.api",
    "familycal.calendar",
    "familycal.core",
    "familycal.domain",
]

_LOG_FORMAT = "[%(asctime)s] [%(request_id)s] %(levelname)s - %(name)s - %(message)s"
_ROOT_LEVEL_NAMES = ("DEBUG", "INFO", "WARNING", "ERROR")


class CorrelationIdFilter(logging.Filter):
    """Stamp each record with the current request's correlation ID."""

    def filter(self, record: logging.LogRecord) -> bool:
        from familycal.api.middleware.correlation_id import get_request_id

        record.request_id = get_request_id()
        return True


def _debug_requested(debug_mode: bool, force_debug: Optional[bool]) -> bool:
    if force_debug is not None:
        return force_debug
    return debug_mode or os.getenv("FAMILYCAL_DEBUG", "").lower() in ("1", "true", "yes")


def _attach_correlation_filter(root: logging.Logger, level: int) -> None:
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        root.addHandler(handler)
    for handler in root.handlers:
        if not any(isinstance(f, CorrelationIdFilter) for f in handler.filters):
            handler.addFilter(CorrelationIdFilter())


def configure_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Apply familycal's logger levels.

    Args:
        debug_mode: Run familycal's own loggers at DEBUG
        force_debug: Overrides both ``debug_mode`` and FAMILYCAL_DEBUG when not None

    Environment Variables:
        FAMILYCAL_DEBUG: '1', 'true' or 'yes' turns on debug logging
        FAMILYCAL_LOG_LEVEL: Root level (DEBUG, INFO, WARNING, ERROR)
    """
    debug = _debug_requested(debug_mode, force_debug)
    package_level = logging.DEBUG if debug else logging.INFO

    root_level_name = os.getenv("FAMILYCAL_LOG_LEVEL", "").upper()
    root_level = getattr(logging, root_level_name) if root_level_name in _ROOT_LEVEL_NAMES else package_level

    root = logging.getLogger()
    root.setLevel(root_level)
    _attach_correlation_filter(root, root_level)

    for name, level in THIRD_PARTY_LEVELS.items():
        logging.getLogger(name).setLevel(level)
    for name in FAMILYCAL_MODULES:
        logging.getLogger(name).setLevel(package_level)

    root.info("familycal logging configured (debug=%s, root=%s)", debug, logging.getLevelName(root_level))


def get_logging_status() -> dict[str, str]:
    """Current level names for root and a few key loggers."""
    names = ["familycal", "aiohttp.access", "httpx", "asyncio"]
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    status.update({name: logging.getLevelName(logging.getLogger(name).level) for name in names})
    return status
