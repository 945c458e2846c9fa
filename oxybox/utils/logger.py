"""Structured JSON logging for the prober."""

import logging
import sys
from typing import Any, Dict, Optional

from pythonjsonlogger.json import JsonFormatter

LOG_FORMAT = '%(asctime)s %(name)s %(levelname)s %(message)s'

# Stamped on every record so logs of several probers can share one sink
SERVICE_FIELDS = {"service": "oxybox"}


def parse_level(level: str) -> int:
    """
    Translate a level name such as ``info`` into its numeric value.

    Raises:
        ValueError: If the name is not a standard logging level
    """
    numeric = logging.getLevelName((level or "").strip().upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return numeric


def setup_logger(
    name: str = "oxybox",
    level: str = "INFO",
    static_fields: Optional[Dict[str, Any]] = None
) -> logging.Logger:
    """
    Configure the JSON stdout logger shared by every prober component.

    Components log through ``logger.getChild(...)`` and pass per-event
    context such as ``organisation_id`` or ``url`` with ``extra=``.

    Args:
        name: Logger name
        level: Log level name, case-insensitive (LOG_LEVEL may be lowercase)
        static_fields: Fields added to every record, merged over ``service``

    Returns:
        logging.Logger: Configured logger instance

    Raises:
        ValueError: If ``level`` is not a known level name
    """
    logger = logging.getLogger(name)
    logger.setLevel(parse_level(level))

    # Remove existing handlers to avoid duplicates
    logger.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter(
        LOG_FORMAT,
        static_fields={**SERVICE_FIELDS, **(static_fields or {})},
        timestamp=True
    ))
    logger.addHandler(handler)

    logger.propagate = False

    return logger
