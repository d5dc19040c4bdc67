"""Logging configuration shared by the CLI, the worker and the API."""

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s"
DATE_FORMAT = "%H:%M:%S"


def configure_logging(level: Optional[str] = "INFO") -> None:
    """
    Configure root logging for a service process.

    Module loggers ("event_publisher", "notification_consumer", ...) propagate
    to the root handler installed here. Calling this twice replaces the
    previous configuration instead of stacking handlers.
    """
    lvl = getattr(logging, (level or "INFO").upper(), logging.INFO)
    logging.basicConfig(
        level=lvl,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        force=True,
    )
    # pika is chatty at INFO
    logging.getLogger("pika").setLevel(max(lvl, logging.WARNING))
