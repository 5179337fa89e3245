"""JSON logging configuration for pq-certs."""

import logging
import os

from pythonjsonlogger.json import JsonFormatter

LOG_LEVEL_ENV = "PQ_CERTS_LOG_LEVEL"


class StoreJsonFormatter(JsonFormatter):
    """JSON formatter that keeps only timestamp, level, message, exc_info, funcName and lineno."""

    allowed_fields = frozenset({"timestamp", "level", "message", "exc_info", "funcName", "lineno"})

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        if "levelname" in log_record:
            log_record["level"] = log_record.pop("levelname")

        for key in [key for key in log_record if key not in self.allowed_fields]:
            log_record.pop(key)


def _setup_logger() -> logging.Logger:
    """Initialize and configure singleton logger.

    Returns:
        Configured logger with StoreJsonFormatter
    """
    logger = logging.getLogger("pq_certs")

    # Prevent duplicate handlers if module reloaded
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(
        StoreJsonFormatter(
            fmt="%(timestamp)s %(levelname)s %(funcName)s %(lineno)d %(message)s",
            timestamp=True,
        )
    )

    logger.setLevel(os.environ.get(LOG_LEVEL_ENV, "INFO").upper())
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def set_level(level: str) -> None:
    """Override the logger level, e.g. from a ``--log-level`` flag."""
    LOGGER.setLevel(level.upper())


# Singleton logger instance - import this in other modules
LOGGER = _setup_logger()
