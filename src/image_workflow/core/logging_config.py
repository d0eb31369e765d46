"""Logging setup shared by the handlers, the workflow engine and the CLI."""

import json
import logging
import os
import sys
from typing import Optional

DEFAULT_LOGGER_NAME = "image-workflow"

STRUCTURED_FORMAT = (
    "%(asctime)s | %(name)s | %(levelname)-8s | "
    "%(filename)s:%(lineno)d | %(funcName)s() | %(message)s"
)
SIMPLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per line, as CloudWatch Logs Insights expects."""

    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_record)


def build_formatter(format_type: str) -> logging.Formatter:
    """Return the formatter for ``structured``, ``simple`` or ``json``."""
    format_type = format_type.lower()
    if format_type == "json":
        return JsonFormatter(datefmt="%Y-%m-%dT%H:%M:%S%z")
    if format_type == "simple":
        return logging.Formatter(SIMPLE_FORMAT)
    return logging.Formatter(STRUCTURED_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")


def setup_logger(
    name: str = DEFAULT_LOGGER_NAME,
    level: Optional[str] = None,
    format_type: str = "structured",
) -> logging.Logger:
    """
    Configure a stdout logger from arguments or the environment.

    Args:
        name: Logger name (defaults to "image-workflow")
        level: Log level override; falls back to LOG_LEVEL, then INFO
        format_type: "structured", "simple" or "json"; LOG_FORMAT wins when set

    Returns:
        The configured logger. Calling again for the same name updates the
        level but never stacks a second handler.
    """
    logger = logging.getLogger(name)

    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(build_formatter(os.getenv("LOG_FORMAT", format_type)))
        logger.addHandler(handler)

    # Lambda's runtime attaches its own root handler; keep records off it.
    logger.propagate = False
    return logger


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """
    Get a configured logger under the pipeline namespace.

    ``get_logger("workflow")`` returns ``image-workflow.workflow``.
    """
    if name != DEFAULT_LOGGER_NAME and not name.startswith(DEFAULT_LOGGER_NAME):
        name = f"{DEFAULT_LOGGER_NAME}.{name}"
    return setup_logger(name)
