"""Structured logging helpers."""

import logging
import sys
from collections.abc import MutableMapping
from typing import Any, Optional


class StructuredLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that supports structured logging with extra fields.

    Usage:
        logger = get_structured_logger(__name__)
        logger.info("Scan started", subnet="192.168.1", addresses=105)
        logger.error("Terminal call failed", address="192.168.1.100")
    """

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        """Process log message and extract extra fields."""
        standard_kwargs = {"exc_info", "stack_info", "stacklevel", "extra"}
        extra = kwargs.pop("extra", {})

        # Move non-standard kwargs to extra
        for key in list(kwargs.keys()):
            if key not in standard_kwargs:
                extra[key] = kwargs.pop(key)

        if self.extra:
            extra = {**self.extra, **extra}

        kwargs["extra"] = extra
        return msg, kwargs


def get_structured_logger(name: str, **default_extra: Any) -> StructuredLoggerAdapter:
    """
    Get a structured logger that supports extra keyword arguments.

    Args:
        name: Logger name (usually __name__)
        **default_extra: Default extra fields to include in all logs

    Returns:
        A StructuredLoggerAdapter instance

    Example:
        logger = get_structured_logger(__name__, component="scheduler")
        logger.info("Batch settled", batch=3, found=1)
    """
    base_logger = logging.getLogger(name)
    return StructuredLoggerAdapter(base_logger, default_extra)


# Attributes every LogRecord carries; anything else came in as a structured field
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName", "color_message"}


def record_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Structured fields attached to a record, in the order they were given."""
    return {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}


class StructuredFormatter(logging.Formatter):
    """
    Formatter that appends structured fields as ``key=value`` pairs.

    ``logger.info("Scan session started", subnet="192.168.1", addresses=105)``
    renders as ``... - INFO - Scan session started subnet=192.168.1 addresses=105``.
    """

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = record_fields(record)
        if not fields:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in fields.items())
        head, sep, tail = line.partition("\n")
        return f"{head} {pairs}{sep}{tail}"


def setup_logging(level: str, log_file: Optional[str]) -> None:
    """Configure logging handlers"""
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]

    # Add file handler if log file is specified and writable
    if log_file:
        try:
            handlers.append(logging.FileHandler(log_file))
        except (PermissionError, FileNotFoundError):
            print(
                f"Warning: Cannot write to {log_file}, logging to stdout only",
                file=sys.stderr,
            )

    formatter = StructuredFormatter("%(asctime)s - %(levelname)s - %(message)s")
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)
