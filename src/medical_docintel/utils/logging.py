# ============================================================================
# src/medical_docintel/utils/logging.py
# ============================================================================
"""
Logging configuration and utilities for the document intelligence pipeline.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, TextIO
from datetime import datetime, timezone
import json


# Attributes bound by LogAdapter that the JSON formatter emits
CONTEXT_FIELDS = ("document_id", "job_id", "stage", "attempt", "engine")


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    format_json: bool = False,
    stream: Optional[TextIO] = None
) -> None:
    """
    Setup logging configuration.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for logging
        format_json: Whether to use JSON format
        stream: Console stream (stdout by default)
    """
    log_level = getattr(logging, level.upper())

    if format_json:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    handlers = []

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        force=True
    )

    # boto3 / aiohttp are chatty at DEBUG
    for noisy in ("botocore", "boto3", "urllib3", "aiohttp.access"):
        logging.getLogger(noisy).setLevel(max(log_level, logging.WARNING))


class JsonFormatter(logging.Formatter):
    """JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        for field_name in CONTEXT_FIELDS:
            value = getattr(record, field_name, None)
            if value is not None:
                log_data[field_name] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def get_logger(name: str) -> logging.Logger:
    """
    Get logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


class LogAdapter(logging.LoggerAdapter):
    """
    Logger adapter for adding job context to all log messages.

    Context fields land on the LogRecord (picked up by JsonFormatter) and are
    prefixed onto the message for the plain-text format.
    """

    def process(self, msg, kwargs):
        if 'extra' not in kwargs:
            kwargs['extra'] = {}

        kwargs['extra'].update(self.extra)

        prefix = " ".join(
            f"{key}={value}" for key, value in self.extra.items()
            if key in CONTEXT_FIELDS and value is not None
        )
        if prefix:
            msg = f"[{prefix}] {msg}"

        return msg, kwargs


def job_logger(logger: logging.Logger, document_id: str, attempt: Optional[int] = None) -> LogAdapter:
    """Bind a document id (and attempt number) to a logger."""
    return LogAdapter(logger, {"document_id": document_id, "job_id": document_id, "attempt": attempt})
