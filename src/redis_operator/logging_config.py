"""
Logging Configuration for the Redis Cluster Operator

Provides:
- JSON formatted logs for easy parsing (Loki, ELK, etc.)
- Reconcile ID tracking across the log lines of one reconcile cycle
- Log level and format chosen by the caller (CLI flag or OperatorConfig)
"""

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

# Context variable for reconcile cycle tracking
reconcile_id_ctx: ContextVar[Optional[str]] = ContextVar("reconcile_id", default=None)

_RESERVED_ATTRS = frozenset(
    (
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "pathname", "process", "processName", "relativeCreated",
        "stack_info", "exc_info", "exc_text", "thread", "threadName",
        "message", "taskName",
    )
)


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Output format:
    {
        "timestamp": "2026-10-17T19:30:00.000000Z",
        "level": "INFO",
        "logger": "redis_operator.reconciler",
        "message": "Cluster default/redis phase: None -> NotExists",
        "reconcile_id": "abc12345",
        "extra": { ... }
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        reconcile_id = reconcile_id_ctx.get()
        if reconcile_id:
            log_obj["reconcile_id"] = reconcile_id

        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
        }
        if extra_fields:
            log_obj["extra"] = extra_fields

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str)


def setup_logging(level: str = "INFO", json_format: bool = False) -> logging.Logger:
    """
    Configure logging for the operator process.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting (True) or standard format (False)

    Returns:
        Configured root logger
    """
    level = level.upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level, logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("kubernetes").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    return root_logger


def get_uvicorn_log_config(json_format: bool = False) -> dict:
    """
    Get uvicorn logging configuration compatible with our setup.

    Pass this to uvicorn.run(log_config=...) to ensure consistent logging.
    """
    handler = {"class": "logging.StreamHandler", "stream": "ext://sys.stderr"}
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "handlers": {"default": handler},
        "loggers": {
            "uvicorn": {"handlers": ["default"], "level": "INFO", "propagate": False},
            "uvicorn.error": {"handlers": ["default"], "level": "INFO", "propagate": False},
            "uvicorn.access": {"handlers": [], "level": "CRITICAL", "propagate": False},
        },
    }
    if json_format:
        config["formatters"] = {
            "json": {"()": "redis_operator.logging_config.JSONFormatter"},
        }
        handler["formatter"] = "json"
    return config


def new_reconcile_id() -> str:
    """Generate and set a reconcile ID for the current context."""
    reconcile_id = str(uuid.uuid4())[:8]
    reconcile_id_ctx.set(reconcile_id)
    return reconcile_id


def get_reconcile_id() -> Optional[str]:
    """Get the reconcile ID for the current context."""
    return reconcile_id_ctx.get()
