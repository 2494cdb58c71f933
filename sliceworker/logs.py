"""Structured JSON logging split between stdout and stderr."""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Mapping

CONTROL_PLANE_NAMESPACE = "kubeslice-system"

_SEVERITY = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

_LEVEL_NAMES = {
    logging.DEBUG: "debug",
    logging.INFO: "info",
    logging.WARNING: "warn",
    logging.ERROR: "error",
    logging.CRITICAL: "fatal",
}

_RESERVED = set(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {
    "message",
    "asctime",
    "taskName",
}


class JsonFormatter(logging.Formatter):
    """Render log records as one JSON object per line."""

    def __init__(
        self,
        namespace: str = CONTROL_PLANE_NAMESPACE,
        cluster_name: str | None = None,
    ) -> None:
        super().__init__()
        self.namespace = namespace
        self.cluster_name = (
            os.environ.get("CLUSTER_NAME", "") if cluster_name is None else cluster_name
        )

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, timezone.utc).astimezone()
        payload: dict[str, Any] = {
            "severity": _LEVEL_NAMES.get(record.levelno, record.levelname.lower()),
            "time": stamp.isoformat(timespec="seconds"),
            "logger": record.name,
            "message": record.getMessage(),
            "namespace": self.namespace,
            "sliceCluster": self.cluster_name,
        }
        payload.update(
            (key, value) for key, value in record.__dict__.items() if key not in _RESERVED
        )
        if record.exc_info:
            payload["error"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def log_level_from_env(environ: Mapping[str, str]) -> int:
    """Return the logging level named by LOG_LEVEL; INFO when unset or unknown."""
    name = environ.get("LOG_LEVEL") or "INFO"
    return _SEVERITY.get(name, logging.INFO)


class _BelowError(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < logging.ERROR


def new_logger(name: str, level: int | None = None) -> logging.Logger:
    """Build a logger writing below-error records to stdout and the rest to stderr."""
    if level is None:
        level = log_level_from_env(os.environ)
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    formatter = JsonFormatter()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(level)
    stdout_handler.addFilter(_BelowError())
    stdout_handler.setFormatter(formatter)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.ERROR)
    stderr_handler.setFormatter(formatter)

    logger.addHandler(stdout_handler)
    logger.addHandler(stderr_handler)
    return logger