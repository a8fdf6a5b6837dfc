from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_JSON_SCALAR_TYPES = (str, int, float, bool)
_RESERVED_RECORD_KEYS = frozenset(
    (
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
    )
)


def _is_json_safe(value: object, depth: int = 3) -> bool:
    if isinstance(value, _JSON_SCALAR_TYPES):
        return True
    if depth <= 0:
        return False
    if isinstance(value, dict):
        for k, v in value.items():
            if not isinstance(k, (str, int, float, bool)) and k is not None:
                return False
            if not _is_json_safe(v, depth - 1):
                return False
        return True
    if isinstance(value, (list, tuple)):
        return all(_is_json_safe(v, depth - 1) for v in value)
    return False


@dataclass(frozen=True)
class LogConfig:
    level: str = "INFO"
    json_logs: bool = False


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        # extra= fields
        for key, value in record.__dict__.items():
            if key in _RESERVED_RECORD_KEYS or value is None:
                continue
            if _is_json_safe(value):
                payload[key] = value
        return json.dumps(payload, sort_keys=True)


class PlainFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        timestamp = datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="seconds")
        step = getattr(record, "step", None)
        phase = getattr(record, "phase", None)
        duration_ms = getattr(record, "duration_ms", None)
        message = record.getMessage()
        if step or phase:
            message = f"[{step or 'unknown'}:{phase or 'unknown'}] {message}"
        if duration_ms is not None:
            message = f"{message} (duration_ms={duration_ms})"
        return f"{timestamp} {record.levelname} {record.name}: {message}"


def _level_from_str(level: str) -> int:
    value = getattr(logging, level.upper(), None)
    if isinstance(value, int):
        return value
    return logging.INFO


def setup_logging(config: Optional[LogConfig] = None) -> None:
    """
    Configure root logger once. Subsequent calls are no-ops.
    Env overrides:
      - KUBE_PAGER_LOG_LEVEL (default INFO)
      - KUBE_PAGER_JSON_LOGS (1/true to enable)
    Logs go to stderr so item output on stdout stays machine-readable.
    """
    if getattr(setup_logging, "_configured", False):
        return

    env_level = os.getenv("KUBE_PAGER_LOG_LEVEL")
    env_json = os.getenv("KUBE_PAGER_JSON_LOGS")

    level = _level_from_str((config.level if config else None) or env_level or "INFO")
    json_logs = (config.json_logs if config else False) or (
        (env_json or "").lower() in ("1", "true", "yes")
    )

    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(JsonFormatter() if json_logs else PlainFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]

    # Transport libraries are noisy at DEBUG
    logging.getLogger("urllib3").setLevel(max(level, logging.WARNING))
    logging.getLogger("requests").setLevel(max(level, logging.WARNING))

    setattr(setup_logging, "_configured", True)


def log_event(
    logger: logging.Logger,
    level: int,
    message: str,
    *,
    step: str,
    phase: str,
    duration_ms: Optional[int] = None,
    **extra: Any,
) -> None:
    if not logger.isEnabledFor(level):
        return
    payload: Dict[str, Any] = {"step": step, "phase": phase, "event": f"{step}.{phase}"}
    if duration_ms is not None:
        payload["duration_ms"] = duration_ms
    payload.update(extra)
    logger.log(level, message, extra=payload)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
