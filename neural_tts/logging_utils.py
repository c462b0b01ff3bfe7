from __future__ import annotations

"""Logging helpers: payload summaries, request/chunk context and formatters."""

from typing import Any, Dict, Iterable, Optional
from pathlib import Path
import logging
import logging.config
import json
from datetime import datetime, timezone
import os
import contextvars

import numpy as np


def summarize_payload(value: Any, *, max_list: int = 20, max_str: int = 200, depth: int = 3) -> Any:
    """Return a size-limited summary of a payload for logging (arrays become shape/dtype)."""
    if depth <= 0:
        return f"<{type(value).__name__}>"
    if isinstance(value, np.ndarray):
        return {"__ndarray__": list(value.shape), "dtype": str(value.dtype)}
    if isinstance(value, dict):
        items = list(value.items())
        summarized: Dict[str, Any] = {}
        for key, val in items[:max_list]:
            summarized[str(key)] = summarize_payload(val, max_list=max_list, max_str=max_str, depth=depth - 1)
        if len(items) > max_list:
            summarized["__truncated__"] = True
            summarized["__len__"] = len(items)
        return summarized
    if isinstance(value, (list, tuple)):
        if len(value) > max_list:
            return {
                "__len__": len(value),
                "sample": [
                    summarize_payload(item, max_list=max_list, max_str=max_str, depth=depth - 1)
                    for item in value[:5]
                ],
            }
        return [
            summarize_payload(item, max_list=max_list, max_str=max_str, depth=depth - 1)
            for item in value
        ]
    if isinstance(value, str):
        if len(value) > max_str:
            return value[:max_str] + "...(truncated)"
        return value
    if isinstance(value, bytes):
        return {"__bytes__": len(value)}
    if isinstance(value, Path):
        return str(value)
    return value


DEFAULT_LOG_FORMAT = (
    "%(asctime)s %(levelname)s %(name)s %(filename)s:%(lineno)d:%(funcName)s "
    "request_id=%(request_id)s chunk=%(chunk_index)s %(message)s"
)


_STANDARD_LOG_RECORD_KEYS = set(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
)


_request_id = contextvars.ContextVar("log_request_id", default="-")
_chunk_index = contextvars.ContextVar("log_chunk_index", default="-")


def set_log_context(*, request_id: Optional[str] = None, chunk_index: int | str | None = None) -> None:
    """Set context variables for log enrichment."""
    if request_id is not None:
        _request_id.set(request_id)
    if chunk_index is not None:
        _chunk_index.set(str(chunk_index))


def clear_log_context() -> None:
    """Reset log context variables to their default values."""
    _request_id.set("-")
    _chunk_index.set("-")


class LoggingContextFilter(logging.Filter):
    """Inject request id and chunk index into each log record."""
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()
        record.chunk_index = _chunk_index.get()
        return True


class JsonFormatter(logging.Formatter):
    """Format log records as one JSON object per line."""
    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
            timespec="milliseconds"
        )
        payload = {
            "timestamp": timestamp,
            "level": record.levelname,
            "logger": record.name,
            "file": record.filename,
            "line": record.lineno,
            "function": record.funcName,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
            "chunk_index": getattr(record, "chunk_index", "-"),
        }
        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_LOG_RECORD_KEYS and key not in payload
        }
        if extras:
            payload.update(extras)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _use_json_logs() -> bool:
    """Return True when environment config requests JSON logs."""
    return os.getenv("LOG_FORMAT", "").lower() == "json" or os.getenv(
        "LOG_JSON", ""
    ).lower() in {"1", "true", "yes"}


def _app_env() -> str:
    return os.getenv("APP_ENV") or os.getenv("ENV") or "dev"


def is_dev_env() -> bool:
    """Return True when running in development-like environments."""
    return _app_env().lower() in {"dev", "development", "local", "test"}


def build_formatter() -> logging.Formatter:
    """Build the active log formatter based on environment settings."""
    if _use_json_logs():
        return JsonFormatter()
    return logging.Formatter(DEFAULT_LOG_FORMAT)


def attach_context_filter(handler: logging.Handler) -> None:
    """Ensure a handler includes the logging context filter."""
    if not any(isinstance(f, LoggingContextFilter) for f in handler.filters):
        handler.addFilter(LoggingContextFilter())


def ensure_context_handlers(logger_names: Iterable[str] | None = None) -> None:
    """Apply the active formatter and context filter to existing handlers."""
    formatter = build_formatter()
    if logger_names is None:
        logger_names = ("", "neural_tts")
    for name in logger_names:
        logger = logging.getLogger(name)
        for handler in logger.handlers:
            handler.setFormatter(formatter)
            attach_context_filter(handler)


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging from LOG_CONFIG (dictConfig JSON) or a stream handler."""
    config_path = os.getenv("LOG_CONFIG")
    if config_path and Path(config_path).exists():
        with Path(config_path).open("r", encoding="utf-8") as handle:
            config = json.load(handle)
        if _use_json_logs() and "json" in config.get("formatters", {}):
            for handler in config.get("handlers", {}).values():
                handler["formatter"] = "json"
        logging.config.dictConfig(config)
    else:
        logging.basicConfig(level=logging.INFO)
    level_override = level or os.getenv("TTS_LOG_LEVEL")
    if level_override:
        logging.getLogger().setLevel(level_override.upper())
    ensure_context_handlers()


def get_logger(module_name: str) -> logging.Logger:
    """Return a logger; in dev, also attach a per-module file handler under LOG_DIR."""
    logger = logging.getLogger(module_name)
    if getattr(logger, "_file_handler_attached", False):
        return logger
    log_dir_value = os.getenv("LOG_DIR")
    if not is_dev_env() or not log_dir_value:
        logger.propagate = True
        return logger
    log_dir = Path(log_dir_value)
    log_dir.mkdir(parents=True, exist_ok=True)
    filename = module_name.replace(".", "_") + ".log"
    handler = logging.FileHandler(log_dir / filename, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(build_formatter())
    attach_context_filter(handler)
    logger.addHandler(handler)
    logger.propagate = True
    setattr(logger, "_file_handler_attached", True)
    return logger
