# src/scholarfolio/utils/logging_config.py
"""
Centralized file logging for scholarfolio.

Usage:
    from scholarfolio.utils.logging_config import Logger, LogFiles

    Logger.info("Sync run started", file=LogFiles.SYNC)
    Logger.error("Catalog unreachable", file=LogFiles.ERROR)

    # Default file (logs/scholarfolio.log)
    Logger.info("General message")

Configuration via environment variables:
    SCHOLARFOLIO_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL (default: INFO)
    SCHOLARFOLIO_LOG_DIR: Base directory for log files (default: logs/)
    SCHOLARFOLIO_LOG_MAX_BYTES: Max size per log file in bytes (default: 10MB)
    SCHOLARFOLIO_LOG_BACKUP_COUNT: Number of backup files to keep (default: 5)
"""

from __future__ import annotations

import inspect
import os
import threading
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Iterator, Optional

import yaml

# One trace id per sync run or HTTP request
_trace_id_var: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_DIR = "logs"
DEFAULT_LOG_FILE = "scholarfolio.log"
DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
DEFAULT_BACKUP_COUNT = 5
DEFAULT_FORMAT = "{timestamp} [{level}] [{trace_id}] {filename}:{lineno} - {message}"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_CONFIG_FILE = Path(__file__).parent / "log_config.yaml"

LOG_LEVELS = {
    "DEBUG": 10,
    "INFO": 20,
    "WARNING": 30,
    "ERROR": 40,
    "CRITICAL": 50,
}


class _LogFilesMeta(type):
    """Allows attribute access like LogFiles.SYNC."""

    def __getattr__(cls, name: str) -> str:
        files = cls._load()
        key = name.lower()
        if key in files:
            return files[key]
        raise AttributeError(f"Log file '{name}' not found in config")


class LogFiles(metaclass=_LogFilesMeta):
    """
    Log file paths, relative to the log directory.

    Defaults can be overridden in ``log_config.yaml`` next to this module.
    """

    _files: Optional[Dict[str, str]] = None

    @classmethod
    def _load(cls) -> Dict[str, str]:
        if cls._files is not None:
            return cls._files

        files = {
            "sync": "sync/sync.log",
            "resolver": "resolver/resolver.log",
            "api": "api/api.log",
            "error": "errors/error.log",
        }
        if LOG_CONFIG_FILE.exists():
            try:
                with open(LOG_CONFIG_FILE, "r", encoding="utf-8") as f:
                    config = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError):
                config = {}
            for name, path in (config.get("files") or {}).items():
                files[str(name).lower()] = str(path)

        cls._files = files
        return files

    @classmethod
    def get(cls, name: str) -> str:
        return cls._load().get(name.lower(), f"{name}/{name}.log")


_config: Dict[str, object] = {}
_file_handlers: Dict[str, RotatingFileHandler] = {}
_handlers_lock = threading.Lock()


def _get_config() -> Dict[str, object]:
    return {
        "level": os.environ.get("SCHOLARFOLIO_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
        "base_dir": os.environ.get("SCHOLARFOLIO_LOG_DIR", DEFAULT_LOG_DIR),
        "max_bytes": int(os.environ.get("SCHOLARFOLIO_LOG_MAX_BYTES", DEFAULT_MAX_BYTES)),
        "backup_count": int(os.environ.get("SCHOLARFOLIO_LOG_BACKUP_COUNT", DEFAULT_BACKUP_COUNT)),
    }


def _get_file_handler(file_path: str) -> RotatingFileHandler:
    with _handlers_lock:
        handler = _file_handlers.get(file_path)
        if handler is None:
            path = Path(file_path)
            path.parent.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(
                filename=str(path),
                maxBytes=int(_config.get("max_bytes", DEFAULT_MAX_BYTES)),
                backupCount=int(_config.get("backup_count", DEFAULT_BACKUP_COUNT)),
                encoding="utf-8",
            )
            _file_handlers[file_path] = handler
        return handler


def _write_log(level: str, message: str, file: Optional[str] = None) -> None:
    current_level = str(_config.get("level", DEFAULT_LOG_LEVEL))
    if LOG_LEVELS.get(level, 0) < LOG_LEVELS.get(current_level, 0):
        return

    # Skip _write_log and the public Logger method
    frame = inspect.currentframe()
    caller = frame.f_back.f_back if frame and frame.f_back else None
    filename = os.path.basename(caller.f_code.co_filename) if caller else "unknown"
    lineno = caller.f_lineno if caller else 0

    formatted = DEFAULT_FORMAT.format(
        timestamp=datetime.now().strftime(DEFAULT_DATE_FORMAT),
        level=level,
        trace_id=_trace_id_var.get() or "-",
        filename=filename,
        lineno=lineno,
        message=message,
    )

    base_dir = str(_config.get("base_dir", DEFAULT_LOG_DIR))
    file_path = str(Path(base_dir) / (file or DEFAULT_LOG_FILE))
    handler = _get_file_handler(file_path)
    handler.acquire()
    try:
        handler.stream.write(formatted + "\n")
        handler.stream.flush()
    finally:
        handler.release()


class Logger:
    """Static logger writing to per-purpose rotating files."""

    @staticmethod
    def init(
        level: Optional[str] = None,
        base_dir: Optional[str] = None,
        max_bytes: Optional[int] = None,
        backup_count: Optional[int] = None,
    ) -> None:
        """Initialize once; later calls are no-ops until ``close()``."""
        if _config:
            return
        _config.update(_get_config())
        if level:
            _config["level"] = level.upper()
        if base_dir:
            _config["base_dir"] = base_dir
        if max_bytes:
            _config["max_bytes"] = max_bytes
        if backup_count:
            _config["backup_count"] = backup_count

    @staticmethod
    def debug(message: str, file: Optional[str] = None) -> None:
        Logger.init()
        _write_log("DEBUG", message, file)

    @staticmethod
    def info(message: str, file: Optional[str] = None) -> None:
        Logger.init()
        _write_log("INFO", message, file)

    @staticmethod
    def warning(message: str, file: Optional[str] = None) -> None:
        Logger.init()
        _write_log("WARNING", message, file)

    @staticmethod
    def error(message: str, file: Optional[str] = None) -> None:
        Logger.init()
        _write_log("ERROR", message, file)

    @staticmethod
    def set_level(level: str) -> None:
        Logger.init()
        _config["level"] = level.upper()

    @staticmethod
    def close() -> None:
        """Close all file handlers and forget the configuration."""
        with _handlers_lock:
            for handler in _file_handlers.values():
                handler.close()
            _file_handlers.clear()
        _config.clear()


# ============================================================================
# Trace ID Management
# ============================================================================


def generate_trace_id(prefix: str = "req") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def set_trace_id(trace_id: Optional[str] = None) -> str:
    """Set the trace id for the current context, generating one if needed."""
    tid = trace_id or generate_trace_id()
    _trace_id_var.set(tid)
    return tid


def get_trace_id() -> Optional[str]:
    return _trace_id_var.get()


def clear_trace_id() -> None:
    _trace_id_var.set(None)


@contextmanager
def trace_context(prefix: str = "req") -> Iterator[str]:
    """Bind a fresh trace id for the duration of the block."""
    token = _trace_id_var.set(generate_trace_id(prefix))
    try:
        yield _trace_id_var.get() or ""
    finally:
        _trace_id_var.reset(token)
