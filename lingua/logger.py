"""
Structured JSON Logging Module.

Every component logs through a ``StructuredLogger`` that writes one JSON
object per line.  Loggers live under the ``lingua`` namespace; the
console and rotating-file handlers are attached once, to the namespace
root, and every child logger propagates to them.

Auth milestones carry an ``event`` field in ``extra`` so a log file can
be filtered per flow::

    log.info("Offline login accepted", extra={"event": "OFFLINE_LOGIN"})

Credential-bearing ``extra`` fields (passwords, tokens) are masked
before they are formatted.
"""

import json
import logging
import sys
import threading
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional, TextIO

ROOT_LOGGER_NAME: str = "lingua"

_REDACTED: str = "***"
_SENSITIVE_FIELDS: frozenset[str] = frozenset({
    "password",
    "password_hash",
    "passwordHash",
    "access_token",
    "refresh_token",
    "token",
    "anon_key",
})

_root_lock: threading.Lock = threading.Lock()
_root_configured: bool = False


class JSONFormatter(logging.Formatter):
    """Formats log records as structured JSON objects.

    Each log entry contains:
        - timestamp  (ISO-8601, UTC)
        - level
        - logger_name
        - message
        - extra      (structured fields passed via the ``extra`` kwarg)
        - exception  (formatted traceback, when present)
    """

    # Standard LogRecord attribute names, computed once.
    _STANDARD_ATTRS: frozenset[str] = frozenset(
        logging.LogRecord(
            name="", level=0, pathname="", lineno=0, msg="", args=(), exc_info=None
        ).__dict__.keys()
    ) | {"message", "asctime", "taskName"}

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger_name": record.name,
            "message": record.getMessage(),
        }

        extra_fields = {
            key: _REDACTED if key in _SENSITIVE_FIELDS else _jsonable(value)
            for key, value in record.__dict__.items()
            if key not in self._STANDARD_ATTRS
        }
        if extra_fields:
            entry["extra"] = extra_fields

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            entry["exception"] = record.exc_text

        return json.dumps(entry, ensure_ascii=False)


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


def _qualified(name: str) -> str:
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return name
    return f"{ROOT_LOGGER_NAME}.{name}"


def _configure_root(
    level: int,
    stream: Optional[TextIO],
    log_file: str,
    max_bytes: int,
    backup_count: int,
) -> None:
    """Attach the shared handlers to the ``lingua`` logger, once per process."""
    global _root_configured
    with _root_lock:
        if _root_configured:
            return
        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.setLevel(level)
        root.propagate = False
        formatter = JSONFormatter()

        stream_handler = logging.StreamHandler(stream or sys.stdout)
        stream_handler.setFormatter(formatter)
        root.addHandler(stream_handler)

        try:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                filename=str(log_path),
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)
        except OSError as exc:
            root.warning(
                "Could not create log file '%s': %s. Continuing with console logging only.",
                log_file, exc,
            )
        _root_configured = True


class StructuredLogger:
    """Injectable logger.

    Pass one wherever a component needs to log.  *name* is placed under
    the ``lingua`` namespace (``"auth"`` becomes ``"lingua.auth"``).
    The first instance created in a process configures the shared
    handlers from :class:`~lingua.config.AppConfig`; later instances
    only pick their name.

    Dependency Injection::

        class SomeService:
            def __init__(self, logger: StructuredLogger) -> None:
                self._logger = logger
    """

    def __init__(
        self,
        name: str = ROOT_LOGGER_NAME,
        level: Optional[int] = None,
        stream: Optional[TextIO] = None,
        log_file: Optional[str] = None,
    ) -> None:
        # Lazy import to avoid circular dependency at module level
        from lingua.config import get_config
        cfg = get_config()

        _configure_root(
            level=logging.getLevelName(cfg.LOG_LEVEL.upper()) if level is None else level,
            stream=stream,
            log_file=log_file or cfg.LOG_FILE,
            max_bytes=cfg.LOG_MAX_BYTES,
            backup_count=cfg.LOG_BACKUP_COUNT,
        )
        self._logger: logging.Logger = logging.getLogger(_qualified(name))

    @property
    def logger(self) -> logging.Logger:
        """Access the underlying ``logging.Logger`` directly."""
        return self._logger

    # -- Convenience delegates ------------------------------------------------

    def debug(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.error(msg, *args, **kwargs)

    def critical(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.critical(msg, *args, **kwargs)


def get_logger(name: str = ROOT_LOGGER_NAME) -> StructuredLogger:
    """Shorthand for ``StructuredLogger(name=name)``."""
    return StructuredLogger(name=name)
