"""Application logging helpers.

Request targets end up in log lines, so every handler installed here masks
``user:password@`` credentials in URLs, including inside formatted tracebacks,
and bounds the message length.
"""

from __future__ import annotations

import logging as py_logging
import re
import sys
from pathlib import Path
from typing import TextIO

LOG_LEVELS = {
    "DEBUG": py_logging.DEBUG,
    "INFO": py_logging.INFO,
    "WARN": py_logging.WARNING,
    "WARNING": py_logging.WARNING,
    "ERROR": py_logging.ERROR,
}
DEFAULT_LOG_PATH = Path("~/.config/httpretry/logs/httpretry.log")
DEFAULT_LOG_TRUNCATE_LIMIT = 700
URL_CREDENTIAL_PATTERN: re.Pattern[str] = re.compile(r"(https?://)([^/\s:@]+):([^@\s]+)@")
_FALLBACK_LOG_PATH = Path(".httpretry/logs/httpretry.log")
_FORMAT = "%(asctime)s %(levelname)s %(name)s:%(lineno)d %(message)s"


def truncate_log(value: str, limit: int = DEFAULT_LOG_TRUNCATE_LIMIT) -> str:
    value = value.strip()
    if len(value) <= limit:
        return value
    return value[: max(0, limit - 3)] + "..."


def _mask_credentials(value: str) -> str:
    return URL_CREDENTIAL_PATTERN.sub(r"\1***:***@", value)


def sanitize_log_text(value: str, limit: int = DEFAULT_LOG_TRUNCATE_LIMIT) -> str:
    """Mask URL credentials and return a bounded-length log string."""
    if not value:
        return ""
    return truncate_log(_mask_credentials(value), limit)


class SanitizingFilter(py_logging.Filter):
    def filter(self, record: py_logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # Broken format strings are reported by the handler on emit.
            return True
        record.msg = sanitize_log_text(message)
        record.args = None
        return True


class SanitizingFormatter(py_logging.Formatter):
    def formatException(self, ei) -> str:
        return _mask_credentials(super().formatException(ei))

    def formatStack(self, stack_info: str) -> str:
        return _mask_credentials(super().formatStack(stack_info))


def default_log_path() -> Path:
    try:
        resolved = DEFAULT_LOG_PATH.expanduser()
    except RuntimeError:
        resolved = (Path.cwd() / _FALLBACK_LOG_PATH).resolve()
    else:
        if not resolved.is_absolute():
            resolved = resolved.resolve()
    return resolved


def configure_logging(
    level: str = "INFO",
    stream: TextIO | None = None,
    *,
    log_file: str | Path | None = None,
) -> py_logging.Logger:
    normalized = level.upper()
    if normalized == "WARNING":
        normalized = "WARN"
    resolved = LOG_LEVELS.get(normalized, py_logging.INFO)

    logger = py_logging.getLogger("httpretry")
    logger.setLevel(resolved)
    logger.handlers.clear()
    formatter = SanitizingFormatter(_FORMAT)
    sanitizer = SanitizingFilter()

    handler = py_logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(formatter)
    handler.addFilter(sanitizer)
    logger.addHandler(handler)

    if log_file:
        try:
            log_path = Path(log_file).expanduser()
        except RuntimeError:
            log_path = Path(log_file)
        if not log_path.is_absolute():
            log_path = log_path.resolve()
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = py_logging.FileHandler(log_path, encoding="utf-8")
        except OSError:
            pass
        else:
            file_handler.setLevel(py_logging.DEBUG)
            file_handler.setFormatter(formatter)
            file_handler.addFilter(sanitizer)
            logger.addHandler(file_handler)

    logger.propagate = False
    return logger
