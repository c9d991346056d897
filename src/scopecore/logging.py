"""Centralized logging utilities for scopecore.

This module provides:
- Logging configuration from ScopeCoreConfig
- Safe preview utilities for rule text and documents
- Structured logging with scope/operation context
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from .config import LogLevel, ScopeCoreConfig

# Attributes every LogRecord carries; anything else is an ``extra`` field
_RECORD_ATTRS = frozenset(
    {
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "message", "pathname", "process", "processName", "relativeCreated",
        "thread", "threadName", "exc_info", "exc_text", "stack_info",
        "taskName", "scope_id", "operation",
    }
)


def safe_preview(value: Any, limit: int = 240) -> str:
    """Create a length-bounded, single-line preview of a value for logging.

    Args:
        value: The value to preview (any type)
        limit: Maximum length of the preview (default: 240)

    Returns:
        A truncated string representation
    """
    if value is None:
        return ""

    if isinstance(value, str):
        s = value
    elif isinstance(value, (dict, list, tuple)):
        try:
            s = json.dumps(value, default=str, ensure_ascii=False)
        except (TypeError, ValueError):
            s = str(value)
    else:
        s = str(value)

    # Normalize whitespace (replace newlines, tabs, multiple spaces with single space)
    s = " ".join(s.split())

    if len(s) > limit:
        return s[: limit - 1] + "…"

    return s


class ScopeCoreFormatter(logging.Formatter):
    """Formatter that includes scope context and optional JSON output.

    This formatter:
    - Extracts scope_id and operation from log records (if available)
    - Formats logs as JSON for structured logging
    - Includes safe previews of extra fields
    """

    def __init__(
        self,
        include_scope: bool = True,
        json_format: bool = True,
        *args: Any,
        **kwargs: Any,
    ):
        super().__init__(*args, **kwargs)
        self.include_scope = include_scope
        self.json_format = json_format

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record."""
        scope_id = getattr(record, "scope_id", None)
        operation = getattr(record, "operation", None)

        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_scope:
            if scope_id:
                log_data["scope_id"] = str(scope_id)
            if operation:
                log_data["operation"] = operation

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS:
                log_data[key] = safe_preview(value)

        if self.json_format:
            return json.dumps(log_data, default=str, ensure_ascii=False)

        parts = [
            f"[{log_data['timestamp']}]",
            f"{log_data['level']}",
            f"{log_data['logger']}",
        ]
        if scope_id and self.include_scope:
            parts.append(f"scope={log_data['scope_id']}")
        if operation and self.include_scope:
            parts.append(f"op={operation}")
        parts.append(f": {log_data['message']}")
        return " ".join(parts)


class ScopeLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds scope_id and operation to log records.

    Usage:
        logger = get_scope_logger(__name__, operation="cascade")
        logger.info("Applied toggle", scope_id="area:sophia")
    """

    def __init__(
        self,
        logger: logging.Logger,
        scope_id: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(logger, {})
        self.scope_id = scope_id
        self.operation = operation

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        scope_id = kwargs.pop("scope_id", self.scope_id)
        operation = kwargs.pop("operation", self.operation)

        extra = kwargs.get("extra", {})
        if scope_id:
            extra["scope_id"] = str(scope_id)
        if operation:
            extra["operation"] = operation
        kwargs["extra"] = extra

        return msg, kwargs


def setup_logging(
    config: Optional[ScopeCoreConfig] = None,
    json_format: Optional[bool] = None,
    logger_name: Optional[str] = None,
) -> None:
    """Configure logging for a process embedding scopecore.

    This function:
    - Sets up logging level from ScopeCoreConfig
    - Configures the scope-aware formatter
    - Sets up root logger with a single stream handler

    Args:
        config: ScopeCoreConfig instance (if None, loads from environment)
        json_format: Override ``config.log_json``
        logger_name: Optional logger to pin to the configured level as well
    """
    if config is None:
        from .config import load_config_from_env
        config = load_config_from_env()

    level_map = {
        LogLevel.DEBUG: logging.DEBUG,
        LogLevel.INFO: logging.INFO,
        LogLevel.WARNING: logging.WARNING,
        LogLevel.ERROR: logging.ERROR,
        LogLevel.CRITICAL: logging.CRITICAL,
    }
    log_level = level_map.get(config.log_level, logging.INFO)
    use_json = config.log_json if json_format is None else json_format

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(ScopeCoreFormatter(include_scope=True, json_format=use_json))
    root_logger.addHandler(console_handler)

    if logger_name:
        logging.getLogger(logger_name).setLevel(log_level)


def get_scope_logger(
    name: str,
    scope_id: Optional[str] = None,
    operation: Optional[str] = None,
) -> ScopeLoggerAdapter:
    """Get a logger adapter that tags records with scope context.

    Args:
        name: Logger name (typically __name__)
        scope_id: Optional scope id to include in all logs
        operation: Optional operation name (toggle, cascade, reconcile, ...)

    Returns:
        ScopeLoggerAdapter instance
    """
    logger = logging.getLogger(name)
    return ScopeLoggerAdapter(logger, scope_id=scope_id, operation=operation)


__all__ = [
    "safe_preview",
    "ScopeCoreFormatter",
    "ScopeLoggerAdapter",
    "setup_logging",
    "get_scope_logger",
]
