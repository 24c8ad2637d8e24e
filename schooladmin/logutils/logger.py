"""Logger factory used by every module in the package."""

from __future__ import annotations

import logging
import sys
from typing import Any

from .config import LogConfig, LogOutput, get_config
from .formatters import CompactFormatter, JSONFormatter, StandardFormatter
from .handlers import RichConsoleHandler, SafeRotatingFileHandler, StreamHandlerWithFlush

_configured_loggers: set[str] = set()
_root_configured: bool = False


def get_logger(name: str | None = None, config: LogConfig | None = None) -> logging.Logger:
    """Return a logger configured from ``config`` (or the active LogConfig).

    Args:
        name: Logger name, normally ``__name__``
        config: Configuration to apply on first use

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    key = name or "root"
    if key not in _configured_loggers:
        _configure_logger(logger, config or get_config())
        _configured_loggers.add(key)
    return logger


def _configure_logger(logger: logging.Logger, config: LogConfig) -> None:
    level = config.module_levels.get(logger.name, config.level)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers.clear()

    # Named loggers carry their own handlers; the root logger keeps propagating
    if logger.name != "root":
        logger.propagate = False

    for handler in _create_handlers(config):
        logger.addHandler(handler)


def _json_handler(config: LogConfig) -> logging.Handler:
    handler = StreamHandlerWithFlush(sys.stderr)
    handler.setFormatter(JSONFormatter(mask_sensitive=config.mask_sensitive, extra_fields=config.extra_fields))
    return handler


def _create_handlers(config: LogConfig) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []

    if config.output in (LogOutput.CONSOLE, LogOutput.BOTH):
        if config.json_format:
            handlers.append(_json_handler(config))
        elif config.use_rich:
            handler = RichConsoleHandler()
            handler.setFormatter(CompactFormatter(mask_sensitive=config.mask_sensitive))
            handlers.append(handler)
        else:
            handler = StreamHandlerWithFlush(sys.stderr)
            handler.setFormatter(StandardFormatter(mask_sensitive=config.mask_sensitive))
            handlers.append(handler)

    if config.output == LogOutput.JSON:
        handlers.append(_json_handler(config))

    if config.output in (LogOutput.FILE, LogOutput.BOTH) and config.log_file:
        file_handler = SafeRotatingFileHandler(
            filename=config.log_file,
            max_bytes=config.max_file_size,
            backup_count=config.backup_count,
        )
        # Files are always JSON
        file_handler.setFormatter(
            JSONFormatter(mask_sensitive=config.mask_sensitive, extra_fields=config.extra_fields)
        )
        handlers.append(file_handler)

    return handlers


def configure_root_logger(config: LogConfig | None = None) -> None:
    """Configure the root logger once at process start (CLI, MCP server)."""
    global _root_configured
    if _root_configured:
        return
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    _configure_logger(root_logger, config or get_config())
    _root_configured = True


def reset_logging() -> None:
    """Drop handlers from every logger configured so far."""
    global _root_configured
    for name in _configured_loggers:
        logging.getLogger(name if name != "root" else None).handlers.clear()
    _configured_loggers.clear()
    _root_configured = False


class LoggerAdapter(logging.LoggerAdapter):
    """Adapter that merges fixed structured data into every record's ``extra_data``."""

    def __init__(self, logger: logging.Logger, extra: dict[str, Any] | None = None) -> None:
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        call_extra = kwargs.get("extra", {})
        data = {**self.extra, **call_extra.get("extra_data", call_extra)}
        kwargs["extra"] = {"extra_data": data}
        return msg, kwargs


def with_extra(logger: logging.Logger, **extra: Any) -> LoggerAdapter:
    """Wrap ``logger`` so every record carries ``extra``."""
    return LoggerAdapter(logger, extra)
