"""Logging infrastructure for the school administration backend.

- Structured JSON logging for production and log files
- Rich console output during development
- Correlation IDs and record ids carried through ``contextvars``
- Masking of passwords, emails and phone numbers

Usage:
    from schooladmin.logutils import get_logger, with_context

    logger = get_logger(__name__)

    with with_context(operation="generate_student_report", student_id=7):
        logger.info("Building report", extra={"extra_data": {"academic_year": "2024/2025"}})
"""

from .config import Environment, LogConfig, LogOutput, get_config, reset_config, set_config
from .context import (
    ContextManager,
    LogContext,
    clear_context,
    get_context,
    get_correlation_id,
    set_context,
    set_correlation_id,
    update_context,
    with_context,
)
from .formatters import CompactFormatter, JSONFormatter, StandardFormatter
from .handlers import (
    BufferingHandler,
    RichConsoleHandler,
    SafeRotatingFileHandler,
    StreamHandlerWithFlush,
)
from .logger import (
    LoggerAdapter,
    configure_root_logger,
    get_logger,
    reset_logging,
    with_extra,
)
from .masking import (
    MASK,
    SensitiveValue,
    is_sensitive_key,
    mask_dict,
    mask_sensitive_string,
)

__all__ = [
    "get_logger",
    "configure_root_logger",
    "reset_logging",
    "with_extra",
    "LoggerAdapter",
    "with_context",
    "get_context",
    "set_context",
    "clear_context",
    "get_correlation_id",
    "set_correlation_id",
    "update_context",
    "LogContext",
    "ContextManager",
    "LogConfig",
    "LogOutput",
    "Environment",
    "get_config",
    "set_config",
    "reset_config",
    "JSONFormatter",
    "StandardFormatter",
    "CompactFormatter",
    "RichConsoleHandler",
    "SafeRotatingFileHandler",
    "BufferingHandler",
    "StreamHandlerWithFlush",
    "mask_sensitive_string",
    "mask_dict",
    "is_sensitive_key",
    "SensitiveValue",
    "MASK",
]
