"""Request-scoped logging context.

Each handler call runs inside a :class:`LogContext` that carries a
correlation ID plus the ids of the records being touched, so every line a
request logs can be tied back to it. Backed by ``contextvars`` so the MCP
server's asyncio tasks each see their own context.
"""

from __future__ import annotations

import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any


@dataclass
class LogContext:
    """Contextual fields attached to every log record."""

    correlation_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    operation: str | None = None
    user_id: int | None = None
    student_id: int | None = None
    class_id: int | None = None
    academic_year: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Return the non-empty fields as a flat dictionary."""
        result: dict[str, Any] = {"correlation_id": self.correlation_id}
        for name in ("operation", "user_id", "student_id", "class_id", "academic_year"):
            value = getattr(self, name)
            if value is not None:
                result[name] = value
        result.update(self.extra)
        return result


_log_context: ContextVar[LogContext | None] = ContextVar("log_context", default=None)


def get_context() -> LogContext:
    """Return the current context, creating one if none is active."""
    ctx = _log_context.get()
    if ctx is None:
        ctx = LogContext()
        _log_context.set(ctx)
    return ctx


def set_context(context: LogContext) -> None:
    _log_context.set(context)


def clear_context() -> None:
    _log_context.set(None)


def get_correlation_id() -> str:
    return get_context().correlation_id


def set_correlation_id(correlation_id: str) -> None:
    get_context().correlation_id = correlation_id


class ContextManager:
    """Activate a :class:`LogContext` for the duration of a ``with`` block."""

    def __init__(
        self,
        correlation_id: str | None = None,
        operation: str | None = None,
        user_id: int | None = None,
        student_id: int | None = None,
        class_id: int | None = None,
        academic_year: str | None = None,
        **extra: Any,
    ) -> None:
        self.new_context = LogContext(
            correlation_id=correlation_id or str(uuid.uuid4()),
            operation=operation,
            user_id=user_id,
            student_id=student_id,
            class_id=class_id,
            academic_year=academic_year,
            extra=extra,
        )
        self._previous_context: LogContext | None = None

    def __enter__(self) -> LogContext:
        self._previous_context = _log_context.get()
        _log_context.set(self.new_context)
        return self.new_context

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        _log_context.set(self._previous_context)

    async def __aenter__(self) -> LogContext:
        return self.__enter__()

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def with_context(
    correlation_id: str | None = None,
    operation: str | None = None,
    user_id: int | None = None,
    student_id: int | None = None,
    class_id: int | None = None,
    academic_year: str | None = None,
    **extra: Any,
) -> ContextManager:
    """Create a context manager for a logging scope.

    Usage:
        with with_context(operation="create_grade", student_id=12):
            logger.info("Recording grade")
    """
    return ContextManager(
        correlation_id=correlation_id,
        operation=operation,
        user_id=user_id,
        student_id=student_id,
        class_id=class_id,
        academic_year=academic_year,
        **extra,
    )


def update_context(**kwargs: Any) -> None:
    """Set fields on the active context; unknown names go into ``extra``."""
    ctx = get_context()
    for key, value in kwargs.items():
        if key != "extra" and hasattr(ctx, key):
            setattr(ctx, key, value)
        else:
            ctx.extra[key] = value
