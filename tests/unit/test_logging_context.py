"""Tests for request-scoped logging context."""

import asyncio
import uuid

import pytest

from schooladmin.logutils.context import (
    LogContext,
    clear_context,
    get_context,
    get_correlation_id,
    set_correlation_id,
    update_context,
    with_context,
)

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def fresh_context():
    clear_context()
    yield
    clear_context()


class TestLogContext:
    def test_default_correlation_id_is_uuid(self):
        uuid.UUID(LogContext().correlation_id)

    def test_to_dict_skips_empty_fields(self):
        ctx = LogContext(correlation_id="abc", operation="create_grade", student_id=4)
        assert ctx.to_dict() == {"correlation_id": "abc", "operation": "create_grade", "student_id": 4}

    def test_extra_is_flattened(self):
        ctx = LogContext(correlation_id="abc", extra={"tool": "get_student_report"})
        assert ctx.to_dict()["tool"] == "get_student_report"


class TestWithContext:
    def test_scopes_and_restores(self):
        outer = get_context()
        with with_context(operation="bulk_create_attendance", class_id=2) as ctx:
            assert get_context() is ctx
            assert get_context().class_id == 2
        assert get_context() is outer

    def test_explicit_correlation_id(self):
        with with_context(correlation_id="req-1"):
            assert get_correlation_id() == "req-1"

    def test_nested(self):
        with with_context(operation="outer"):
            with with_context(operation="inner"):
                assert get_context().operation == "inner"
            assert get_context().operation == "outer"

    def test_restored_after_exception(self):
        outer = get_context()
        with pytest.raises(RuntimeError):
            with with_context(operation="failing"):
                raise RuntimeError("boom")
        assert get_context() is outer

    @pytest.mark.asyncio
    async def test_async_tasks_are_isolated(self):
        async def run(name):
            async with with_context(operation=name):
                await asyncio.sleep(0)
                return get_context().operation

        assert await asyncio.gather(run("a"), run("b")) == ["a", "b"]


class TestUpdateContext:
    def test_known_fields_and_extra(self):
        update_context(student_id=9, academic_year="2024/2025", rows=3)
        ctx = get_context()
        assert ctx.student_id == 9
        assert ctx.academic_year == "2024/2025"
        assert ctx.extra == {"rows": 3}

    def test_set_correlation_id(self):
        set_correlation_id("fixed")
        assert get_correlation_id() == "fixed"
