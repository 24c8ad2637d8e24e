"""Tests for MCP tool dispatch."""

import json

import pytest

from schooladmin.mcp_server.server import TOOLS, dispatch, list_tools

pytestmark = pytest.mark.integration


def _payload(result):
    assert len(result) == 1
    return json.loads(result[0].text)


class TestListTools:
    @pytest.mark.asyncio
    async def test_every_tool_has_object_schema(self):
        tools = await list_tools()
        assert {t.name for t in tools} == set(TOOLS)
        for tool in tools:
            assert tool.inputSchema["type"] == "object"

    @pytest.mark.asyncio
    async def test_grade_schema_lists_required_fields(self):
        (tool,) = [t for t in await list_tools() if t.name == "create_grade"]
        assert {"student_id", "subject_id", "score", "max_score"} <= set(tool.inputSchema["required"])


class TestDispatch:
    @pytest.mark.asyncio
    async def test_create_user_hides_password(self, repo):
        result = await dispatch(
            repo,
            "create_user",
            {"email": "admin@school.id", "password": "rahasia1", "name": "Admin", "role": "admin"},
        )
        user = _payload(result)
        assert user["email"] == "admin@school.id"
        assert "password" not in user

    @pytest.mark.asyncio
    async def test_create_grade_from_json_numbers(self, repo, school):
        result = await dispatch(
            repo,
            "create_grade",
            {
                "student_id": school["student_id"],
                "subject_id": school["math_id"],
                "assignment_type": "daily",
                "assignment_name": "Quiz",
                "score": 87.33,
                "max_score": 90.5,
                "weight": 7.25,
                "date_recorded": "2024-09-02",
                "recorded_by": school["teacher_user_id"],
            },
        )
        grade = _payload(result)
        assert grade["score"] == "87.33"
        assert grade["max_score"] == "90.5"
        assert grade["weight"] == "7.25"

    @pytest.mark.asyncio
    async def test_student_report(self, repo, school):
        result = await dispatch(
            repo, "get_student_report", {"student_id": school["student_id"], "academic_year": "2024/2025"}
        )
        report = _payload(result)
        assert report["student"]["name"] == "Ani"
        assert report["grades"] == []

    @pytest.mark.asyncio
    async def test_domain_error_becomes_text(self, repo, school):
        result = await dispatch(
            repo, "get_student_report", {"student_id": 999, "academic_year": "2024/2025"}
        )
        assert result[0].text == "Error: Student with id 999 not found"

    @pytest.mark.asyncio
    async def test_weight_error_reports_total(self, repo, school):
        result = await dispatch(
            repo,
            "create_grade_config",
            {
                "subject_id": school["math_id"],
                "class_id": school["class_id"],
                "daily_weight": 50,
                "midterm_weight": 30,
                "final_weight": 30,
                "academic_year": "2024/2025",
            },
        )
        assert result[0].text == "Error: Grade weights must add up to 100%. Current total: 110%"

    @pytest.mark.asyncio
    async def test_invalid_arguments_name_the_field(self, repo, school):
        result = await dispatch(repo, "create_class", {"name": "9Z", "grade_level": 12, "academic_year": "2024/2025"})
        assert result[0].text.startswith("Error: Invalid arguments:")
        assert "grade_level" in result[0].text

    @pytest.mark.asyncio
    async def test_export_returns_csv_text(self, repo, school):
        result = await dispatch(
            repo,
            "export_attendance",
            {"start_date": "2024-01-01", "end_date": "2024-01-31", "format": "excel"},
        )
        assert result[0].text.startswith("date,student_number")

    @pytest.mark.asyncio
    async def test_healthcheck(self, repo):
        info = _payload(await dispatch(repo, "healthcheck", {}))
        assert info["status"] == "ok"
        assert "grades" in info["tables"]

    @pytest.mark.asyncio
    async def test_unknown_tool(self, repo):
        result = await dispatch(repo, "drop_everything", {})
        assert result[0].text == "Unknown tool: drop_everything"

    @pytest.mark.asyncio
    async def test_non_consecutive_year_is_invalid_argument(self, repo, school):
        result = await dispatch(
            repo, "get_student_report", {"student_id": school["student_id"], "academic_year": "2024/2026"}
        )
        assert result[0].text.startswith("Error: Invalid arguments: academic_year:")
        assert "consecutive" in result[0].text
