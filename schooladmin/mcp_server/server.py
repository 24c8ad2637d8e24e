#!/usr/bin/env python3
"""MCP server for the school administration backend.

Every service handler is exposed as a tool. Arguments are validated with the
pydantic input models before the handler runs; results are JSON text.
"""

import json
from typing import Any, Awaitable, Callable, Dict, NamedTuple, Optional, Type

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool
from pydantic import BaseModel
from pydantic import ValidationError as InputValidationError

from ..config import get_config
from ..database.connection import verify_database
from ..database.models import (
    AttendanceReportInput,
    BulkAttendanceInput,
    BulkGradeInput,
    CreateAttendanceInput,
    CreateClassInput,
    CreateGradeConfigInput,
    CreateGradeInput,
    CreateNotificationInput,
    CreateParentInput,
    CreateStudentInput,
    CreateSubjectInput,
    CreateTeacherAssignmentInput,
    CreateTeacherInput,
    CreateUserInput,
    ExportAttendanceInput,
    ExportGradesInput,
    GetClassesInput,
    GetNotificationsInput,
    GetStudentsInput,
    GetUsersInput,
    GradeReportInput,
    ImportStudentsInput,
    StudentReportInput,
    User,
)
from ..database.repository import Repository, get_repository
from ..errors import SchoolAdminError
from ..logutils import get_logger, with_context, with_extra
from .. import services

logger = get_logger(__name__)

app = Server("school-admin")

_repo: Optional[Repository] = None


def get_repo() -> Repository:
    """Get or create the repository for the configured database."""
    global _repo
    if _repo is None:
        _repo = get_repository(get_config().database_path)
    return _repo


def _json(data: Any) -> list[TextContent]:
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    elif isinstance(data, list):
        data = [item.model_dump(mode="json") if isinstance(item, BaseModel) else item for item in data]
    return [TextContent(type="text", text=json.dumps(data, indent=2, default=str))]


def _public_user(user: User) -> dict:
    return user.model_dump(mode="json", exclude={"password"})


# ==================== HANDLER IMPLEMENTATIONS ====================


async def handle_create_user(repo: Repository, args: CreateUserInput) -> list[TextContent]:
    return _json(_public_user(services.create_user(repo, args)))


async def handle_get_users(repo: Repository, args: GetUsersInput) -> list[TextContent]:
    return _json([_public_user(u) for u in services.get_users(repo, args.role)])


async def handle_create_class(repo: Repository, args: CreateClassInput) -> list[TextContent]:
    return _json(services.create_class(repo, args))


async def handle_get_classes(repo: Repository, args: GetClassesInput) -> list[TextContent]:
    return _json(services.get_classes(repo, args))


async def handle_create_subject(repo: Repository, args: CreateSubjectInput) -> list[TextContent]:
    return _json(services.create_subject(repo, args))


async def handle_get_subjects(repo: Repository, args: None) -> list[TextContent]:
    return _json(services.get_subjects(repo))


async def handle_create_student(repo: Repository, args: CreateStudentInput) -> list[TextContent]:
    return _json(services.create_student(repo, args))


async def handle_get_students(repo: Repository, args: GetStudentsInput) -> list[TextContent]:
    return _json(services.get_students(repo, args.class_id))


async def handle_import_students(repo: Repository, args: ImportStudentsInput) -> list[TextContent]:
    students = services.import_students(repo, args)
    return _json({"imported": len(students), "students": [s.model_dump(mode="json") for s in students]})


async def handle_create_teacher(repo: Repository, args: CreateTeacherInput) -> list[TextContent]:
    return _json(services.create_teacher(repo, args))


async def handle_get_teachers(repo: Repository, args: None) -> list[TextContent]:
    return _json(services.get_teachers(repo))


async def handle_create_parent(repo: Repository, args: CreateParentInput) -> list[TextContent]:
    return _json(services.create_parent(repo, args))


async def handle_create_teacher_assignment(
    repo: Repository, args: CreateTeacherAssignmentInput
) -> list[TextContent]:
    return _json(services.create_teacher_assignment(repo, args))


async def handle_create_attendance(repo: Repository, args: CreateAttendanceInput) -> list[TextContent]:
    return _json(services.create_attendance(repo, args))


async def handle_bulk_create_attendance(repo: Repository, args: BulkAttendanceInput) -> list[TextContent]:
    return _json(services.bulk_create_attendance(repo, args))


async def handle_get_attendance_report(repo: Repository, args: AttendanceReportInput) -> list[TextContent]:
    return _json(services.get_attendance_report(repo, args))


async def handle_export_attendance(repo: Repository, args: ExportAttendanceInput) -> list[TextContent]:
    return [TextContent(type="text", text=services.export_attendance(repo, args).decode("utf-8"))]


async def handle_create_grade(repo: Repository, args: CreateGradeInput) -> list[TextContent]:
    return _json(services.create_grade(repo, args))


async def handle_bulk_create_grades(repo: Repository, args: BulkGradeInput) -> list[TextContent]:
    return _json(services.bulk_create_grades(repo, args))


async def handle_create_grade_config(repo: Repository, args: CreateGradeConfigInput) -> list[TextContent]:
    return _json(services.create_grade_config(repo, args))


async def handle_get_grade_report(repo: Repository, args: GradeReportInput) -> list[TextContent]:
    return _json(services.get_grade_report(repo, args))


async def handle_export_grades(repo: Repository, args: ExportGradesInput) -> list[TextContent]:
    return [TextContent(type="text", text=services.export_grades(repo, args).decode("utf-8"))]


async def handle_get_student_report(repo: Repository, args: StudentReportInput) -> list[TextContent]:
    report = services.generate_student_report(repo, args.student_id, args.academic_year, get_config().default_weights)
    return _json(report)


async def handle_create_notification(repo: Repository, args: CreateNotificationInput) -> list[TextContent]:
    return _json(services.create_notification(repo, args))


async def handle_get_notifications(repo: Repository, args: GetNotificationsInput) -> list[TextContent]:
    return _json(services.get_notifications(repo, args.parent_id))


async def handle_healthcheck(repo: Repository, args: None) -> list[TextContent]:
    info = verify_database(repo.db_path)
    return _json({"status": "ok" if info.get("exists") else "missing", **info})


# ==================== TOOL DEFINITIONS ====================


class ToolSpec(NamedTuple):
    description: str
    input_model: Optional[Type[BaseModel]]
    handler: Callable[[Repository, Any], Awaitable[list[TextContent]]]


TOOLS: Dict[str, ToolSpec] = {
    "create_user": ToolSpec("Create a user account (admin, teacher, student or parent).", CreateUserInput, handle_create_user),
    "get_users": ToolSpec("List users, optionally filtered by role.", GetUsersInput, handle_get_users),
    "create_class": ToolSpec("Create a class for grade 7, 8 or 9 in an academic year.", CreateClassInput, handle_create_class),
    "get_classes": ToolSpec("List classes, optionally by academic year and grade level.", GetClassesInput, handle_get_classes),
    "create_subject": ToolSpec("Create a subject with a unique code.", CreateSubjectInput, handle_create_subject),
    "get_subjects": ToolSpec("List all subjects.", None, handle_get_subjects),
    "create_student": ToolSpec("Link a student user to a class and optional parent.", CreateStudentInput, handle_create_student),
    "get_students": ToolSpec("List students, optionally for one class.", GetStudentsInput, handle_get_students),
    "import_students": ToolSpec(
        "Import a class roster, creating student and parent accounts.", ImportStudentsInput, handle_import_students
    ),
    "create_teacher": ToolSpec("Register a teacher user with an employee number.", CreateTeacherInput, handle_create_teacher),
    "get_teachers": ToolSpec("List all teachers.", None, handle_get_teachers),
    "create_parent": ToolSpec("Register a parent user with a phone number.", CreateParentInput, handle_create_parent),
    "create_teacher_assignment": ToolSpec(
        "Assign a teacher to a subject in a class for an academic year.",
        CreateTeacherAssignmentInput,
        handle_create_teacher_assignment,
    ),
    "create_attendance": ToolSpec(
        "Record attendance. Absences notify the student's parent.", CreateAttendanceInput, handle_create_attendance
    ),
    "bulk_create_attendance": ToolSpec(
        "Record attendance for many students; fails without writing if any student id is unknown.",
        BulkAttendanceInput,
        handle_bulk_create_attendance,
    ),
    "get_attendance_report": ToolSpec(
        "Attendance between two dates, optionally by class, student or subject.",
        AttendanceReportInput,
        handle_get_attendance_report,
    ),
    "export_attendance": ToolSpec(
        "Export attendance as CSV ('excel') or a text report ('pdf').", ExportAttendanceInput, handle_export_attendance
    ),
    "create_grade": ToolSpec("Record a grade for a student in a subject.", CreateGradeInput, handle_create_grade),
    "bulk_create_grades": ToolSpec(
        "Record many grades; fails without writing if any id is unknown.", BulkGradeInput, handle_bulk_create_grades
    ),
    "create_grade_config": ToolSpec(
        "Set daily/midterm/final weights (summing to 100) for a subject in a class.",
        CreateGradeConfigInput,
        handle_create_grade_config,
    ),
    "get_grade_report": ToolSpec(
        "Grades for an academic year, optionally by class, student or subject.", GradeReportInput, handle_get_grade_report
    ),
    "export_grades": ToolSpec(
        "Export grades as CSV ('excel') or a text report ('pdf').", ExportGradesInput, handle_export_grades
    ),
    "get_student_report": ToolSpec(
        "Attendance summary and weighted subject grades of a student for an academic year.",
        StudentReportInput,
        handle_get_student_report,
    ),
    "create_notification": ToolSpec(
        "Queue a notification for a parent about a student.", CreateNotificationInput, handle_create_notification
    ),
    "get_notifications": ToolSpec(
        "List notifications newest first, optionally for one parent.", GetNotificationsInput, handle_get_notifications
    ),
    "healthcheck": ToolSpec("Report database tables and row counts.", None, handle_healthcheck),
}

_EMPTY_SCHEMA = {"type": "object", "properties": {}, "required": []}


@app.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name=name,
            description=spec.description,
            inputSchema=spec.input_model.model_json_schema() if spec.input_model else _EMPTY_SCHEMA,
        )
        for name, spec in TOOLS.items()
    ]


def _describe_input_errors(error: InputValidationError) -> str:
    parts = []
    for item in error.errors():
        field = ".".join(str(p) for p in item["loc"]) or "arguments"
        parts.append(f"{field}: {item['msg']}")
    return "Invalid arguments: " + "; ".join(parts)


async def dispatch(repo: Repository, name: str, arguments: Optional[dict]) -> list[TextContent]:
    """Validate ``arguments`` for tool ``name`` and run its handler.

    Domain and validation errors come back as ``Error: ...`` text so the
    client sees a readable message instead of a protocol failure.
    """
    spec = TOOLS.get(name)
    if spec is None:
        return [TextContent(type="text", text=f"Unknown tool: {name}")]

    log = with_extra(logger, tool=name)
    with with_context(operation=name):
        try:
            args = spec.input_model.model_validate(arguments or {}) if spec.input_model else None
            result = await spec.handler(repo, args)
        except InputValidationError as e:
            log.warning("Tool arguments rejected", extra={"extra_data": {"errors": e.error_count()}})
            return [TextContent(type="text", text=f"Error: {_describe_input_errors(e)}")]
        except SchoolAdminError as e:
            log.warning("Tool failed", extra={"extra_data": {"error": e.message, "error_type": type(e).__name__}})
            return [TextContent(type="text", text=f"Error: {e.message}")]
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return [TextContent(type="text", text=f"Error: {str(e)}")]

    log.info("Tool completed")
    return result


@app.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Handle tool calls."""
    return await dispatch(get_repo(), name, arguments)


# ==================== MAIN ====================


async def main(repo: Optional[Repository] = None):
    """Run the MCP server over stdio, optionally against a given repository."""
    global _repo
    if repo is not None:
        _repo = repo
    async with stdio_server() as (read_stream, write_stream):
        await app.run(read_stream, write_stream, app.create_initialization_options())


if __name__ == "__main__":
    import asyncio

    asyncio.run(main())
