"""Service handlers: each takes a Repository and a validated input model."""

from .attendance import bulk_create_attendance, create_attendance, get_attendance_report
from .exports import export_attendance, export_grades, render_student_report
from .grades import bulk_create_grades, create_grade, create_grade_config, get_grade_report
from .imports import import_students
from .records import (
    create_class,
    create_notification,
    create_parent,
    create_student,
    create_subject,
    create_teacher,
    create_teacher_assignment,
    create_user,
    get_classes,
    get_notifications,
    get_students,
    get_subjects,
    get_teachers,
    get_users,
)
from .reports import generate_student_report

__all__ = [
    "bulk_create_attendance",
    "bulk_create_grades",
    "create_attendance",
    "create_class",
    "create_grade",
    "create_grade_config",
    "create_notification",
    "create_parent",
    "create_student",
    "create_subject",
    "create_teacher",
    "create_teacher_assignment",
    "create_user",
    "export_attendance",
    "export_grades",
    "generate_student_report",
    "get_attendance_report",
    "get_classes",
    "get_grade_report",
    "get_notifications",
    "get_students",
    "get_subjects",
    "get_teachers",
    "get_users",
    "import_students",
    "render_student_report",
]
