"""Attendance and grade exports, plus a plain-text student report.

``excel`` exports are UTF-8 CSV that spreadsheet programs open directly;
``pdf`` exports are a plain-text report document.
"""

import csv
import io
from collections import Counter, OrderedDict
from decimal import Decimal
from typing import Dict, List

from ..database.models import (
    AcademicYear,
    AttendanceStatus,
    ExportAttendanceInput,
    ExportFormat,
    ExportGradesInput,
    StudentReport,
)
from ..database.repository import Repository
from ..logutils import get_logger
from .reports import round_half_up

logger = get_logger(__name__)

ATTENDANCE_COLUMNS = [
    "date",
    "student_number",
    "student_name",
    "class_name",
    "subject",
    "status",
    "notes",
    "recorded_by",
]

GRADE_COLUMNS = [
    "date_recorded",
    "student_number",
    "student_name",
    "class_name",
    "subject",
    "assignment_type",
    "assignment_name",
    "score",
    "max_score",
    "percentage",
    "weight",
    "recorded_by",
]

_RULE = "=" * 60


def _percentage(row: Dict) -> Decimal:
    return round_half_up(Decimal(row["score"]) / Decimal(row["max_score"]) * 100)


def _to_csv(columns: List[str], rows: List[Dict]) -> bytes:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=columns, quoting=csv.QUOTE_MINIMAL)
    writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue().encode("utf-8")


def _attendance_record(row: Dict) -> Dict:
    return {
        "date": row["date"],
        "student_number": row["student_number"],
        "student_name": row["student_name"],
        "class_name": row["class_name"],
        "subject": row["subject_name"] or "Daily",
        "status": row["status"],
        "notes": row["notes"] or "",
        "recorded_by": row["recorder_name"] or "Unknown",
    }


def _grade_record(row: Dict) -> Dict:
    return {
        "date_recorded": row["date_recorded"],
        "student_number": row["student_number"],
        "student_name": row["student_name"],
        "class_name": row["class_name"],
        "subject": row["subject_name"],
        "assignment_type": row["assignment_type"],
        "assignment_name": row["assignment_name"],
        "score": row["score"],
        "max_score": row["max_score"],
        "percentage": str(_percentage(row)),
        "weight": row["weight"],
        "recorded_by": row["recorder_name"] or "Unknown",
    }


def export_attendance(repo: Repository, query: ExportAttendanceInput) -> bytes:
    """Export attendance for a date range.

    Args:
        repo: Record store
        query: Date range, optional class/student/subject filters and format

    Returns:
        UTF-8 encoded CSV or plain-text report
    """
    rows = repo.query_attendance(
        query.start_date,
        query.end_date,
        class_id=query.class_id,
        student_id=query.student_id,
        subject_id=query.subject_id,
    )
    records = [_attendance_record(row) for row in rows]
    logger.info(
        "Attendance exported",
        extra={"extra_data": {"format": query.format.value, "rows": len(records)}},
    )

    if query.format == ExportFormat.EXCEL:
        return _to_csv(ATTENDANCE_COLUMNS, records)

    statuses = Counter(r["status"] for r in records)
    lines = [
        "ATTENDANCE REPORT",
        _RULE,
        f"Period: {query.start_date.isoformat()} to {query.end_date.isoformat()}",
        f"Total records: {len(records)}",
        "",
        "Summary:",
    ]
    lines.extend(f"  {status.value.capitalize()}: {statuses.get(status.value, 0)}" for status in AttendanceStatus)
    lines.extend(["", "Details:"])
    for r in records:
        line = f"  {r['date']}  {r['student_number']}  {r['student_name']}  {r['subject']}  {r['status']}"
        if r["notes"]:
            line += f"  ({r['notes']})"
        lines.append(line)
    return ("\n".join(lines) + "\n").encode("utf-8")


def export_grades(repo: Repository, query: ExportGradesInput) -> bytes:
    """Export grades recorded in the academic year's starting calendar year.

    Returns:
        UTF-8 encoded CSV or plain-text report grouped by student
    """
    year = AcademicYear.parse(query.academic_year)
    rows = repo.query_grades(
        year.start_year,
        class_id=query.class_id,
        student_id=query.student_id,
        subject_id=query.subject_id,
    )
    records = [_grade_record(row) for row in rows]
    logger.info(
        "Grades exported",
        extra={"extra_data": {"format": query.format.value, "rows": len(records), "academic_year": str(year)}},
    )

    if query.format == ExportFormat.EXCEL:
        return _to_csv(GRADE_COLUMNS, records)

    by_student: "OrderedDict[str, List[Dict]]" = OrderedDict()
    for r in records:
        by_student.setdefault(f"{r['student_name']} ({r['student_number']})", []).append(r)

    lines = [
        "GRADE REPORT",
        _RULE,
        f"Academic year: {year}",
        f"Total records: {len(records)}",
    ]
    for student, items in by_student.items():
        lines.extend(["", student])
        for r in items:
            lines.append(
                f"  {r['subject']}  {r['assignment_type']}  {r['assignment_name']}  "
                f"{r['score']}/{r['max_score']}  ({r['percentage']}%)"
            )
    return ("\n".join(lines) + "\n").encode("utf-8")


def render_student_report(report: StudentReport) -> str:
    """Plain-text rendering of a student report."""
    s = report.student
    a = report.attendance
    lines = [
        "STUDENT REPORT",
        _RULE,
        f"Name: {s.name}",
        f"Student number: {s.student_number}",
        f"Class: {s.class_name}",
        f"Academic year: {report.academic_year}",
        "",
        "Attendance:",
        f"  Total days: {a.total_days}",
        f"  Present: {a.present}  Absent: {a.absent}  Late: {a.late}  Excused: {a.excused}",
        f"  Attendance: {a.attendance_percentage}%",
        "",
        "Grades:",
    ]
    if not report.grades:
        lines.append("  No grades recorded")
    for g in report.grades:
        lines.append(
            f"  {g.subject_name} ({g.subject_code}): daily {g.daily_average}, "
            f"midterm {g.midterm_average}, final {g.final_average} -> {g.weighted_final_grade}"
        )
    lines.extend(["", f"Overall average: {report.overall_grade_average}"])
    return "\n".join(lines) + "\n"
