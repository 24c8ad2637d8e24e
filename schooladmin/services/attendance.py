"""Attendance recording with absence notifications for parents."""

from datetime import date
from typing import List, Optional

from ..database.models import (
    Attendance,
    AttendanceReportInput,
    AttendanceStatus,
    BulkAttendanceInput,
    CreateAttendanceInput,
    NotificationType,
)
from ..database.repository import Repository
from ..errors import NotFoundError, invalid_ids_error
from ..logutils import get_logger, update_context

logger = get_logger(__name__)


def absence_message(day: date, subject_id: Optional[int]) -> str:
    """Notification text for an absence on ``day``."""
    scope = "subject class" if subject_id is not None else "daily attendance"
    return f"Your child was marked absent for {scope} on {day.isoformat()}."


def create_attendance(repo: Repository, data: CreateAttendanceInput) -> Attendance:
    """Record one attendance entry.

    An absence for a student with a parent on file also queues one pending
    notification for that parent, in the same transaction.

    Raises:
        NotFoundError: If the student does not exist (nothing is written)
    """
    update_context(operation="create_attendance", student_id=data.student_id)

    with repo.transaction() as conn:
        student = repo.get_student(data.student_id, conn=conn)
        if not student:
            raise NotFoundError("Student", data.student_id)

        row = repo.create_attendance(
            data.student_id,
            data.subject_id,
            data.date,
            data.status.value,
            data.notes,
            data.recorded_by,
            conn=conn,
        )

        if data.status == AttendanceStatus.ABSENT and student["parent_id"] is not None:
            repo.create_notification(
                student["parent_id"],
                data.student_id,
                absence_message(data.date, data.subject_id),
                NotificationType.ATTENDANCE.value,
                conn=conn,
            )
            logger.info(
                "Absence notification queued",
                extra={"extra_data": {"student_id": data.student_id, "parent_id": student["parent_id"]}},
            )

    return Attendance.model_validate(row)


def bulk_create_attendance(repo: Repository, data: BulkAttendanceInput) -> List[Attendance]:
    """Record many attendance entries at once.

    All student ids are checked in one query before anything is written. If
    any are unknown the call fails naming every one of them.

    Raises:
        ValidationError: ``Invalid student IDs: ...`` when ids do not resolve
    """
    if not data.attendances:
        return []

    requested = [item.student_id for item in data.attendances]
    update_context(operation="bulk_create_attendance")

    with repo.transaction() as conn:
        found = repo.existing_ids("students", requested, conn=conn)
        missing = sorted(set(requested) - found)
        if missing:
            logger.warning("Bulk attendance rejected", extra={"extra_data": {"invalid_student_ids": missing}})
            raise invalid_ids_error("student", missing)

        rows = [
            repo.create_attendance(
                item.student_id,
                item.subject_id,
                item.date,
                item.status.value,
                item.notes,
                item.recorded_by,
                conn=conn,
            )
            for item in data.attendances
        ]

        absent = [row for row in rows if row["status"] == AttendanceStatus.ABSENT.value]
        parents = repo.parents_for_students((row["student_id"] for row in absent), conn=conn)
        for row in absent:
            parent_id = parents.get(row["student_id"])
            if parent_id is None:
                continue
            repo.create_notification(
                parent_id,
                row["student_id"],
                absence_message(date.fromisoformat(row["date"]), row["subject_id"]),
                NotificationType.ATTENDANCE.value,
                conn=conn,
            )

    logger.info(
        "Bulk attendance recorded",
        extra={"extra_data": {"rows": len(rows), "absences": len(absent)}},
    )
    return [Attendance.model_validate(row) for row in rows]


def get_attendance_report(repo: Repository, query: AttendanceReportInput) -> List[dict]:
    """Attendance rows in a date range with student, subject and recorder names."""
    return repo.query_attendance(
        query.start_date,
        query.end_date,
        class_id=query.class_id,
        student_id=query.student_id,
        subject_id=query.subject_id,
    )
