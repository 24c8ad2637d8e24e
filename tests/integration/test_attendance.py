"""Integration tests for attendance recording and absence notifications."""

from datetime import date

import pytest

from schooladmin.database.models import (
    AttendanceReportInput,
    AttendanceStatus,
    BulkAttendanceInput,
    CreateAttendanceInput,
    NotificationStatus,
)
from schooladmin.errors import NotFoundError, ValidationError
from schooladmin.services import attendance, records

pytestmark = pytest.mark.integration


def _entry(school, student_key="student_id", status=AttendanceStatus.PRESENT, day=date(2024, 1, 15), **kw):
    return CreateAttendanceInput(
        student_id=school[student_key] if isinstance(student_key, str) else student_key,
        date=day,
        status=status,
        recorded_by=school["teacher_user_id"],
        **kw,
    )


class TestCreateAttendance:
    def test_absent_with_parent_queues_one_notification(self, repo, school):
        entry = attendance.create_attendance(repo, _entry(school, status=AttendanceStatus.ABSENT))

        assert entry.status == AttendanceStatus.ABSENT
        notes = records.get_notifications(repo, school["parent_id"])
        assert len(notes) == 1
        assert notes[0].status == NotificationStatus.PENDING
        assert notes[0].type == "attendance"
        assert notes[0].student_id == school["student_id"]
        assert "2024-01-15" in notes[0].message
        assert "daily attendance" in notes[0].message

    def test_subject_absence_mentions_subject_class(self, repo, school):
        attendance.create_attendance(
            repo, _entry(school, status=AttendanceStatus.ABSENT, subject_id=school["math_id"])
        )
        (note,) = records.get_notifications(repo)
        assert note.message == "Your child was marked absent for subject class on 2024-01-15."

    def test_present_creates_no_notification(self, repo, school):
        attendance.create_attendance(repo, _entry(school, status=AttendanceStatus.PRESENT))
        assert records.get_notifications(repo) == []

    def test_absent_without_parent_creates_no_notification(self, repo, school):
        attendance.create_attendance(repo, _entry(school, "orphan_id", status=AttendanceStatus.ABSENT))
        assert records.get_notifications(repo) == []

    def test_unknown_student_writes_nothing(self, repo, school):
        with pytest.raises(NotFoundError) as exc_info:
            attendance.create_attendance(repo, _entry(school, 9999, status=AttendanceStatus.ABSENT))

        assert exc_info.value.entity == "Student"
        assert "9999" in exc_info.value.message
        report = attendance.get_attendance_report(
            repo, AttendanceReportInput(start_date=date(2024, 1, 1), end_date=date(2024, 12, 31))
        )
        assert report == []
        assert records.get_notifications(repo) == []


class TestBulkCreateAttendance:
    def test_inserts_all_and_notifies_per_absence(self, repo, school):
        rows = attendance.bulk_create_attendance(
            repo,
            BulkAttendanceInput(
                attendances=[
                    _entry(school, status=AttendanceStatus.ABSENT),
                    _entry(school, "orphan_id", status=AttendanceStatus.ABSENT),
                    _entry(school, status=AttendanceStatus.ABSENT, day=date(2024, 1, 16)),
                    _entry(school, "orphan_id", status=AttendanceStatus.LATE, day=date(2024, 1, 16)),
                ]
            ),
        )

        assert len(rows) == 4
        assert all(row.id for row in rows)
        notes = records.get_notifications(repo, school["parent_id"])
        assert len(notes) == 2
        assert {n.student_id for n in notes} == {school["student_id"]}

    def test_invalid_id_rejects_whole_batch(self, repo, school):
        with pytest.raises(ValidationError) as exc_info:
            attendance.bulk_create_attendance(
                repo,
                BulkAttendanceInput(
                    attendances=[
                        _entry(school, status=AttendanceStatus.ABSENT),
                        _entry(school, 424242),
                    ]
                ),
            )

        assert exc_info.value.message == "Invalid student IDs: 424242"
        report = attendance.get_attendance_report(
            repo, AttendanceReportInput(start_date=date(2024, 1, 1), end_date=date(2024, 12, 31))
        )
        assert report == []
        assert records.get_notifications(repo) == []

    def test_error_names_every_invalid_id(self, repo, school):
        with pytest.raises(ValidationError, match="Invalid student IDs: 77, 88"):
            attendance.bulk_create_attendance(
                repo, BulkAttendanceInput(attendances=[_entry(school, 88), _entry(school, 77)])
            )

    def test_empty_batch(self, repo, school):
        assert attendance.bulk_create_attendance(repo, BulkAttendanceInput(attendances=[])) == []


class TestAttendanceReport:
    def test_date_range_and_student_filter(self, repo, school):
        attendance.create_attendance(repo, _entry(school, day=date(2024, 1, 10)))
        attendance.create_attendance(repo, _entry(school, day=date(2024, 2, 10)))
        attendance.create_attendance(repo, _entry(school, "orphan_id", day=date(2024, 1, 12)))

        rows = attendance.get_attendance_report(
            repo,
            AttendanceReportInput(
                start_date=date(2024, 1, 1), end_date=date(2024, 1, 31), student_id=school["student_id"]
            ),
        )
        assert [r["date"] for r in rows] == ["2024-01-10"]
        assert rows[0]["student_name"] == "Ani"
        assert rows[0]["recorder_name"] == "Bu Sari"

    def test_end_date_is_inclusive(self, repo, school):
        attendance.create_attendance(repo, _entry(school, day=date(2024, 1, 31)))
        rows = attendance.get_attendance_report(
            repo, AttendanceReportInput(start_date=date(2024, 1, 1), end_date=date(2024, 1, 31))
        )
        assert len(rows) == 1
