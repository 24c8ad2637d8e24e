"""Tests for the report arithmetic helpers."""

from datetime import date
from decimal import Decimal

import pytest

from schooladmin.database.models import (
    DEFAULT_WEIGHTS,
    Attendance,
    AttendanceStatus,
    Grade,
    GradeConfig,
    WeightScheme,
)
from schooladmin.services.reports import (
    category_average,
    overall_average,
    resolve_weights,
    round_half_up,
    summarize_attendance,
    summarize_subject,
    weighted_grade,
)

pytestmark = pytest.mark.unit


def _grade(score, max_score="100", kind="daily", grade_id=1):
    return Grade(
        id=grade_id,
        student_id=1,
        subject_id=1,
        assignment_type=kind,
        assignment_name=f"{kind} {grade_id}",
        score=Decimal(score),
        max_score=Decimal(max_score),
        weight=Decimal("10"),
        date_recorded=date(2024, 9, 2),
        recorded_by=1,
    )


def _attendance(status):
    return Attendance(id=1, student_id=1, date=date(2024, 9, 2), status=status, recorded_by=1)


def _config(config_id, subject_id, daily, midterm, final):
    return GradeConfig(
        id=config_id,
        subject_id=subject_id,
        class_id=1,
        daily_weight=Decimal(daily),
        midterm_weight=Decimal(midterm),
        final_weight=Decimal(final),
        academic_year="2024/2025",
    )


class TestRoundHalfUp:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("86.425", "86.43"),
            ("86.424", "86.42"),
            ("0.005", "0.01"),
            ("89", "89.00"),
        ],
    )
    def test_two_places(self, value, expected):
        assert round_half_up(Decimal(value)) == Decimal(expected)
        assert str(round_half_up(Decimal(value))) == expected

    def test_whole_number(self):
        assert round_half_up(Decimal("66.5"), 0) == Decimal("67")


class TestCategoryAverage:
    def test_empty_is_zero(self):
        assert category_average([]) == Decimal("0.00")

    def test_mean_of_percentages(self):
        # 80% and 45/50 = 90%
        assert category_average([_grade("80"), _grade("45", "50")]) == Decimal("85.00")

    def test_mixed_max_scores_are_normalized_first(self):
        # 87.33/90.5 = 96.497...%, 90.5/95 = 95.263...%
        grades = [_grade("87.33", "90.5", grade_id=1), _grade("90.5", "95", grade_id=2)]
        assert category_average(grades) == Decimal("95.88")

    def test_repeating_fraction_rounds(self):
        # (100 + 100 + 35) / 3 = 78.333...
        grades = [_grade("100"), _grade("100"), _grade("35")]
        assert category_average(grades) == Decimal("78.33")


class TestWeights:
    def test_from_percentages(self):
        scheme = WeightScheme.from_percentages(50, "25", 25.0)
        assert scheme == WeightScheme(daily=Decimal("0.5"), midterm=Decimal("0.25"), final=Decimal("0.25"))

    def test_default_when_no_config(self):
        assert resolve_weights([], subject_id=1) is DEFAULT_WEIGHTS

    def test_injected_default(self):
        custom = WeightScheme.from_percentages(20, 40, 40)
        assert resolve_weights([_config(1, 2, 50, 25, 25)], subject_id=1, default=custom) is custom

    def test_lowest_id_wins(self):
        configs = [_config(7, 1, 20, 40, 40), _config(3, 1, 50, 25, 25)]
        assert resolve_weights(configs, subject_id=1).daily == Decimal("0.5")

    def test_weighted_grade(self):
        result = weighted_grade(Decimal("85.00"), Decimal("90.00"), Decimal("80.00"), DEFAULT_WEIGHTS)
        assert result == Decimal("85.00")


class TestOverallAverage:
    def test_empty(self):
        assert overall_average([]) == Decimal("0.00")

    def test_half_up(self):
        assert overall_average([Decimal("89.00"), Decimal("83.85")]) == Decimal("86.43")


class TestSummarizeAttendance:
    def test_empty(self):
        summary = summarize_attendance([])
        assert summary.total_days == 0
        assert summary.attendance_percentage == 0

    def test_counts_and_percentage(self):
        statuses = [
            AttendanceStatus.PRESENT,
            AttendanceStatus.PRESENT,
            AttendanceStatus.ABSENT,
            AttendanceStatus.LATE,
            AttendanceStatus.EXCUSED,
        ]
        summary = summarize_attendance(_attendance(s) for s in statuses)
        assert (summary.present, summary.absent, summary.late, summary.excused) == (2, 1, 1, 1)
        assert summary.total_days == 5
        assert summary.attendance_percentage == 40

    def test_percentage_rounds_half_up(self):
        # 2 of 3 present = 66.67%
        statuses = [AttendanceStatus.PRESENT, AttendanceStatus.PRESENT, AttendanceStatus.LATE]
        assert summarize_attendance(_attendance(s) for s in statuses).attendance_percentage == 67


class TestSummarizeSubject:
    def test_other_types_are_ignored(self):
        grades = [
            _grade("80", kind="daily", grade_id=1),
            _grade("10", kind="project", grade_id=2),
            _grade("90", kind="midterm", grade_id=3),
            _grade("70", kind="final", grade_id=4),
        ]
        summary = summarize_subject(1, "Mathematics", "MATH", grades, DEFAULT_WEIGHTS)
        assert summary.daily_average == Decimal("80.00")
        assert summary.midterm_average == Decimal("90.00")
        assert summary.final_average == Decimal("70.00")
        # 32 + 27 + 21
        assert summary.weighted_final_grade == Decimal("80.00")

    def test_missing_category_counts_as_zero(self):
        summary = summarize_subject(1, "English", "ENG", [_grade("90")], DEFAULT_WEIGHTS)
        assert summary.midterm_average == Decimal("0.00")
        assert summary.weighted_final_grade == Decimal("36.00")
