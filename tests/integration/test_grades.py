"""Integration tests for grade recording and grade configs."""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from schooladmin.database.models import BulkGradeInput, CreateClassInput, CreateGradeConfigInput, GradeReportInput
from schooladmin.errors import NotFoundError, ValidationError
from schooladmin.services import grades, records

pytestmark = pytest.mark.integration


class TestCreateGrade:
    def test_decimals_round_trip_exactly(self, repo, grade_input):
        grade = grades.create_grade(
            repo, grade_input(score=Decimal("87.33"), max_score=Decimal("90.5"), weight=Decimal("7.25"))
        )

        assert grade.score == Decimal("87.33")
        assert grade.max_score == Decimal("90.5")
        assert grade.weight == Decimal("7.25")

        (stored,) = grades.get_grade_report(repo, GradeReportInput(academic_year="2024/2025"))
        assert Decimal(stored["score"]) == Decimal("87.33")
        assert Decimal(stored["max_score"]) == Decimal("90.5")
        assert Decimal(stored["weight"]) == Decimal("7.25")

    def test_float_input_keeps_decimal_text(self, repo, grade_input):
        grade = grades.create_grade(repo, grade_input(score=87.33))
        assert grade.score == Decimal("87.33")

    @pytest.mark.parametrize(
        "field, entity",
        [("student_id", "Student"), ("subject_id", "Subject"), ("recorded_by", "User")],
    )
    def test_each_missing_reference_has_its_own_error(self, repo, grade_input, field, entity):
        with pytest.raises(NotFoundError) as exc_info:
            grades.create_grade(repo, grade_input(**{field: 5555}))
        assert exc_info.value.entity == entity
        assert exc_info.value.entity_id == 5555


class TestBulkCreateGrades:
    def test_empty_list(self, repo):
        assert grades.bulk_create_grades(repo, BulkGradeInput(grades=[])) == []

    def test_inserts_all(self, repo, school, grade_input):
        created = grades.bulk_create_grades(
            repo,
            BulkGradeInput(
                grades=[
                    grade_input(),
                    grade_input(assignment_type="midterm", assignment_name="UTS", score=Decimal("88")),
                    grade_input(subject_id=school["english_id"], score=Decimal("80")),
                ]
            ),
        )
        assert len(created) == 3
        assert len(grades.get_grade_report(repo, GradeReportInput(academic_year="2024/2025"))) == 3

    def test_unknown_subject_rejects_whole_batch(self, repo, grade_input):
        with pytest.raises(ValidationError, match="Invalid subject IDs: 404"):
            grades.bulk_create_grades(repo, BulkGradeInput(grades=[grade_input(), grade_input(subject_id=404)]))
        assert grades.get_grade_report(repo, GradeReportInput(academic_year="2024/2025")) == []

    def test_unknown_students_named_together(self, repo, grade_input):
        with pytest.raises(ValidationError, match="Invalid student IDs: 7, 8"):
            grades.bulk_create_grades(
                repo, BulkGradeInput(grades=[grade_input(student_id=8), grade_input(student_id=7)])
            )


class TestGradeConfig:
    def _config(self, school, daily, midterm, final, **kw):
        data = {
            "subject_id": school["math_id"],
            "class_id": school["class_id"],
            "daily_weight": daily,
            "midterm_weight": midterm,
            "final_weight": final,
            "academic_year": "2024/2025",
        }
        data.update(kw)
        return CreateGradeConfigInput(**data)

    @pytest.mark.parametrize("weights,total", [((40, 30, 20), "90"), ((50, 40, 30), "120")])
    def test_weights_must_total_100(self, repo, school, weights, total):
        with pytest.raises(ValidationError) as exc_info:
            grades.create_grade_config(repo, self._config(school, *weights))
        assert exc_info.value.message == f"Grade weights must add up to 100%. Current total: {total}%"
        assert repo.list_grade_configs(school["class_id"], "2024/2025") == []

    def test_non_consecutive_year_rejected_before_write(self, repo, school):
        with pytest.raises(PydanticValidationError):
            self._config(school, 40, 30, 30, academic_year="2024/2026")
        with pytest.raises(PydanticValidationError):
            records.create_class(repo, CreateClassInput(name="7Z", grade_level=7, academic_year="2024/2026"))
        assert [c.name for c in records.get_classes(repo)] == ["7A"]

    def test_decimal_weights_accepted(self, repo, school):
        config = grades.create_grade_config(
            repo, self._config(school, Decimal("33.33"), Decimal("33.33"), Decimal("33.34"))
        )
        assert config.daily_weight == Decimal("33.33")
        assert config.weights().final == Decimal("0.3334")

    def test_missing_subject_then_class(self, repo, school):
        with pytest.raises(NotFoundError) as exc_info:
            grades.create_grade_config(repo, self._config(school, 40, 30, 30, subject_id=999))
        assert exc_info.value.entity == "Subject"

        with pytest.raises(NotFoundError) as exc_info:
            grades.create_grade_config(repo, self._config(school, 40, 30, 30, class_id=999))
        assert exc_info.value.entity == "Class"

    def test_duplicate_configs_may_coexist(self, repo, school):
        first = grades.create_grade_config(repo, self._config(school, 40, 30, 30))
        second = grades.create_grade_config(repo, self._config(school, 20, 30, 50))
        assert first.id < second.id
        assert len(repo.list_grade_configs(school["class_id"], "2024/2025")) == 2


class TestGradeReport:
    def test_scoped_to_starting_calendar_year(self, repo, grade_input):
        grades.create_grade(repo, grade_input(date_recorded=date(2023, 11, 1)))
        grades.create_grade(repo, grade_input(date_recorded=date(2024, 3, 1)))
        grades.create_grade(repo, grade_input(date_recorded=date(2025, 3, 1)))

        rows = grades.get_grade_report(repo, GradeReportInput(academic_year="2024/2025"))
        assert [r["date_recorded"] for r in rows] == ["2024-03-01"]
        assert rows[0]["subject_code"] == "MATH"

    def test_malformed_academic_year(self, repo):
        with pytest.raises(PydanticValidationError, match="consecutive"):
            GradeReportInput(academic_year="2024/2026")
