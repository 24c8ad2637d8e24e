"""Grade recording and per-class grade weighting."""

from typing import List

from ..database.models import (
    AcademicYear,
    BulkGradeInput,
    CreateGradeConfigInput,
    CreateGradeInput,
    Grade,
    GradeConfig,
    GradeReportInput,
)
from ..database.repository import Repository
from ..errors import NotFoundError, ValidationError, invalid_ids_error
from ..logutils import get_logger, update_context

logger = get_logger(__name__)


def create_grade(repo: Repository, data: CreateGradeInput) -> Grade:
    """Record one grade.

    Raises:
        NotFoundError: For the first of student, subject or recording user that is missing
    """
    update_context(operation="create_grade", student_id=data.student_id)

    if not repo.get_student(data.student_id):
        raise NotFoundError("Student", data.student_id)
    if not repo.get_subject(data.subject_id):
        raise NotFoundError("Subject", data.subject_id)
    if not repo.get_user(data.recorded_by):
        raise NotFoundError("User", data.recorded_by)

    row = repo.create_grade(
        data.student_id,
        data.subject_id,
        data.assignment_type,
        data.assignment_name,
        data.score,
        data.max_score,
        data.weight,
        data.date_recorded,
        data.recorded_by,
    )
    return Grade.model_validate(row)


def bulk_create_grades(repo: Repository, data: BulkGradeInput) -> List[Grade]:
    """Record many grades in one transaction.

    Student, subject and recording-user ids are checked up front with one
    query per table. Any unknown id fails the whole batch before a row is
    written.

    Raises:
        ValidationError: Naming every unknown id of the first table with misses
    """
    if not data.grades:
        return []

    update_context(operation="bulk_create_grades")

    with repo.transaction() as conn:
        for table, label, ids in (
            ("students", "student", [g.student_id for g in data.grades]),
            ("subjects", "subject", [g.subject_id for g in data.grades]),
            ("users", "user", [g.recorded_by for g in data.grades]),
        ):
            missing = sorted(set(ids) - repo.existing_ids(table, ids, conn=conn))
            if missing:
                logger.warning("Bulk grades rejected", extra={"extra_data": {"table": table, "invalid_ids": missing}})
                raise invalid_ids_error(label, missing)

        rows = [
            repo.create_grade(
                g.student_id,
                g.subject_id,
                g.assignment_type,
                g.assignment_name,
                g.score,
                g.max_score,
                g.weight,
                g.date_recorded,
                g.recorded_by,
                conn=conn,
            )
            for g in data.grades
        ]

    logger.info("Bulk grades recorded", extra={"extra_data": {"rows": len(rows)}})
    return [Grade.model_validate(row) for row in rows]


def create_grade_config(repo: Repository, data: CreateGradeConfigInput) -> GradeConfig:
    """Store the daily/midterm/final weighting for a subject in a class.

    Raises:
        NotFoundError: If the subject or class does not exist
        ValidationError: If the weights do not add up to exactly 100
    """
    if not repo.get_subject(data.subject_id):
        raise NotFoundError("Subject", data.subject_id)
    if not repo.get_class(data.class_id):
        raise NotFoundError("Class", data.class_id)

    total = data.daily_weight + data.midterm_weight + data.final_weight
    if total != 100:
        raise ValidationError(f"Grade weights must add up to 100%. Current total: {total}%")

    row = repo.create_grade_config(
        data.subject_id,
        data.class_id,
        data.daily_weight,
        data.midterm_weight,
        data.final_weight,
        data.academic_year,
    )
    logger.info(
        "Grade config created",
        extra={"extra_data": {"subject_id": data.subject_id, "class_id": data.class_id, "academic_year": data.academic_year}},
    )
    return GradeConfig.model_validate(row)


def get_grade_report(repo: Repository, query: GradeReportInput) -> List[dict]:
    """Grades in the academic year's starting calendar year, with names attached."""
    year = AcademicYear.parse(query.academic_year)
    return repo.query_grades(
        year.start_year,
        class_id=query.class_id,
        student_id=query.student_id,
        subject_id=query.subject_id,
    )
