"""Student report: attendance tallies and weighted subject grades for one academic year.

Records count towards an academic year when they are dated in its starting
calendar year (2024/2025 covers dates in 2024). All arithmetic is done in
``Decimal`` and rounded half-up, so 86.425 becomes 86.43.

Per subject, grades are split into daily, midterm and final buckets. Each
bucket average is the mean of ``score / max_score * 100`` rounded to two
places, and the weighted final grade combines the three averages with the
subject's grade config for the student's class (or the default weights).
"""

from collections import OrderedDict
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Union

from ..database.models import (
    DEFAULT_WEIGHTS,
    AcademicYear,
    AssignmentType,
    Attendance,
    AttendanceStatus,
    AttendanceSummary,
    Grade,
    GradeConfig,
    StudentReport,
    StudentSnapshot,
    SubjectGradeSummary,
    WeightScheme,
)
from ..database.repository import Repository
from ..errors import NotFoundError
from ..logutils import get_logger, update_context

logger = get_logger(__name__)

_HUNDRED = Decimal("100")
_ZERO = Decimal("0")


def round_half_up(value: Decimal, places: int = 2) -> Decimal:
    """Round ``value`` to ``places`` decimals, halves away from zero."""
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def category_average(grades: Iterable[Grade]) -> Decimal:
    """Mean percentage of the given grades, rounded to two places; 0 when empty."""
    percentages = [g.score / g.max_score * _HUNDRED for g in grades]
    if not percentages:
        return round_half_up(_ZERO)
    return round_half_up(sum(percentages, _ZERO) / len(percentages))


def resolve_weights(
    configs: Sequence[GradeConfig], subject_id: int, default: WeightScheme = DEFAULT_WEIGHTS
) -> WeightScheme:
    """Weights of the lowest-id config for ``subject_id``, else ``default``.

    ``configs`` is expected to be scoped to one class and academic year.
    """
    matches = [c for c in configs if c.subject_id == subject_id]
    if not matches:
        return default
    return min(matches, key=lambda c: c.id).weights()


def weighted_grade(daily: Decimal, midterm: Decimal, final: Decimal, weights: WeightScheme) -> Decimal:
    return round_half_up(daily * weights.daily + midterm * weights.midterm + final * weights.final)


def overall_average(subject_grades: Sequence[Decimal]) -> Decimal:
    if not subject_grades:
        return round_half_up(_ZERO)
    return round_half_up(sum(subject_grades, _ZERO) / len(subject_grades))


def summarize_attendance(entries: Iterable[Attendance]) -> AttendanceSummary:
    """Count entries per status; the percentage is present over total, as a whole number."""
    counts: Dict[AttendanceStatus, int] = {status: 0 for status in AttendanceStatus}
    total = 0
    for entry in entries:
        counts[entry.status] += 1
        total += 1

    percentage = 0
    if total:
        percentage = int(round_half_up(Decimal(counts[AttendanceStatus.PRESENT]) / total * _HUNDRED, 0))

    return AttendanceSummary(
        total_days=total,
        present=counts[AttendanceStatus.PRESENT],
        absent=counts[AttendanceStatus.ABSENT],
        late=counts[AttendanceStatus.LATE],
        excused=counts[AttendanceStatus.EXCUSED],
        attendance_percentage=percentage,
    )


def summarize_subject(
    subject_id: int,
    subject_name: str,
    subject_code: str,
    grades: Sequence[Grade],
    weights: WeightScheme,
) -> SubjectGradeSummary:
    buckets: Dict[AssignmentType, List[Grade]] = {
        AssignmentType.DAILY: [],
        AssignmentType.MIDTERM: [],
        AssignmentType.FINAL: [],
    }
    for grade in grades:
        bucket = buckets.get(grade.category)
        if bucket is not None:
            bucket.append(grade)

    daily = category_average(buckets[AssignmentType.DAILY])
    midterm = category_average(buckets[AssignmentType.MIDTERM])
    final = category_average(buckets[AssignmentType.FINAL])

    return SubjectGradeSummary(
        subject_id=subject_id,
        subject_name=subject_name,
        subject_code=subject_code,
        daily_average=daily,
        midterm_average=midterm,
        final_average=final,
        weighted_final_grade=weighted_grade(daily, midterm, final, weights),
    )


def generate_student_report(
    repo: Repository,
    student_id: int,
    academic_year: Union[str, AcademicYear],
    default_weights: Optional[WeightScheme] = None,
) -> StudentReport:
    """Build the attendance and grade report of one student for one academic year.

    Args:
        repo: Record store
        student_id: Student to report on
        academic_year: ``"2024/2025"`` or a parsed AcademicYear
        default_weights: Weights for subjects without a grade config
            (defaults to 40/30/30)

    Returns:
        StudentReport; nothing is written

    Raises:
        NotFoundError: If the student does not exist
        ValidationError: If ``academic_year`` is malformed
    """
    year = AcademicYear.parse(academic_year)
    weights_fallback = default_weights or DEFAULT_WEIGHTS
    update_context(operation="generate_student_report", student_id=student_id, academic_year=str(year))

    student_row = repo.find_student_with_class_and_user(student_id)
    if not student_row:
        raise NotFoundError("Student", student_id)
    student = StudentSnapshot.model_validate(student_row)

    attendance = summarize_attendance(
        Attendance.model_validate(row) for row in repo.list_attendance(student_id, year.start_year)
    )

    by_subject: "OrderedDict[int, List[Grade]]" = OrderedDict()
    subject_labels: Dict[int, tuple] = {}
    for row in repo.list_grades_with_subjects(student_id, year.start_year):
        grade = Grade.model_validate(row)
        by_subject.setdefault(grade.subject_id, []).append(grade)
        subject_labels.setdefault(grade.subject_id, (row["subject_name"], row["subject_code"]))

    configs = [GradeConfig.model_validate(row) for row in repo.list_grade_configs(student.class_id, str(year))]

    subjects = []
    for subject_id, grades in by_subject.items():
        name, code = subject_labels[subject_id]
        weights = resolve_weights(configs, subject_id, weights_fallback)
        subjects.append(summarize_subject(subject_id, name, code, grades, weights))

    report = StudentReport(
        student=student,
        academic_year=str(year),
        attendance=attendance,
        grades=subjects,
        overall_grade_average=overall_average([s.weighted_final_grade for s in subjects]),
    )

    logger.info(
        "Student report generated",
        extra={
            "extra_data": {
                "student_id": student_id,
                "academic_year": str(year),
                "subjects": len(subjects),
                "attendance_rows": attendance.total_days,
            }
        },
    )
    return report
