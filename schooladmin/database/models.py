"""Pydantic models for school records, handler inputs and derived reports."""

import re
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, List, Optional, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator

from ..errors import ValidationError

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
ACADEMIC_YEAR_PATTERN = r"^\d{4}/\d{4}$"

_ACADEMIC_YEAR_RE = re.compile(r"^(\d{4})/(\d{4})$")
_HUNDRED = Decimal("100")


def _float_to_decimal(value: Any) -> Any:
    # JSON numbers arrive as floats; go through str so 87.33 stays 87.33
    if isinstance(value, float):
        return Decimal(str(value))
    return value


# ==================== ENUMS ====================


class UserRole(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"
    PARENT = "parent"


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EXCUSED = "excused"


class NotificationStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class NotificationType(str, Enum):
    ATTENDANCE = "attendance"
    GRADE = "grade"
    GENERAL = "general"


class ExportFormat(str, Enum):
    EXCEL = "excel"
    PDF = "pdf"


class AssignmentType(str, Enum):
    """Grading category of a grade entry.

    Grades store the category as free text; only daily, midterm and final
    take part in weighting. Everything else classifies as OTHER and is left
    out of the averages.
    """

    DAILY = "daily"
    MIDTERM = "midterm"
    FINAL = "final"
    OTHER = "other"

    @classmethod
    def classify(cls, raw: str) -> "AssignmentType":
        if raw in (cls.DAILY.value, cls.MIDTERM.value, cls.FINAL.value):
            return cls(raw)
        return cls.OTHER


# ==================== VALUE TYPES ====================


class AcademicYear(BaseModel):
    """A school year such as 2024/2025.

    Report scoping only looks at ``start_year``: records dated in that
    calendar year belong to the academic year.
    """

    model_config = ConfigDict(frozen=True)

    start_year: int
    end_year: int

    @classmethod
    def parse(cls, value: Union[str, "AcademicYear"]) -> "AcademicYear":
        """Parse ``"YYYY/YYYY"``.

        Raises:
            ValidationError: If the text is malformed or the years are not consecutive
        """
        if isinstance(value, AcademicYear):
            return value
        match = _ACADEMIC_YEAR_RE.match(value.strip()) if isinstance(value, str) else None
        if not match:
            raise ValidationError(f"Academic year must look like 2024/2025, got {value!r}")
        start, end = int(match.group(1)), int(match.group(2))
        if end != start + 1:
            raise ValidationError(f"Academic year {value!r} must span two consecutive years")
        return cls(start_year=start, end_year=end)

    def __str__(self) -> str:
        return f"{self.start_year}/{self.end_year}"


def _valid_academic_year(value: str) -> str:
    try:
        return str(AcademicYear.parse(value))
    except ValidationError as e:
        raise ValueError(e.message) from e


# Academic year as accepted by every input model: shape first, then consecutive years
AcademicYearText = Annotated[str, Field(pattern=ACADEMIC_YEAR_PATTERN), AfterValidator(_valid_academic_year)]


class WeightScheme(BaseModel):
    """Category weights as fractions of one (0.4 rather than 40)."""

    model_config = ConfigDict(frozen=True)

    daily: Decimal
    midterm: Decimal
    final: Decimal

    @classmethod
    def from_percentages(cls, daily: Any, midterm: Any, final: Any) -> "WeightScheme":
        return cls(
            daily=Decimal(str(daily)) / _HUNDRED,
            midterm=Decimal(str(midterm)) / _HUNDRED,
            final=Decimal(str(final)) / _HUNDRED,
        )


DEFAULT_WEIGHTS = WeightScheme(daily=Decimal("0.4"), midterm=Decimal("0.3"), final=Decimal("0.3"))


# ==================== RECORDS ====================


class User(BaseModel):
    id: int
    email: str
    password: str  # salted hash, never the plain text
    name: str
    role: UserRole
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SchoolClass(BaseModel):
    id: int
    name: str
    grade_level: int
    academic_year: str
    created_at: Optional[datetime] = None


class Subject(BaseModel):
    id: int
    name: str
    code: str
    created_at: Optional[datetime] = None


class Student(BaseModel):
    id: int
    user_id: int
    student_number: str
    class_id: int
    parent_id: Optional[int] = None
    created_at: Optional[datetime] = None


class Teacher(BaseModel):
    id: int
    user_id: int
    employee_number: str
    created_at: Optional[datetime] = None


class Parent(BaseModel):
    id: int
    user_id: int
    phone_number: str
    created_at: Optional[datetime] = None


class TeacherAssignment(BaseModel):
    id: int
    teacher_id: int
    subject_id: int
    class_id: int
    academic_year: str
    created_at: Optional[datetime] = None


class Attendance(BaseModel):
    """One attendance entry. ``subject_id`` is None for daily attendance."""

    id: int
    student_id: int
    subject_id: Optional[int] = None
    date: date
    status: AttendanceStatus
    notes: Optional[str] = None
    recorded_by: int
    created_at: Optional[datetime] = None


class Grade(BaseModel):
    """One grade entry; score, max_score and weight are exact decimals."""

    id: int
    student_id: int
    subject_id: int
    assignment_type: str
    assignment_name: str
    score: Decimal
    max_score: Decimal
    weight: Decimal
    date_recorded: date
    recorded_by: int
    created_at: Optional[datetime] = None

    @property
    def category(self) -> AssignmentType:
        return AssignmentType.classify(self.assignment_type)


class GradeConfig(BaseModel):
    id: int
    subject_id: int
    class_id: int
    daily_weight: Decimal
    midterm_weight: Decimal
    final_weight: Decimal
    academic_year: str
    created_at: Optional[datetime] = None

    def weights(self) -> WeightScheme:
        return WeightScheme.from_percentages(self.daily_weight, self.midterm_weight, self.final_weight)


class Notification(BaseModel):
    id: int
    parent_id: int
    student_id: int
    message: str
    type: str
    status: NotificationStatus
    sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


# ==================== INPUTS ====================


class CreateUserInput(BaseModel):
    email: str = Field(pattern=EMAIL_PATTERN)
    password: str = Field(min_length=6)
    name: str = Field(min_length=1)
    role: UserRole


class CreateClassInput(BaseModel):
    name: str = Field(min_length=1)
    grade_level: int = Field(ge=7, le=9)  # SMP grades 7-9
    academic_year: AcademicYearText


class GetUsersInput(BaseModel):
    role: Optional[UserRole] = None


class GetStudentsInput(BaseModel):
    class_id: Optional[int] = None


class GetNotificationsInput(BaseModel):
    parent_id: Optional[int] = None


class GetClassesInput(BaseModel):
    academic_year: Optional[AcademicYearText] = None
    grade_level: Optional[int] = Field(default=None, ge=7, le=9)


class CreateSubjectInput(BaseModel):
    name: str = Field(min_length=1)
    code: str = Field(min_length=1)


class CreateStudentInput(BaseModel):
    user_id: int
    student_number: str = Field(min_length=1)
    class_id: int
    parent_id: Optional[int] = None


class CreateTeacherInput(BaseModel):
    user_id: int
    employee_number: str = Field(min_length=1)


class CreateParentInput(BaseModel):
    user_id: int
    phone_number: str = Field(min_length=1)


class CreateTeacherAssignmentInput(BaseModel):
    teacher_id: int
    subject_id: int
    class_id: int
    academic_year: AcademicYearText


class CreateAttendanceInput(BaseModel):
    student_id: int
    subject_id: Optional[int] = None
    date: date
    status: AttendanceStatus
    notes: Optional[str] = None
    recorded_by: int


class BulkAttendanceInput(BaseModel):
    attendances: List[CreateAttendanceInput]


class CreateGradeInput(BaseModel):
    student_id: int
    subject_id: int
    assignment_type: str
    assignment_name: str = Field(min_length=1)
    score: Decimal = Field(ge=0)
    max_score: Decimal = Field(gt=0)
    weight: Decimal = Field(ge=0, le=100)
    date_recorded: date
    recorded_by: int

    @field_validator("score", "max_score", "weight", mode="before")
    @classmethod
    def exact_decimals(cls, value: Any) -> Any:
        return _float_to_decimal(value)


class BulkGradeInput(BaseModel):
    grades: List[CreateGradeInput]


class CreateGradeConfigInput(BaseModel):
    subject_id: int
    class_id: int
    daily_weight: Decimal = Field(ge=0, le=100)
    midterm_weight: Decimal = Field(ge=0, le=100)
    final_weight: Decimal = Field(ge=0, le=100)
    academic_year: AcademicYearText

    @field_validator("daily_weight", "midterm_weight", "final_weight", mode="before")
    @classmethod
    def exact_decimals(cls, value: Any) -> Any:
        return _float_to_decimal(value)


class CreateNotificationInput(BaseModel):
    parent_id: int
    student_id: int
    message: str = Field(min_length=1)
    type: NotificationType = NotificationType.GENERAL


class AttendanceReportInput(BaseModel):
    class_id: Optional[int] = None
    student_id: Optional[int] = None
    subject_id: Optional[int] = None
    start_date: date
    end_date: date


class GradeReportInput(BaseModel):
    class_id: Optional[int] = None
    student_id: Optional[int] = None
    subject_id: Optional[int] = None
    academic_year: AcademicYearText


class StudentReportInput(BaseModel):
    student_id: int
    academic_year: AcademicYearText


class ExportAttendanceInput(AttendanceReportInput):
    format: ExportFormat


class ExportGradesInput(GradeReportInput):
    format: ExportFormat


class ImportStudentRow(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(pattern=EMAIL_PATTERN)
    student_number: str = Field(min_length=1)
    parent_name: Optional[str] = None
    parent_email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN)
    parent_phone: Optional[str] = None


class ImportStudentsInput(BaseModel):
    class_id: int
    students: List[ImportStudentRow]


# ==================== DERIVED REPORTS ====================


class StudentSnapshot(BaseModel):
    id: int
    name: str
    student_number: str
    class_id: int
    class_name: str


class AttendanceSummary(BaseModel):
    total_days: int = 0
    present: int = 0
    absent: int = 0
    late: int = 0
    excused: int = 0
    attendance_percentage: int = 0


class SubjectGradeSummary(BaseModel):
    subject_id: int
    subject_name: str
    subject_code: str
    daily_average: Decimal
    midterm_average: Decimal
    final_average: Decimal
    weighted_final_grade: Decimal


class StudentReport(BaseModel):
    """Per-student, per-academic-year report. Built on request, never stored."""

    student: StudentSnapshot
    academic_year: str
    attendance: AttendanceSummary
    grades: List[SubjectGradeSummary]
    overall_grade_average: Decimal
