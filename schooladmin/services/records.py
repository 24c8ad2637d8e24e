"""Users, classes, subjects, students, teachers, parents, teacher assignments
and notifications.

Every function takes the repository first and a validated input model second,
checks the referenced ids, writes, and returns the stored record as a model.
"""

import hashlib
import hmac
import secrets
import sqlite3
from typing import List, Optional

from ..database.models import (
    CreateClassInput,
    CreateNotificationInput,
    CreateParentInput,
    CreateStudentInput,
    CreateSubjectInput,
    CreateTeacherAssignmentInput,
    CreateTeacherInput,
    CreateUserInput,
    GetClassesInput,
    Notification,
    Parent,
    SchoolClass,
    Student,
    Subject,
    Teacher,
    TeacherAssignment,
    User,
    UserRole,
)
from ..database.repository import Repository
from ..errors import NotFoundError, ValidationError
from ..logutils import get_logger

logger = get_logger(__name__)

_HASH_ITERATIONS = 200_000


def hash_password(password: str, salt: Optional[str] = None) -> str:
    """Hash a password as ``pbkdf2_sha256$<iterations>$<salt>$<hex digest>``."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), _HASH_ITERATIONS)
    return f"pbkdf2_sha256${_HASH_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    """Check a plain password against a value produced by :func:`hash_password`."""
    try:
        _, iterations, salt, expected = stored.split("$")
    except ValueError:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


def _require_user_with_role(repo: Repository, user_id: int, role: UserRole) -> dict:
    user = repo.get_user(user_id)
    if not user:
        raise NotFoundError("User", user_id)
    if user["role"] != role.value:
        raise ValidationError(f"User {user_id} has role '{user['role']}', expected '{role.value}'")
    return user


# ==================== USERS ====================


def create_user(
    repo: Repository, data: CreateUserInput, conn: Optional[sqlite3.Connection] = None
) -> User:
    """Create a user account; the password is stored salted and hashed."""
    row = repo.create_user(data.email, hash_password(data.password), data.name, data.role.value, conn=conn)
    logger.info("User created", extra={"extra_data": {"user_id": row["id"], "role": row["role"]}})
    return User.model_validate(row)


def get_users(repo: Repository, role: Optional[UserRole] = None) -> List[User]:
    return [User.model_validate(row) for row in repo.list_users(role.value if role else None)]


# ==================== CLASSES & SUBJECTS ====================


def create_class(repo: Repository, data: CreateClassInput) -> SchoolClass:
    row = repo.create_class(data.name, data.grade_level, data.academic_year)
    logger.info("Class created", extra={"extra_data": {"class_id": row["id"], "academic_year": row["academic_year"]}})
    return SchoolClass.model_validate(row)


def get_classes(repo: Repository, filters: Optional[GetClassesInput] = None) -> List[SchoolClass]:
    """Classes ordered by grade level then name, optionally filtered by year and grade."""
    filters = filters or GetClassesInput()
    rows = repo.list_classes(filters.academic_year, filters.grade_level)
    return [SchoolClass.model_validate(row) for row in rows]


def create_subject(repo: Repository, data: CreateSubjectInput) -> Subject:
    row = repo.create_subject(data.name, data.code)
    logger.info("Subject created", extra={"extra_data": {"subject_id": row["id"], "code": row["code"]}})
    return Subject.model_validate(row)


def get_subjects(repo: Repository) -> List[Subject]:
    return [Subject.model_validate(row) for row in repo.list_subjects()]


# ==================== PEOPLE ====================


def create_student(repo: Repository, data: CreateStudentInput) -> Student:
    """Link a student-role user to a class and, optionally, a parent.

    Raises:
        NotFoundError: If the user, class or parent does not exist
        ValidationError: If the user does not have the student role
        ConstraintViolationError: If the student number is taken
    """
    _require_user_with_role(repo, data.user_id, UserRole.STUDENT)
    if not repo.get_class(data.class_id):
        raise NotFoundError("Class", data.class_id)
    if data.parent_id is not None and not repo.get_parent(data.parent_id):
        raise NotFoundError("Parent", data.parent_id)

    row = repo.create_student(data.user_id, data.student_number, data.class_id, data.parent_id)
    logger.info("Student created", extra={"extra_data": {"student_id": row["id"], "class_id": row["class_id"]}})
    return Student.model_validate(row)


def get_students(repo: Repository, class_id: Optional[int] = None) -> List[dict]:
    """Students joined with their name, email and class name."""
    return repo.list_students(class_id)


def create_teacher(repo: Repository, data: CreateTeacherInput) -> Teacher:
    _require_user_with_role(repo, data.user_id, UserRole.TEACHER)
    row = repo.create_teacher(data.user_id, data.employee_number)
    logger.info("Teacher created", extra={"extra_data": {"teacher_id": row["id"]}})
    return Teacher.model_validate(row)


def get_teachers(repo: Repository) -> List[dict]:
    return repo.list_teachers()


def create_parent(repo: Repository, data: CreateParentInput) -> Parent:
    _require_user_with_role(repo, data.user_id, UserRole.PARENT)
    row = repo.create_parent(data.user_id, data.phone_number)
    logger.info("Parent created", extra={"extra_data": {"parent_id": row["id"]}})
    return Parent.model_validate(row)


def create_teacher_assignment(repo: Repository, data: CreateTeacherAssignmentInput) -> TeacherAssignment:
    if not repo.get_teacher(data.teacher_id):
        raise NotFoundError("Teacher", data.teacher_id)
    if not repo.get_subject(data.subject_id):
        raise NotFoundError("Subject", data.subject_id)
    if not repo.get_class(data.class_id):
        raise NotFoundError("Class", data.class_id)

    row = repo.create_teacher_assignment(data.teacher_id, data.subject_id, data.class_id, data.academic_year)
    return TeacherAssignment.model_validate(row)


# ==================== NOTIFICATIONS ====================


def create_notification(repo: Repository, data: CreateNotificationInput) -> Notification:
    """Record a pending notification; delivery happens elsewhere."""
    if not repo.get_parent(data.parent_id):
        raise NotFoundError("Parent", data.parent_id)
    if not repo.get_student(data.student_id):
        raise NotFoundError("Student", data.student_id)

    row = repo.create_notification(data.parent_id, data.student_id, data.message, data.type.value)
    return Notification.model_validate(row)


def get_notifications(repo: Repository, parent_id: Optional[int] = None) -> List[Notification]:
    return [Notification.model_validate(row) for row in repo.list_notifications(parent_id)]
