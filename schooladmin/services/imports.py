"""Roster import: creates student accounts, parents and student records for a class."""

from typing import List, Optional

from ..config import get_config
from ..database.models import (
    CreateUserInput,
    ImportStudentRow,
    ImportStudentsInput,
    Student,
    UserRole,
)
from ..database.repository import Repository
from ..errors import ConstraintViolationError, NotFoundError, ValidationError
from ..logutils import get_logger, update_context
from .records import create_user


logger = get_logger(__name__)


def _resolve_parent(repo: Repository, row: ImportStudentRow, password: str, conn) -> Optional[int]:
    """Parent id for a roster row, reusing an existing parent account by email."""
    if not row.parent_email:
        return None

    user = repo.find_user_by_email(row.parent_email, conn=conn)
    if user is None:
        user = create_user(
            repo,
            CreateUserInput(
                email=row.parent_email,
                password=password,
                name=row.parent_name or f"Parent of {row.name}",
                role=UserRole.PARENT,
            ),
            conn=conn,
        ).model_dump()
    elif user["role"] != UserRole.PARENT.value:
        raise ValidationError(f"{row.parent_email} belongs to a {user['role']} account, not a parent")

    parent = repo.find_parent_by_user_id(user["id"], conn=conn)
    if parent is None:
        parent = repo.create_parent(user["id"], row.parent_phone or "", conn=conn)
    return parent["id"]


def import_students(repo: Repository, data: ImportStudentsInput, default_password: Optional[str] = None) -> List[Student]:
    """Import a class roster in one transaction.

    Each row gets a student user account with the default password. A row
    with a parent email is linked to that parent, creating the parent
    account when it does not exist yet.

    Args:
        repo: Record store
        data: Target class and roster rows
        default_password: Initial password; defaults to IMPORT_DEFAULT_PASSWORD

    Returns:
        Created students in roster order

    Raises:
        NotFoundError: If the class does not exist
        ConstraintViolationError: If a student number or email is already taken;
            nothing from the roster is kept
    """
    password = default_password or get_config().import_default_password
    update_context(operation="import_students", class_id=data.class_id)

    created: List[Student] = []
    with repo.transaction() as conn:
        if not repo.get_class(data.class_id, conn=conn):
            raise NotFoundError("Class", data.class_id)

        for row in data.students:
            if repo.find_student_by_number(row.student_number, conn=conn):
                raise ConstraintViolationError(
                    f"Student {row.name}: student number {row.student_number} already exists"
                )
            if repo.find_user_by_email(row.email, conn=conn):
                raise ConstraintViolationError(f"Student {row.name}: email {row.email} already exists")

            user = create_user(
                repo,
                CreateUserInput(email=row.email, password=password, name=row.name, role=UserRole.STUDENT),
                conn=conn,
            )
            parent_id = _resolve_parent(repo, row, password, conn)
            student = repo.create_student(user.id, row.student_number, data.class_id, parent_id, conn=conn)
            created.append(Student.model_validate(student))

    logger.info(
        "Students imported",
        extra={"extra_data": {"class_id": data.class_id, "count": len(created)}},
    )
    return created
