"""Pytest configuration and fixtures for the school administration tests."""

from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Generator

import pytest

from schooladmin.database.connection import close_pools, init_database
from schooladmin.database.models import (
    CreateClassInput,
    CreateGradeInput,
    CreateParentInput,
    CreateStudentInput,
    CreateSubjectInput,
    CreateUserInput,
    UserRole,
)
from schooladmin.database.repository import Repository
from schooladmin.services import records


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no database)")
    config.addinivalue_line("markers", "integration: Integration tests (SQLite database)")


@pytest.fixture(scope="function")
def db_path(tmp_path: Path) -> Generator[Path, None, None]:
    """Create a fresh database from schema.sql."""
    path = init_database(tmp_path / "school.db")
    yield path
    close_pools(path)


@pytest.fixture(scope="function")
def repo(db_path: Path) -> Repository:
    return Repository(db_path)


def make_user(repo: Repository, email: str, name: str, role: UserRole) -> int:
    return records.create_user(
        repo, CreateUserInput(email=email, password="secret123", name=name, role=role)
    ).id


@pytest.fixture(scope="function")
def school(repo: Repository) -> dict:
    """A small school: one class, two subjects, a teacher, and two students.

    ``student_id`` has a parent on file, ``orphan_id`` does not.
    """
    teacher_user = make_user(repo, "guru@school.id", "Bu Sari", UserRole.TEACHER)
    parent_user = make_user(repo, "ortu@mail.id", "Pak Budi", UserRole.PARENT)
    student_user = make_user(repo, "ani@school.id", "Ani", UserRole.STUDENT)
    orphan_user = make_user(repo, "dodi@school.id", "Dodi", UserRole.STUDENT)

    klass = records.create_class(repo, CreateClassInput(name="7A", grade_level=7, academic_year="2024/2025"))
    math = records.create_subject(repo, CreateSubjectInput(name="Mathematics", code="MATH"))
    english = records.create_subject(repo, CreateSubjectInput(name="English", code="ENG"))
    parent = records.create_parent(repo, CreateParentInput(user_id=parent_user, phone_number="081234567890"))

    student = records.create_student(
        repo,
        CreateStudentInput(user_id=student_user, student_number="S-001", class_id=klass.id, parent_id=parent.id),
    )
    orphan = records.create_student(
        repo, CreateStudentInput(user_id=orphan_user, student_number="S-002", class_id=klass.id)
    )

    return {
        "teacher_user_id": teacher_user,
        "parent_id": parent.id,
        "class_id": klass.id,
        "math_id": math.id,
        "english_id": english.id,
        "student_id": student.id,
        "orphan_id": orphan.id,
    }


@pytest.fixture
def grade_input(school: dict):
    """Factory for CreateGradeInput with sensible defaults."""

    def _make(**overrides) -> CreateGradeInput:
        data = {
            "student_id": school["student_id"],
            "subject_id": school["math_id"],
            "assignment_type": "daily",
            "assignment_name": "Quiz 1",
            "score": Decimal("85"),
            "max_score": Decimal("100"),
            "weight": Decimal("10"),
            "date_recorded": date(2024, 9, 2),
            "recorded_by": school["teacher_user_id"],
        }
        data.update(overrides)
        return CreateGradeInput(**data)

    return _make
