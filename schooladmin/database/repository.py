"""Data access layer for the school store.

The Repository class wraps every SQL statement the services need. Queries are
parameterized and rows come back as plain dictionaries; the service layer
turns them into pydantic models.

Write methods take an optional ``conn`` so several writes can share one
transaction opened with :meth:`Repository.transaction`.

Example:
    from schooladmin.database.repository import Repository

    repo = Repository()
    with repo.transaction() as conn:
        user = repo.create_user("ana@school.id", hashed, "Ana", "student", conn=conn)
        repo.create_student(user["id"], "S-001", class_id=1, conn=conn)
"""

import sqlite3
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Set

from ..errors import ConstraintViolationError
from .connection import DB_PATH, get_db

# Tables whose ids may be checked in bulk; table names are never taken from callers
_ID_TABLES = {
    "users",
    "classes",
    "subjects",
    "students",
    "teachers",
    "parents",
}


def _text(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


def _iso(value: Optional[date]) -> Optional[str]:
    return None if value is None else value.isoformat()


class Repository:
    """Record store for users, classes, subjects, students, teachers, parents,
    teacher assignments, attendance, grades, grade configs and notifications.

    Attributes:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path or DB_PATH

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Open a unit of work; pass the yielded connection to write methods."""
        with get_db(self.db_path) as conn:
            yield conn

    @contextmanager
    def _connect(self, conn: Optional[sqlite3.Connection] = None) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
        else:
            with get_db(self.db_path) as own:
                yield own

    def _insert(self, sql: str, params: Sequence[Any], entity: str, conn: Optional[sqlite3.Connection]) -> Dict:
        with self._connect(conn) as c:
            try:
                # drain RETURNING so the statement is finished before commit
                (row,) = c.execute(sql, params).fetchall()
            except sqlite3.IntegrityError as e:
                raise ConstraintViolationError(f"Could not create {entity}: {e}") from e
            return dict(row)

    def _fetch_one(self, sql: str, params: Sequence[Any] = (), conn: Optional[sqlite3.Connection] = None) -> Optional[Dict]:
        with self._connect(conn) as c:
            row = c.execute(sql, params).fetchone()
            return dict(row) if row else None

    def _fetch_all(self, sql: str, params: Sequence[Any] = (), conn: Optional[sqlite3.Connection] = None) -> List[Dict]:
        with self._connect(conn) as c:
            return [dict(row) for row in c.execute(sql, params).fetchall()]

    def existing_ids(self, table: str, ids: Iterable[int], conn: Optional[sqlite3.Connection] = None) -> Set[int]:
        """Return the subset of ``ids`` present in ``table`` using a single query."""
        if table not in _ID_TABLES:
            raise ValueError(f"Unknown table: {table}")
        wanted = sorted(set(ids))
        if not wanted:
            return set()
        placeholders = ", ".join("?" for _ in wanted)
        rows = self._fetch_all(f"SELECT id FROM {table} WHERE id IN ({placeholders})", wanted, conn)
        return {row["id"] for row in rows}

    # ==================== USERS ====================

    def create_user(
        self, email: str, password_hash: str, name: str, role: str, conn: Optional[sqlite3.Connection] = None
    ) -> Dict:
        return self._insert(
            "INSERT INTO users (email, password, name, role) VALUES (?, ?, ?, ?) RETURNING *",
            (email, password_hash, name, role),
            "user",
            conn,
        )

    def get_user(self, user_id: int, conn: Optional[sqlite3.Connection] = None) -> Optional[Dict]:
        return self._fetch_one("SELECT * FROM users WHERE id = ?", (user_id,), conn)

    def find_user_by_email(self, email: str, conn: Optional[sqlite3.Connection] = None) -> Optional[Dict]:
        return self._fetch_one("SELECT * FROM users WHERE email = ?", (email,), conn)

    def list_users(self, role: Optional[str] = None) -> List[Dict]:
        if role:
            return self._fetch_all("SELECT * FROM users WHERE role = ? ORDER BY name", (role,))
        return self._fetch_all("SELECT * FROM users ORDER BY name")

    # ==================== CLASSES ====================

    def create_class(self, name: str, grade_level: int, academic_year: str) -> Dict:
        return self._insert(
            "INSERT INTO classes (name, grade_level, academic_year) VALUES (?, ?, ?) RETURNING *",
            (name, grade_level, academic_year),
            "class",
            None,
        )

    def get_class(self, class_id: int, conn: Optional[sqlite3.Connection] = None) -> Optional[Dict]:
        return self._fetch_one("SELECT * FROM classes WHERE id = ?", (class_id,), conn)

    def list_classes(self, academic_year: Optional[str] = None, grade_level: Optional[int] = None) -> List[Dict]:
        """List classes ordered by grade level then name.

        Args:
            academic_year: Only classes of this year
            grade_level: Only classes of this grade
        """
        clauses, params = [], []
        if academic_year:
            clauses.append("academic_year = ?")
            params.append(academic_year)
        if grade_level is not None:
            clauses.append("grade_level = ?")
            params.append(grade_level)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        return self._fetch_all(f"SELECT * FROM classes {where} ORDER BY grade_level, name", params)

    # ==================== SUBJECTS ====================

    def create_subject(self, name: str, code: str) -> Dict:
        return self._insert(
            "INSERT INTO subjects (name, code) VALUES (?, ?) RETURNING *", (name, code), "subject", None
        )

    def get_subject(self, subject_id: int) -> Optional[Dict]:
        return self._fetch_one("SELECT * FROM subjects WHERE id = ?", (subject_id,))

    def list_subjects(self) -> List[Dict]:
        return self._fetch_all("SELECT * FROM subjects ORDER BY name")

    # ==================== STUDENTS ====================

    def create_student(
        self,
        user_id: int,
        student_number: str,
        class_id: int,
        parent_id: Optional[int] = None,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Dict:
        return self._insert(
            "INSERT INTO students (user_id, student_number, class_id, parent_id) VALUES (?, ?, ?, ?) RETURNING *",
            (user_id, student_number, class_id, parent_id),
            "student",
            conn,
        )

    def get_student(self, student_id: int, conn: Optional[sqlite3.Connection] = None) -> Optional[Dict]:
        return self._fetch_one("SELECT * FROM students WHERE id = ?", (student_id,), conn)

    def find_student_by_number(self, student_number: str, conn: Optional[sqlite3.Connection] = None) -> Optional[Dict]:
        return self._fetch_one("SELECT * FROM students WHERE student_number = ?", (student_number,), conn)

    def list_students(self, class_id: Optional[int] = None) -> List[Dict]:
        """List students with their name, email and class name."""
        sql = """
            SELECT s.*, u.name, u.email, c.name AS class_name
            FROM students s
            JOIN users u ON u.id = s.user_id
            JOIN classes c ON c.id = s.class_id
        """
        if class_id is not None:
            return self._fetch_all(sql + " WHERE s.class_id = ? ORDER BY u.name", (class_id,))
        return self._fetch_all(sql + " ORDER BY u.name")

    def find_student_with_class_and_user(self, student_id: int) -> Optional[Dict]:
        """Identity of a student for reports.

        Returns:
            Dictionary with keys: id, name, student_number, class_id, class_name,
            or None if the student does not exist.
        """
        return self._fetch_one(
            """
            SELECT s.id, u.name, s.student_number, s.class_id, c.name AS class_name
            FROM students s
            JOIN users u ON u.id = s.user_id
            JOIN classes c ON c.id = s.class_id
            WHERE s.id = ?
            """,
            (student_id,),
        )

    def parents_for_students(self, student_ids: Iterable[int], conn: Optional[sqlite3.Connection] = None) -> Dict[int, int]:
        """Map each given student id to its parent id, skipping students without one."""
        wanted = sorted(set(student_ids))
        if not wanted:
            return {}
        placeholders = ", ".join("?" for _ in wanted)
        rows = self._fetch_all(
            f"SELECT id, parent_id FROM students WHERE id IN ({placeholders}) AND parent_id IS NOT NULL",
            wanted,
            conn,
        )
        return {row["id"]: row["parent_id"] for row in rows}

    # ==================== TEACHERS ====================

    def create_teacher(self, user_id: int, employee_number: str) -> Dict:
        return self._insert(
            "INSERT INTO teachers (user_id, employee_number) VALUES (?, ?) RETURNING *",
            (user_id, employee_number),
            "teacher",
            None,
        )

    def get_teacher(self, teacher_id: int) -> Optional[Dict]:
        return self._fetch_one("SELECT * FROM teachers WHERE id = ?", (teacher_id,))

    def list_teachers(self) -> List[Dict]:
        return self._fetch_all(
            """
            SELECT t.*, u.name, u.email
            FROM teachers t
            JOIN users u ON u.id = t.user_id
            ORDER BY u.name
            """
        )

    # ==================== PARENTS ====================

    def create_parent(self, user_id: int, phone_number: str, conn: Optional[sqlite3.Connection] = None) -> Dict:
        return self._insert(
            "INSERT INTO parents (user_id, phone_number) VALUES (?, ?) RETURNING *",
            (user_id, phone_number),
            "parent",
            conn,
        )

    def get_parent(self, parent_id: int) -> Optional[Dict]:
        return self._fetch_one("SELECT * FROM parents WHERE id = ?", (parent_id,))

    def find_parent_by_user_id(self, user_id: int, conn: Optional[sqlite3.Connection] = None) -> Optional[Dict]:
        return self._fetch_one("SELECT * FROM parents WHERE user_id = ? ORDER BY id", (user_id,), conn)

    # ==================== TEACHER ASSIGNMENTS ====================

    def create_teacher_assignment(self, teacher_id: int, subject_id: int, class_id: int, academic_year: str) -> Dict:
        return self._insert(
            """
            INSERT INTO teacher_assignments (teacher_id, subject_id, class_id, academic_year)
            VALUES (?, ?, ?, ?) RETURNING *
            """,
            (teacher_id, subject_id, class_id, academic_year),
            "teacher assignment",
            None,
        )

    # ==================== ATTENDANCE ====================

    def create_attendance(
        self,
        student_id: int,
        subject_id: Optional[int],
        day: date,
        status: str,
        notes: Optional[str],
        recorded_by: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Dict:
        return self._insert(
            """
            INSERT INTO attendances (student_id, subject_id, date, status, notes, recorded_by)
            VALUES (?, ?, ?, ?, ?, ?) RETURNING *
            """,
            (student_id, subject_id, _iso(day), status, notes, recorded_by),
            "attendance",
            conn,
        )

    def list_attendance(self, student_id: int, year: int) -> List[Dict]:
        """Attendance rows of one student dated in calendar ``year``."""
        return self._fetch_all(
            "SELECT * FROM attendances WHERE student_id = ? AND strftime('%Y', date) = ? ORDER BY date, id",
            (student_id, f"{year:04d}"),
        )

    def query_attendance(
        self,
        start_date: date,
        end_date: date,
        class_id: Optional[int] = None,
        student_id: Optional[int] = None,
        subject_id: Optional[int] = None,
    ) -> List[Dict]:
        """Attendance between two dates (inclusive) with student, subject and recorder names.

        Returns:
            List of attendance dictionaries with extra keys: student_name,
            student_number, class_name, subject_name, recorder_name.
        """
        clauses = ["a.date BETWEEN ? AND ?"]
        params: List[Any] = [_iso(start_date), _iso(end_date)]
        if class_id is not None:
            clauses.append("s.class_id = ?")
            params.append(class_id)
        if student_id is not None:
            clauses.append("a.student_id = ?")
            params.append(student_id)
        if subject_id is not None:
            clauses.append("a.subject_id = ?")
            params.append(subject_id)
        return self._fetch_all(
            f"""
            SELECT a.*, su.name AS student_name, s.student_number, c.name AS class_name,
                   sub.name AS subject_name, r.name AS recorder_name
            FROM attendances a
            JOIN students s ON s.id = a.student_id
            JOIN users su ON su.id = s.user_id
            JOIN classes c ON c.id = s.class_id
            LEFT JOIN subjects sub ON sub.id = a.subject_id
            LEFT JOIN users r ON r.id = a.recorded_by
            WHERE {' AND '.join(clauses)}
            ORDER BY a.date, a.student_id, a.id
            """,
            params,
        )

    # ==================== GRADES ====================

    def create_grade(
        self,
        student_id: int,
        subject_id: int,
        assignment_type: str,
        assignment_name: str,
        score: Decimal,
        max_score: Decimal,
        weight: Decimal,
        date_recorded: date,
        recorded_by: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Dict:
        return self._insert(
            """
            INSERT INTO grades (student_id, subject_id, assignment_type, assignment_name,
                score, max_score, weight, date_recorded, recorded_by)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?) RETURNING *
            """,
            (
                student_id,
                subject_id,
                assignment_type,
                assignment_name,
                _text(score),
                _text(max_score),
                _text(weight),
                _iso(date_recorded),
                recorded_by,
            ),
            "grade",
            conn,
        )

    def list_grades_with_subjects(self, student_id: int, year: int) -> List[Dict]:
        """Grades of one student recorded in calendar ``year``, with subject name and code.

        Rows come back in insertion order so subjects keep first-seen order.
        """
        return self._fetch_all(
            """
            SELECT g.*, sub.name AS subject_name, sub.code AS subject_code
            FROM grades g
            JOIN subjects sub ON sub.id = g.subject_id
            WHERE g.student_id = ? AND strftime('%Y', g.date_recorded) = ?
            ORDER BY g.id
            """,
            (student_id, f"{year:04d}"),
        )

    def query_grades(
        self,
        year: int,
        class_id: Optional[int] = None,
        student_id: Optional[int] = None,
        subject_id: Optional[int] = None,
    ) -> List[Dict]:
        """Grades recorded in calendar ``year`` with student, subject and recorder names."""
        clauses = ["strftime('%Y', g.date_recorded) = ?"]
        params: List[Any] = [f"{year:04d}"]
        if class_id is not None:
            clauses.append("s.class_id = ?")
            params.append(class_id)
        if student_id is not None:
            clauses.append("g.student_id = ?")
            params.append(student_id)
        if subject_id is not None:
            clauses.append("g.subject_id = ?")
            params.append(subject_id)
        return self._fetch_all(
            f"""
            SELECT g.*, su.name AS student_name, s.student_number, c.name AS class_name,
                   sub.name AS subject_name, sub.code AS subject_code, r.name AS recorder_name
            FROM grades g
            JOIN students s ON s.id = g.student_id
            JOIN users su ON su.id = s.user_id
            JOIN classes c ON c.id = s.class_id
            JOIN subjects sub ON sub.id = g.subject_id
            LEFT JOIN users r ON r.id = g.recorded_by
            WHERE {' AND '.join(clauses)}
            ORDER BY su.name, g.student_id, sub.name, g.date_recorded, g.id
            """,
            params,
        )

    # ==================== GRADE CONFIGS ====================

    def create_grade_config(
        self,
        subject_id: int,
        class_id: int,
        daily_weight: Decimal,
        midterm_weight: Decimal,
        final_weight: Decimal,
        academic_year: str,
    ) -> Dict:
        return self._insert(
            """
            INSERT INTO grade_configs (subject_id, class_id, daily_weight, midterm_weight, final_weight, academic_year)
            VALUES (?, ?, ?, ?, ?, ?) RETURNING *
            """,
            (subject_id, class_id, _text(daily_weight), _text(midterm_weight), _text(final_weight), academic_year),
            "grade config",
            None,
        )

    def list_grade_configs(self, class_id: int, academic_year: str) -> List[Dict]:
        """Grade configs for a class and year, lowest id first."""
        return self._fetch_all(
            "SELECT * FROM grade_configs WHERE class_id = ? AND academic_year = ? ORDER BY id",
            (class_id, academic_year),
        )

    # ==================== NOTIFICATIONS ====================

    def create_notification(
        self,
        parent_id: int,
        student_id: int,
        message: str,
        type: str = "general",
        conn: Optional[sqlite3.Connection] = None,
    ) -> Dict:
        return self._insert(
            """
            INSERT INTO notifications (parent_id, student_id, message, type, status)
            VALUES (?, ?, ?, ?, 'pending') RETURNING *
            """,
            (parent_id, student_id, message, type),
            "notification",
            conn,
        )

    def list_notifications(self, parent_id: Optional[int] = None) -> List[Dict]:
        """Notifications newest first, optionally for one parent."""
        if parent_id is not None:
            return self._fetch_all(
                "SELECT * FROM notifications WHERE parent_id = ? ORDER BY created_at DESC, id DESC",
                (parent_id,),
            )
        return self._fetch_all("SELECT * FROM notifications ORDER BY created_at DESC, id DESC")


_repo: Optional[Repository] = None


def get_repository(db_path: Optional[Path] = None) -> Repository:
    """Get or create the shared Repository, replacing it when a different path is given."""
    global _repo
    if _repo is None or (db_path and db_path != _repo.db_path):
        _repo = Repository(db_path)
    return _repo
