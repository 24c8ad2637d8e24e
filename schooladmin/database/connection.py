"""SQLite connection handling for the school store.

Connections are pooled per database file. ``get_db`` wraps a unit of work:
everything executed inside one ``with`` block commits together or rolls back
together, which is what the bulk handlers and the student import rely on.
"""

import os
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from queue import Empty, Full, Queue
from typing import Iterator, Optional

from dotenv import load_dotenv

from ..logutils import get_logger

load_dotenv()

logger = get_logger(__name__)

DEFAULT_DB_PATH = Path(__file__).parent.parent.parent / "school.db"
DB_PATH = Path(os.getenv("DATABASE_PATH", str(DEFAULT_DB_PATH)))
SCHEMA_PATH = Path(__file__).parent / "schema.sql"

_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "5"))
_POOL_TIMEOUT = float(os.getenv("DB_POOL_TIMEOUT", "30.0"))


class ConnectionPool:
    """Thread-safe pool of SQLite connections for one database file."""

    def __init__(self, db_path: Path, pool_size: int = 5, timeout: float = 30.0):
        """
        Args:
            db_path: SQLite database file
            pool_size: Connections kept open between uses
            timeout: Seconds to wait for the database lock
        """
        self._db_path = self._validate_path(db_path)
        self._pool_size = pool_size
        self._timeout = timeout
        self._pool: Queue[sqlite3.Connection] = Queue(maxsize=pool_size)
        self._lock = threading.Lock()

    @staticmethod
    def _validate_path(db_path: Path) -> Path:
        if ".." in Path(db_path).parts:
            raise ValueError(f"Invalid database path: {db_path}")
        return Path(db_path).resolve()

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _create_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False, timeout=self._timeout)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA busy_timeout = 5000")
        conn.execute("PRAGMA synchronous = NORMAL")
        return conn

    def get_connection(self) -> sqlite3.Connection:
        """Take a live connection from the pool, opening a new one if the pool is empty."""
        try:
            conn = self._pool.get_nowait()
        except Empty:
            logger.debug("Pool empty, opening connection", extra={"extra_data": {"path": str(self._db_path)}})
            return self._create_connection()

        try:
            conn.execute("SELECT 1")
            return conn
        except sqlite3.Error:
            logger.debug("Dead connection dropped from pool")
            return self._create_connection()

    def return_connection(self, conn: sqlite3.Connection) -> None:
        try:
            self._pool.put_nowait(conn)
        except Full:
            conn.close()

    def close_all(self) -> None:
        with self._lock:
            while True:
                try:
                    self._pool.get_nowait().close()
                except Empty:
                    break


_pools: dict[Path, ConnectionPool] = {}
_pools_lock = threading.Lock()


def _get_pool(db_path: Optional[Path] = None) -> ConnectionPool:
    path = Path(db_path or DB_PATH).resolve()
    with _pools_lock:
        if path not in _pools:
            _pools[path] = ConnectionPool(path, _POOL_SIZE, _POOL_TIMEOUT)
        return _pools[path]


def close_pools(db_path: Optional[Path] = None) -> None:
    """Close pooled connections for one database, or for all of them."""
    with _pools_lock:
        if db_path is None:
            targets = list(_pools.keys())
        else:
            targets = [Path(db_path).resolve()]
        for path in targets:
            pool = _pools.pop(path, None)
            if pool is not None:
                pool.close_all()


@contextmanager
def get_db(db_path: Optional[Path] = None) -> Iterator[sqlite3.Connection]:
    """Yield a connection; commit when the block exits cleanly, roll back otherwise.

    Example:
        with get_db() as conn:
            conn.execute("INSERT INTO subjects (name, code) VALUES (?, ?)", ("Math", "MATH"))
    """
    pool = _get_pool(db_path)
    conn = pool.get_connection()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        pool.return_connection(conn)


def init_database(db_path: Optional[Path] = None, force: bool = False) -> Path:
    """Create every table from ``schema.sql``.

    Args:
        db_path: Database file (defaults to DATABASE_PATH)
        force: Delete an existing file first

    Returns:
        Path to the database file
    """
    path = Path(db_path or DB_PATH)

    if force and path.exists():
        logger.info("Removing existing database", extra={"extra_data": {"path": str(path)}})
        close_pools(path)
        path.unlink()

    with get_db(path) as conn:
        conn.executescript(SCHEMA_PATH.read_text())

    logger.info("Database initialized", extra={"extra_data": {"path": str(path)}})
    return path


def verify_database(db_path: Optional[Path] = None) -> dict:
    """Report which tables exist and how many rows each holds."""
    path = Path(db_path or DB_PATH)

    if not path.exists():
        return {"exists": False, "tables": [], "error": "Database file not found"}

    with get_db(path) as conn:
        cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
        tables = [row["name"] for row in cursor.fetchall() if not row["name"].startswith("sqlite_")]

        counts = {}
        for table in tables:
            # names come from sqlite_master, never from callers
            counts[table] = conn.execute(f"SELECT COUNT(*) AS cnt FROM [{table}]").fetchone()["cnt"]

    return {"exists": True, "path": str(path), "tables": tables, "row_counts": counts}
