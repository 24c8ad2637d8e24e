"""Database module for school records."""

from .connection import DB_PATH, close_pools, get_db, init_database, verify_database
from .repository import Repository, get_repository

__all__ = [
    "DB_PATH",
    "Repository",
    "close_pools",
    "get_db",
    "get_repository",
    "init_database",
    "verify_database",
]
