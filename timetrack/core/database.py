"""
Database utilities and connection management
SQLite backs both the record store (tasks, categories, time entries)
and the local identity provider (user accounts).

Usage:
    db = get_database(config)
    rows = db.execute("SELECT * FROM tasks WHERE user_id = ?", (uid,))
"""

import sqlite3
from pathlib import Path
from typing import List, Dict, Any, Optional, Tuple
from contextlib import contextmanager


SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
        uid TEXT PRIMARY KEY,
        email TEXT NOT NULL UNIQUE,
        display_name TEXT,
        password_hash TEXT NOT NULL,
        disabled BOOLEAN DEFAULT 0,
        failed_sign_ins INTEGER DEFAULT 0,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tasks (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        title TEXT NOT NULL,
        description TEXT,
        project TEXT DEFAULT '',
        priority TEXT NOT NULL DEFAULT 'medium'
            CHECK(priority IN ('low', 'medium', 'high')),
        completed BOOLEAN NOT NULL DEFAULT 0,
        time_spent INTEGER NOT NULL DEFAULT 0 CHECK(time_spent >= 0),
        due_date TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_tasks_user ON tasks(user_id, created_at)",
    """
    CREATE TABLE IF NOT EXISTS categories (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        name TEXT NOT NULL,
        color TEXT,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_categories_user ON categories(user_id, created_at)",
    """
    CREATE TABLE IF NOT EXISTS time_entries (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        task_id TEXT,
        task_name TEXT NOT NULL,
        duration INTEGER NOT NULL CHECK(duration >= 0),
        started_at TEXT NOT NULL,
        ended_at TEXT NOT NULL,
        notes TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_time_entries_user ON time_entries(user_id, started_at)",
    "CREATE INDEX IF NOT EXISTS idx_time_entries_task ON time_entries(task_id)",
]


class SQLiteDatabase:
    """SQLite database implementation"""

    def __init__(self, db_path: Optional[Path] = None, create: bool = False):
        """
        Args:
            db_path: Location of the database file
            create: Create the file and schema when missing instead of failing
        """
        if db_path is None:
            db_path = Path(__file__).parent.parent.parent / "data" / "database" / "timetrack.db"

        self.db_path = Path(db_path)

        if not self.db_path.exists():
            if not create:
                raise FileNotFoundError(
                    f"Database not found at {self.db_path}. "
                    "Run 'python scripts/init_db.py' to create it."
                )
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self.init_schema()

    @contextmanager
    def get_connection(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        try:
            yield conn
        finally:
            conn.close()

    def init_schema(self) -> None:
        """Create all tables and indexes (idempotent)."""
        with self.get_connection() as conn:
            for statement in SCHEMA:
                conn.execute(statement)
            conn.commit()

    def execute(self, query: str, params: Tuple = ()) -> List[Dict[str, Any]]:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            rows = cursor.fetchall()
            return [dict(row) for row in rows]

    def execute_one(self, query: str, params: Tuple = ()) -> Optional[Dict[str, Any]]:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            row = cursor.fetchone()
            return dict(row) if row else None

    def execute_write(self, query: str, params: Tuple = ()) -> int:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            conn.commit()
            return cursor.rowcount

    def table_exists(self, table_name: str) -> bool:
        query = "SELECT name FROM sqlite_master WHERE type='table' AND name=?;"
        result = self.execute_one(query, (table_name,))
        return result is not None

    def get_table_names(self) -> List[str]:
        query = "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
        rows = self.execute(query)
        return [row['name'] for row in rows]

    def count(self, table_name: str, where_clause: str = "", params: Tuple = ()) -> int:
        query = f"SELECT COUNT(*) as count FROM {table_name}"
        if where_clause:
            query += f" WHERE {where_clause}"
        result = self.execute_one(query, params)
        return result['count'] if result else 0

    @contextmanager
    def transaction(self):
        with self.get_connection() as conn:
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise


# Type alias used across the codebase
Database = SQLiteDatabase


def get_database(config=None, create: bool = True) -> SQLiteDatabase:
    """
    Factory function to get the database instance for a configuration.

    Args:
        config: Config instance; the default file location is used when None
        create: Create the database file if it does not exist yet
    """
    db_path = config.get_database_path() if config is not None else None
    return SQLiteDatabase(db_path, create=create)
