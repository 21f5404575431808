#!/usr/bin/env python3
"""
Database initialization script for Timetrack
Creates the SQLite database with the users, tasks, categories and
time_entries tables.

Usage:
    python scripts/init_db.py            # prompts before overwriting
    python scripts/init_db.py --force    # overwrite without asking
"""

import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from timetrack.core.config import Config
from timetrack.core.database import SQLiteDatabase


def init_database(force: bool = False) -> bool:
    """Initialize the database with the Timetrack schema"""
    config = Config()
    db_path = config.get_database_path()

    if db_path.exists():
        if not force:
            response = input(f"Database already exists at {db_path}. Overwrite? (yes/no): ")
            if response.lower() != 'yes':
                print("Aborting database initialization.")
                return False
        db_path.unlink()

    print(f"Creating database at {db_path}...")
    db = SQLiteDatabase(db_path, create=True)

    tables = db.get_table_names()
    print(f"Created tables: {', '.join(tables)}")
    return True


if __name__ == "__main__":
    success = init_database(force="--force" in sys.argv[1:])
    sys.exit(0 if success else 1)
