"""
Core module for Timetrack
Contains database, configuration, and model definitions
"""

from .config import Config
from .database import Database, SQLiteDatabase, get_database
from .models import Task, Category, TimeEntry, UserAccount, Priority

__all__ = [
    'Config',
    'Database',
    'SQLiteDatabase',
    'get_database',
    'Task',
    'Category',
    'TimeEntry',
    'UserAccount',
    'Priority',
]
