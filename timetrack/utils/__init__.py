"""
Pure helpers: duration formatting/parsing, field validation, error taxonomy.
"""

from .errors import (
    ValidationError,
    IdentityError,
    RecordStoreError,
    NotFoundError,
    TimetrackError,
    get_error_message,
    retry_operation,
)
from .validation import ValidationResult

__all__ = [
    'ValidationError',
    'IdentityError',
    'RecordStoreError',
    'NotFoundError',
    'TimetrackError',
    'ValidationResult',
    'get_error_message',
    'retry_operation',
]
