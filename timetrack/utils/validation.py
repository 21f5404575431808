"""
Field validation predicates for forms and API payloads.

Each validator returns a ValidationResult instead of raising, so callers
can collect the first failure with validate_form(). Use
ValidationResult.raise_if_invalid() where an exception is preferred.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

from dateutil.relativedelta import relativedelta

from .errors import ValidationError
from .time import align_timezones


EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
HEX_COLOR_RE = re.compile(r"^#[0-9A-F]{6}$", re.IGNORECASE)
DISPLAY_NAME_RE = re.compile(r"^[a-zA-Z0-9\s\-_.]+$")
LETTER_RE = re.compile(r"[a-zA-Z]")
DIGIT_RE = re.compile(r"\d")

MAX_RANGE_DAYS = 730
MAX_ENTRY_HOURS = 24


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a single validation check."""
    is_valid: bool
    error: Optional[str] = None
    field: Optional[str] = None

    @classmethod
    def ok(cls) -> 'ValidationResult':
        return cls(is_valid=True)

    @classmethod
    def fail(cls, error: str, field: Optional[str] = None) -> 'ValidationResult':
        return cls(is_valid=False, error=error, field=field)

    def raise_if_invalid(self) -> None:
        if not self.is_valid:
            raise ValidationError(self.error or "Invalid input", field=self.field)


def _length_check(value: Optional[str], label: str, field: str,
                  min_len: int, max_len: int) -> ValidationResult:
    text = (value or "").strip()
    if not text:
        return ValidationResult.fail(f"{label} is required", field)
    if len(text) < min_len:
        return ValidationResult.fail(
            f"{label} must be at least {min_len} characters long", field
        )
    if len(text) > max_len:
        return ValidationResult.fail(
            f"{label} must be less than {max_len} characters", field
        )
    return ValidationResult.ok()


def validate_category(name: Optional[str], color: Optional[str] = None) -> ValidationResult:
    result = _length_check(name, "Category name", "name", 2, 50)
    if not result.is_valid:
        return result

    if color and not HEX_COLOR_RE.match(color):
        return ValidationResult.fail(
            "Color must be a valid hex code (e.g., #FF5733)", "color"
        )
    return ValidationResult.ok()


def validate_task(title: Optional[str], description: Optional[str] = None) -> ValidationResult:
    result = _length_check(title, "Task title", "title", 2, 100)
    if not result.is_valid:
        return result

    if description and len(description.strip()) > 500:
        return ValidationResult.fail(
            "Task description must be less than 500 characters", "description"
        )
    return ValidationResult.ok()


def validate_email(email: Optional[str]) -> ValidationResult:
    if not email or not email.strip():
        return ValidationResult.fail("Email is required", "email")
    if not EMAIL_RE.match(email):
        return ValidationResult.fail("Please enter a valid email address", "email")
    return ValidationResult.ok()


def validate_password(password: Optional[str]) -> ValidationResult:
    """Passwords need 6-128 characters with at least one letter and one digit."""
    if not password:
        return ValidationResult.fail("Password is required", "password")
    if len(password) < 6:
        return ValidationResult.fail(
            "Password must be at least 6 characters long", "password"
        )
    if len(password) > 128:
        return ValidationResult.fail(
            "Password must be less than 128 characters", "password"
        )
    if not (LETTER_RE.search(password) and DIGIT_RE.search(password)):
        return ValidationResult.fail(
            "Password must contain at least one letter and one number", "password"
        )
    return ValidationResult.ok()


def validate_confirm_password(password: str, confirm_password: Optional[str]) -> ValidationResult:
    if not confirm_password:
        return ValidationResult.fail("Please confirm your password", "confirm_password")
    if password != confirm_password:
        return ValidationResult.fail("Passwords do not match", "confirm_password")
    return ValidationResult.ok()


def validate_display_name(display_name: Optional[str]) -> ValidationResult:
    result = _length_check(display_name, "Display name", "name", 2, 50)
    if not result.is_valid:
        return result

    if not DISPLAY_NAME_RE.match(display_name.strip()):
        return ValidationResult.fail(
            "Display name can only contain letters, numbers, spaces, and basic punctuation",
            "name",
        )
    return ValidationResult.ok()


def _now_like(moment: datetime) -> datetime:
    if moment.tzinfo is not None:
        return datetime.now(moment.tzinfo)
    return datetime.now()


def validate_date_range(start: Optional[datetime], end: Optional[datetime],
                        now: Optional[datetime] = None) -> ValidationResult:
    """
    Validate a reporting date range.

    The end may be at most one year ahead of ``now`` and the range may
    span at most two years. A naive bound is read in the zone of an
    aware one.
    """
    if start is None or end is None:
        return ValidationResult.fail("Both start and end dates are required", "start")
    start, end = align_timezones(start, end)
    if start > end:
        return ValidationResult.fail("Start date must be before end date", "start")

    if now is None:
        now = _now_like(end)
    if end > now + relativedelta(years=1):
        return ValidationResult.fail(
            "End date cannot be more than one year in the future", "end"
        )

    span = end - start
    # Partial days count as a whole day
    span_days = span.days + (1 if span.seconds or span.microseconds else 0)
    if span_days > MAX_RANGE_DAYS:
        return ValidationResult.fail("Date range cannot exceed 2 years", "end")

    return ValidationResult.ok()


def validate_manual_time_entry(task_id: Optional[str], start: Optional[datetime],
                               end: Optional[datetime], description: Optional[str] = None,
                               now: Optional[datetime] = None) -> ValidationResult:
    if not task_id or not task_id.strip():
        return ValidationResult.fail("Please select a task", "task_id")
    if start is None or end is None:
        return ValidationResult.fail("Both start and end times are required", "started_at")
    start, end = align_timezones(start, end)
    if start >= end:
        return ValidationResult.fail("Start time must be before end time", "started_at")

    if (end - start).total_seconds() > MAX_ENTRY_HOURS * 3600:
        return ValidationResult.fail("Time entry cannot exceed 24 hours", "ended_at")

    if now is None:
        now = datetime.now(timezone.utc) if end.tzinfo else datetime.now()
    if start > now or end > now:
        return ValidationResult.fail("Time entries cannot be in the future", "ended_at")

    if description and len(description.strip()) > 200:
        return ValidationResult.fail("Description must be less than 200 characters", "notes")

    return ValidationResult.ok()


def validate_form(results: Iterable[ValidationResult]) -> ValidationResult:
    """Return the first failing result, or a passing one."""
    for result in results:
        if not result.is_valid:
            return result
    return ValidationResult.ok()


def sanitize_input(text: str) -> str:
    """Strip markup-significant characters and cap length at 1000."""
    return re.sub(r"[<>\"']", "", text.strip())[:1000]
