"""
Unit tests for the error taxonomy, message lookup and retry helpers.
"""

import pytest
from pathlib import Path
from unittest.mock import MagicMock

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent))

from timetrack.utils.errors import (
    GENERIC_ERROR_MESSAGE,
    ErrorCodes,
    IdentityError,
    NotFoundError,
    RecordStoreError,
    ValidationError,
    get_error_message,
    handle_operation,
    is_network_error,
    is_retryable_error,
    retry_operation,
)


class TestErrorMessages:

    def test_identity_codes_map_to_messages(self):
        error = IdentityError(ErrorCodes.AUTH_WRONG_PASSWORD)
        assert get_error_message(error) == "Incorrect password. Please try again."

    def test_unknown_identity_code_gets_generic_message(self):
        error = IdentityError("auth/something-new")

        assert error.message == GENERIC_ERROR_MESSAGE
        assert get_error_message(error) == GENERIC_ERROR_MESSAGE

    def test_identity_error_keeps_custom_message(self):
        error = IdentityError(ErrorCodes.AUTH_WEAK_PASSWORD, "Password is required")
        assert error.message == "Password is required"

    def test_other_errors_keep_their_text(self):
        assert get_error_message(ValidationError("Bad title", "title")) == "Bad title"
        assert get_error_message(RuntimeError("disk full")) == "disk full"
        assert get_error_message("plain text") == "plain text"

    def test_non_error_values_get_generic_message(self):
        assert get_error_message(None) == GENERIC_ERROR_MESSAGE
        assert get_error_message(42) == GENERIC_ERROR_MESSAGE
        assert get_error_message(Exception()) == GENERIC_ERROR_MESSAGE

    def test_not_found_code(self):
        assert NotFoundError("Task t1 not found").code == ErrorCodes.STORE_NOT_FOUND

    def test_classification(self):
        assert is_retryable_error(RecordStoreError("x", ErrorCodes.STORE_UNAVAILABLE))
        assert not is_retryable_error(NotFoundError("x"))
        assert not is_retryable_error(ValueError("x"))
        assert is_network_error(IdentityError(ErrorCodes.AUTH_NETWORK_REQUEST_FAILED))
        assert not is_network_error(IdentityError(ErrorCodes.AUTH_WRONG_PASSWORD))


class TestHandleOperation:

    def test_success_returns_data(self):
        result = handle_operation(lambda: 5)

        assert result.ok
        assert result.data == 5

    def test_application_error_is_captured(self):
        def fail():
            raise ValidationError("Bad title", "title")

        result = handle_operation(fail, context="create_task", user_id="u1")

        assert not result.ok
        assert result.error.message == "Bad title"
        assert result.error.code == "validation"
        assert result.error.context == "create_task"
        assert result.error.user_id == "u1"

    def test_unexpected_errors_propagate(self):
        def fail():
            raise KeyError("boom")

        with pytest.raises(KeyError):
            handle_operation(fail)


class TestRetryOperation:

    def test_returns_on_first_success(self):
        sleep = MagicMock()
        assert retry_operation(lambda: "ok", sleep=sleep) == "ok"
        sleep.assert_not_called()

    def test_retries_with_linear_backoff(self):
        sleep = MagicMock()
        operation = MagicMock(side_effect=[
            RecordStoreError("busy", ErrorCodes.STORE_UNAVAILABLE),
            RecordStoreError("busy", ErrorCodes.STORE_UNAVAILABLE),
            "done",
        ])

        assert retry_operation(operation, max_retries=3, delay=0.5, sleep=sleep) == "done"
        assert operation.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [0.5, 1.0]

    def test_raises_last_error_after_max_retries(self):
        sleep = MagicMock()
        operation = MagicMock(side_effect=RecordStoreError("busy", ErrorCodes.STORE_UNAVAILABLE))

        with pytest.raises(RecordStoreError):
            retry_operation(operation, max_retries=3, sleep=sleep)

        assert operation.call_count == 3
        assert sleep.call_count == 2

    def test_non_retryable_raised_immediately(self):
        sleep = MagicMock()
        operation = MagicMock(side_effect=NotFoundError("missing"))

        with pytest.raises(NotFoundError):
            retry_operation(operation, sleep=sleep)

        assert operation.call_count == 1
        sleep.assert_not_called()

    def test_unrelated_exceptions_are_not_retried(self):
        operation = MagicMock(side_effect=ValueError("bad"))

        with pytest.raises(ValueError):
            retry_operation(operation, sleep=MagicMock())

        assert operation.call_count == 1
