"""Error Hierarchy — status codes, envelope shape and stack handling."""

import pytest

from userapi.core.errors import (
    STACK_PLACEHOLDER, ApiError, ConflictError, DatabaseError, InternalError,
    IntegrityViolationError, NotFoundError, RateLimitExceededError,
    build_envelope, format_stack,
)


@pytest.mark.parametrize("error,status", [
    (NotFoundError("User"), 404),
    (ConflictError("User already exists"), 400),
    (RateLimitExceededError(30), 429),
    (DatabaseError("boom"), 500),
    (IntegrityViolationError("duplicate key"), 500),
    (InternalError(), 500),
])
def test_status_codes(error, status):
    assert error.http_status == status


def test_errors_without_explicit_status_default_to_500():
    assert ApiError("something broke").http_status == 500


def test_integrity_violation_is_a_database_error():
    assert isinstance(IntegrityViolationError("dup"), DatabaseError)


def test_not_found_message():
    assert NotFoundError("User").message == "User not found"


def test_envelope_shape_outside_production():
    try:
        raise ConflictError("User already exists")
    except ConflictError as e:
        envelope = e.to_response(production=False)

    assert envelope["success"] is False
    assert envelope["status"] == 400
    assert envelope["message"] == "User already exists"
    assert "ConflictError" in envelope["stack"]


def test_envelope_hides_stack_in_production():
    envelope = NotFoundError("User").to_response(production=True)
    assert envelope["stack"] == STACK_PLACEHOLDER


def test_internal_error_reports_cause_traceback():
    try:
        try:
            raise KeyError("missing")
        except KeyError as cause:
            raise InternalError(str(cause)) from cause
    except InternalError as e:
        envelope = e.to_response(production=False)

    assert "KeyError" in envelope["stack"]
    assert envelope["message"] == "'missing'"


def test_internal_error_message_hidden_in_production():
    envelope = InternalError("secret detail").to_response(production=True)
    assert envelope["message"] == "Internal Server Error"


def test_empty_message_falls_back_to_default():
    assert build_envelope(500, "", None, False)["message"] == "Internal Server Error"


def test_envelope_extra_fields():
    envelope = build_envelope(400, "bad", None, False, details=[{"field": "x"}])
    assert envelope["details"] == [{"field": "x"}]


def test_format_stack_includes_exception_line():
    try:
        raise ValueError("nope")
    except ValueError as e:
        assert format_stack(e).rstrip().endswith("ValueError: nope")
