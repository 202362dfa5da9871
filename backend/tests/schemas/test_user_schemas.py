"""User Schemas — boundary validation for create/update payloads."""

from datetime import datetime

import pytest
from pydantic import ValidationError

from userapi.schemas.user import UserCreate, UserResponse, UserUpdate


def test_create_strips_whitespace():
    body = UserCreate(name="  Ada ", email=" ada@x.com ", password="pw")
    assert body.name == "Ada"
    assert body.email == "ada@x.com"


@pytest.mark.parametrize("field", ["name", "email", "password"])
def test_create_requires_every_field(field):
    data = {"name": "A", "email": "a@x.com", "password": "p"}
    del data[field]
    with pytest.raises(ValidationError):
        UserCreate(**data)


def test_blank_name_rejected():
    with pytest.raises(ValidationError):
        UserUpdate(name="   ", email="a@x.com")


def test_overlong_email_rejected():
    with pytest.raises(ValidationError):
        UserUpdate(name="A", email="x" * 256)


def test_server_assigned_fields_are_ignored_on_input():
    body = UserCreate.model_validate(
        {"name": "A", "email": "a@x.com", "password": "p", "id": 7, "created_at": "x"},
    )
    assert not hasattr(body, "id")
    assert not hasattr(body, "created_at")


def test_update_has_no_password():
    assert "password" not in UserUpdate.model_fields


def test_response_drops_password_and_parses_timestamp():
    user = UserResponse.model_validate({
        "id": 1, "name": "A", "email": "a@x.com",
        "password": "p", "created_at": "2026-10-19 18:00:00",
    })
    assert isinstance(user.created_at, datetime)
    assert "password" not in user.model_dump()
