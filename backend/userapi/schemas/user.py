"""User Schemas — Pydantic models for the users API boundary.

Invariants:
    - UserCreate/UserUpdate fields are non-empty after stripping, max 255 chars
    - UserResponse never carries the password
    - id and created_at are server-assigned: not accepted on input

Design Decisions:
    - Plain str for email: uniqueness is a storage concern, format checks are out of scope
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _UserFields(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=1, max_length=255)

    @field_validator("name", "email")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty or whitespace")
        return v


class UserCreate(_UserFields):
    """Create payload — password stored as given (hashing not implemented)."""
    password: str = Field(min_length=1, max_length=255)


class UserUpdate(_UserFields):
    """Update payload — only name and email are mutable."""


class UserResponse(BaseModel):
    """Public user representation."""
    id: int
    name: str
    email: str
    created_at: datetime
