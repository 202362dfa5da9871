"""Users — list/get/create/update/delete mapped directly onto SQL statements.

Invariants:
    - Each operation issues exactly one statement (create: existence check + insert)
    - Zero rows from get/update/delete → NotFoundError (404)
    - Duplicate email on create → ConflictError (400), including the race where the
      UNIQUE constraint rejects an insert that passed the existence check
    - The password column is never selected or returned

Design Decisions:
    - Routes are admin-only by intent; access control is not enforced yet and is
      only recorded in the OpenAPI document (x-access)
    - Database injected per request via get_database (no global pool)
"""

import logging

from fastapi import APIRouter, Depends, status

from userapi.api.deps import parse_body
from userapi.api.dispatch import ErrorForwardingRoute
from userapi.core.errors import ConflictError, IntegrityViolationError, NotFoundError
from userapi.infrastructure.database import Database, get_database
from userapi.schemas.common import ErrorEnvelope, MessageResponse
from userapi.schemas.user import UserCreate, UserResponse, UserUpdate

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/users",
    tags=["users"],
    route_class=ErrorForwardingRoute,
    responses={
        400: {"model": ErrorEnvelope},
        404: {"model": ErrorEnvelope},
        500: {"model": ErrorEnvelope},
    },
)

ADMIN_ONLY = {"x-access": "admin"}
USER_COLUMNS = "id, name, email, created_at"


@router.get("", response_model=list[UserResponse], openapi_extra=ADMIN_ONLY)
async def list_users(db: Database = Depends(get_database)):
    """Get all users."""
    result = await db.query(f"SELECT {USER_COLUMNS} FROM users")
    return result.rows


@router.get("/{user_id}", response_model=UserResponse, openapi_extra=ADMIN_ONLY)
async def get_user(user_id: int, db: Database = Depends(get_database)):
    """Get a single user."""
    result = await db.query(
        f"SELECT {USER_COLUMNS} FROM users WHERE id = :id", {"id": user_id},
    )
    if not result.rows:
        raise NotFoundError("User")
    return result.rows[0]


@router.post(
    "", response_model=UserResponse,
    status_code=status.HTTP_201_CREATED, openapi_extra=ADMIN_ONLY,
)
async def create_user(
    body: UserCreate = Depends(parse_body(UserCreate)),
    db: Database = Depends(get_database),
):
    """Create a user."""
    existing = await db.query(
        "SELECT id FROM users WHERE email = :email", {"email": body.email},
    )
    if existing.rows:
        raise ConflictError("User already exists")

    # TODO: hash the password once an auth module exists to verify it
    try:
        result = await db.query(
            "INSERT INTO users (name, email, password) "
            f"VALUES (:name, :email, :password) RETURNING {USER_COLUMNS}",
            {"name": body.name, "email": body.email, "password": body.password},
        )
    except IntegrityViolationError as e:
        raise ConflictError("User already exists") from e
    logger.info(f"Created user {result.rows[0]['id']}")
    return result.rows[0]


@router.put("/{user_id}", response_model=UserResponse, openapi_extra=ADMIN_ONLY)
async def update_user(
    user_id: int,
    body: UserUpdate = Depends(parse_body(UserUpdate)),
    db: Database = Depends(get_database),
):
    """Update a user's name and email."""
    result = await db.query(
        "UPDATE users SET name = :name, email = :email WHERE id = :id "
        f"RETURNING {USER_COLUMNS}",
        {"name": body.name, "email": body.email, "id": user_id},
    )
    if not result.rows:
        raise NotFoundError("User")
    return result.rows[0]


@router.delete(
    "/{user_id}", response_model=MessageResponse, openapi_extra=ADMIN_ONLY,
)
async def delete_user(user_id: int, db: Database = Depends(get_database)):
    """Delete a user."""
    result = await db.query(
        "DELETE FROM users WHERE id = :id RETURNING id", {"id": user_id},
    )
    if not result.rows:
        raise NotFoundError("User")
    return MessageResponse(message="User removed")
