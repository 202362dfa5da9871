"""Common Schemas — response payloads shared across routers."""

from pydantic import BaseModel


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    status: str
    message: str


class ErrorEnvelope(BaseModel):
    """Shape of every error body (documented in OpenAPI)."""
    success: bool = False
    status: int
    message: str
    stack: str | None = None
