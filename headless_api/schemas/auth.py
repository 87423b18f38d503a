"""Pydantic schemas for the token API."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class BearerTokenResponse(BaseModel):
    """Response after a successful login."""

    bearer: str = Field(description="Opaque bearer token for the Authorization header")


class EmptyResponse(BaseModel):
    """Logout response; intentionally has no fields."""


class UserResponse(BaseModel):
    """The authenticated user."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
