"""Pydantic schemas for the authenticated user."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class UserResponse(BaseModel):
    id: int
    username: str
    email: str | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)
