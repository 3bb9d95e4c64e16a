"""
User model and related schemas.

Users are provisioned from the authenticating proxy's headers on first
request; there is no password or signup flow in this service.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class UserBase(SQLModel):
    """Shared properties for User."""
    username: str = Field(unique=True, index=True, max_length=255)
    email: str = Field(unique=True, index=True, max_length=255)
    full_name: str | None = Field(default=None, max_length=255)
    active: bool = True
    admin: bool = False


class User(UserBase, table=True):
    """User database model."""
    id: int | None = Field(default=None, primary_key=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_type=DateTime(timezone=True),
    )
    last_login: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))

