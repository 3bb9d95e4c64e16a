"""
CanvaToken model for storing a user's Canva Connect tokens.

This module contains:
- CanvaToken database model (encrypted tokens, one row per user)
- CanvaConnectionStatus: Output schema (never exposes tokens)
"""

from datetime import datetime, timedelta, timezone

from sqlalchemy import Column, DateTime, LargeBinary
from sqlmodel import Field, SQLModel


class CanvaToken(SQLModel, table=True):
    """
    Canva OAuth tokens for one user.

    There is no history: a new authorization overwrites the row and a
    refresh mutates it in place. Tokens are Fernet-encrypted at rest.

    Attributes:
        user_id: Owner (unique).
        access_token_encrypted: Encrypted access token.
        refresh_token_encrypted: Encrypted refresh token (optional).
        expires_at: Access token expiry (UTC).
        scopes: Space-separated scopes granted.
        token_type: Token type, typically "Bearer".
    """

    __tablename__ = "canva_tokens"

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", unique=True, index=True, ondelete="CASCADE")

    access_token_encrypted: bytes = Field(sa_column=Column(LargeBinary, nullable=False))
    refresh_token_encrypted: bytes | None = Field(
        default=None, sa_column=Column(LargeBinary, nullable=True)
    )

    expires_at: datetime = Field(sa_type=DateTime(timezone=True))
    scopes: str | None = Field(default=None, max_length=1000)
    token_type: str = Field(default="Bearer", max_length=50)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_type=DateTime(timezone=True),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_type=DateTime(timezone=True),
    )

    def expires_at_utc(self) -> datetime:
        expires = self.expires_at
        # Handle naive datetime (e.g., from SQLite in tests)
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return expires

    def needs_refresh(self, *, skew: timedelta, now: datetime | None = None) -> bool:
        """
        Check whether the access token is inside the refresh window.

        A token is usable only while it stays valid for at least `skew`
        after `now`; one expiring exactly at now + skew is still usable.
        """
        now = now or datetime.now(timezone.utc)
        return self.expires_at_utc() - skew < now


class CanvaConnectionStatus(SQLModel):
    """Public view of a user's Canva connection; never carries tokens."""

    connected: bool
    expires_at: datetime | None = None
    has_refresh_token: bool = False
