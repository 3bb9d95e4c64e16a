"""
CanvaAuthorizationState model for in-flight Canva OAuth authorizations.

Rows live in the database rather than process memory so that whichever
replica receives the OAuth redirect can complete the exchange.
"""

from datetime import datetime, timedelta, timezone

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


# OAuth state lifetime (10 minutes)
STATE_EXPIRATION_MINUTES = 10
STATE_TTL = timedelta(minutes=STATE_EXPIRATION_MINUTES)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CanvaAuthorizationState(SQLModel, table=True):
    """
    Pending Canva authorization, keyed by the anti-CSRF state token.

    Attributes:
        state: Random URL-safe token sent to Canva and echoed back (primary key)
        user_id: User who started the flow
        diary_id: Diary the user was working on, used for the post-callback redirect
        code_verifier: PKCE secret matching the challenge sent to Canva
        redirect_uri: Callback URL sent with the authorization request; the
            code exchange must repeat it exactly
        created_at: Creation time
        expires_at: created_at + STATE_TTL
    """

    __tablename__ = "canva_oauth_states"

    state: str = Field(primary_key=True, max_length=128)
    user_id: int = Field(index=True)
    diary_id: int | None = Field(default=None)
    code_verifier: str = Field(max_length=128)
    redirect_uri: str = Field(max_length=500)
    created_at: datetime = Field(sa_type=DateTime(timezone=True))
    expires_at: datetime = Field(sa_type=DateTime(timezone=True), index=True)

    @classmethod
    def issue(
        cls,
        *,
        state: str,
        user_id: int,
        code_verifier: str,
        redirect_uri: str,
        diary_id: int | None = None,
        now: datetime | None = None,
    ) -> "CanvaAuthorizationState":
        """Build a state row whose expiry is exactly STATE_TTL after creation."""
        created_at = now or datetime.now(timezone.utc)
        return cls(
            state=state,
            user_id=user_id,
            diary_id=diary_id,
            code_verifier=code_verifier,
            redirect_uri=redirect_uri,
            created_at=created_at,
            expires_at=created_at + STATE_TTL,
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        """True once `now` has reached expires_at."""
        now = now or datetime.now(timezone.utc)
        return now >= _as_utc(self.expires_at)
