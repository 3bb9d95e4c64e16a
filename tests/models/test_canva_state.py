"""
Tests for CanvaAuthorizationState model.
"""

from datetime import datetime, timedelta, timezone

from sqlmodel import Session

from tripmatrix.models import CanvaAuthorizationState, STATE_EXPIRATION_MINUTES, STATE_TTL


class TestCanvaAuthorizationStateModel:
    """Tests for CanvaAuthorizationState database model."""

    def test_issue_sets_exact_ttl(self):
        """expires_at is exactly 10 minutes after created_at."""
        now = datetime(2024, 5, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)
        auth_state = CanvaAuthorizationState.issue(
            state="state-ttl",
            user_id=1,
            code_verifier="verifier",
            redirect_uri="http://localhost:8000/api/v1/canva/callback",
            now=now,
        )

        assert auth_state.created_at == now
        assert auth_state.expires_at - auth_state.created_at == timedelta(minutes=10)
        assert STATE_TTL == timedelta(minutes=STATE_EXPIRATION_MINUTES)

    def test_round_trips_through_database(self, session: Session):
        """A stored state keeps its verifier, diary and redirect URI."""
        auth_state = CanvaAuthorizationState.issue(
            state="state-db",
            user_id=7,
            code_verifier="verifier-abc",
            redirect_uri="http://localhost:8000/api/v1/canva/callback",
            diary_id=42,
        )
        session.add(auth_state)
        session.commit()

        retrieved = session.get(CanvaAuthorizationState, "state-db")
        assert retrieved is not None
        assert retrieved.user_id == 7
        assert retrieved.diary_id == 42
        assert retrieved.code_verifier == "verifier-abc"
        assert retrieved.redirect_uri == "http://localhost:8000/api/v1/canva/callback"

    def test_is_expired_false_when_fresh(self):
        auth_state = CanvaAuthorizationState.issue(
            state="fresh", user_id=1, code_verifier="v", redirect_uri="http://cb"
        )
        assert auth_state.is_expired() is False

    def test_is_expired_true_at_expiry(self):
        """A state is expired from the instant expires_at is reached."""
        now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        auth_state = CanvaAuthorizationState.issue(
            state="boundary", user_id=1, code_verifier="v", redirect_uri="http://cb", now=now
        )

        assert auth_state.is_expired(now + STATE_TTL - timedelta(seconds=1)) is False
        assert auth_state.is_expired(now + STATE_TTL) is True

    def test_is_expired_handles_naive_datetime_from_sqlite(self, session: Session):
        old = datetime.now(timezone.utc) - timedelta(minutes=STATE_EXPIRATION_MINUTES + 1)
        auth_state = CanvaAuthorizationState.issue(
            state="naive", user_id=1, code_verifier="v", redirect_uri="http://cb", now=old
        )
        session.add(auth_state)
        session.commit()
        session.expire_all()

        retrieved = session.get(CanvaAuthorizationState, "naive")
        assert retrieved.is_expired() is True
