"""
Tests for Canva token CRUD operations.
"""

from datetime import datetime, timedelta, timezone

from sqlmodel import Session

from tripmatrix.crud.canva_token import (
    delete_canva_token,
    get_canva_token,
    get_decrypted_tokens,
    update_refreshed_token,
    upsert_canva_token,
)
from tripmatrix.models import User

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class TestUpsertCanvaToken:
    """Tests for upsert_canva_token."""

    def test_creates_encrypted_token(self, session: Session, user: User):
        token = upsert_canva_token(
            session=session,
            user_id=user.id,
            access_token="access-1",
            refresh_token="refresh-1",
            expires_in=3600,
            scopes="design:content:write",
            now=NOW,
        )

        assert token.id is not None
        assert b"access-1" not in token.access_token_encrypted
        assert token.expires_at_utc() == NOW + timedelta(hours=1)
        assert get_decrypted_tokens(token) == {
            "access_token": "access-1",
            "refresh_token": "refresh-1",
        }

    def test_overwrites_existing_row(self, session: Session, user: User):
        """A new authorization replaces the row; no history is kept."""
        first = upsert_canva_token(
            session=session, user_id=user.id, access_token="old", refresh_token="old-r",
            expires_in=60,
        )
        second = upsert_canva_token(
            session=session, user_id=user.id, access_token="new", refresh_token=None,
            expires_in=3600,
        )

        assert second.id == first.id
        tokens = get_decrypted_tokens(get_canva_token(session=session, user_id=user.id))
        assert tokens == {"access_token": "new", "refresh_token": None}


class TestUpdateRefreshedToken:
    """Tests for update_refreshed_token."""

    def test_keeps_refresh_token_when_none_returned(self, session: Session, user: User):
        token = upsert_canva_token(
            session=session, user_id=user.id, access_token="a1", refresh_token="r1",
            expires_in=60, now=NOW,
        )

        update_refreshed_token(
            session=session, token=token, access_token="a2", expires_in=14400, now=NOW,
        )

        tokens = get_decrypted_tokens(token)
        assert tokens["access_token"] == "a2"
        assert tokens["refresh_token"] == "r1"
        assert token.expires_at_utc() == NOW + timedelta(hours=4)

    def test_rotates_refresh_token(self, session: Session, user: User):
        token = upsert_canva_token(
            session=session, user_id=user.id, access_token="a1", refresh_token="r1",
            expires_in=60,
        )

        update_refreshed_token(
            session=session, token=token, access_token="a2", refresh_token="r2", expires_in=60,
        )

        assert get_decrypted_tokens(token)["refresh_token"] == "r2"


class TestDeleteCanvaToken:
    """Tests for delete_canva_token."""

    def test_delete_is_idempotent(self, session: Session, user: User):
        upsert_canva_token(
            session=session, user_id=user.id, access_token="a", refresh_token=None,
            expires_in=60,
        )

        assert delete_canva_token(session=session, user_id=user.id) is True
        assert delete_canva_token(session=session, user_id=user.id) is False
        assert get_canva_token(session=session, user_id=user.id) is None
