"""
CRUD operations for User model.
"""

from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from tripmatrix.models import User


def get_user_by_email(*, session: Session, email: str) -> User | None:
    statement = select(User).where(User.email == email)
    return session.exec(statement).first()


def get_user_by_username(*, session: Session, username: str) -> User | None:
    statement = select(User).where(User.username == username)
    return session.exec(statement).first()


def _touch_last_login(session: Session, user: User) -> User:
    user.last_login = datetime.now(timezone.utc)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def get_or_create_user(
    *,
    session: Session,
    username: str,
    email: str,
) -> tuple[User, bool]:
    """
    Get the user identified by the proxy headers, creating it on first sight.

    Lookup is by username first, then by email, so a renamed account keeps
    its Canva connection. Updates last_login for existing users.

    Returns:
        Tuple of (User, created)
    """
    user = get_user_by_username(session=session, username=username)
    if user:
        user.email = email
        return _touch_last_login(session, user), False

    user = get_user_by_email(session=session, email=email)
    if user:
        user.username = username
        return _touch_last_login(session, user), False

    try:
        user = User(username=username, email=email, active=True)
        session.add(user)
        session.commit()
        session.refresh(user)
        return user, True
    except IntegrityError:
        # Another request created the same user concurrently
        session.rollback()
        user = get_user_by_email(session=session, email=email) or get_user_by_username(
            session=session, username=username
        )
        if user is None:
            raise
        return _touch_last_login(session, user), False
