"""
FastAPI dependencies shared by the API routes.

Authentication is done by the OAuth proxy in front of this service; it
forwards the user's identity in X-Forwarded-Preferred-Username and
X-Forwarded-Email. In local development, requests without those headers
are treated as "dev-user".
"""

import logging
from collections.abc import Generator
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlmodel import Session

from tripmatrix.core.config import settings
from tripmatrix.core.db import engine
from tripmatrix.crud.user import get_or_create_user
from tripmatrix.models import User

logger = logging.getLogger(__name__)

DEV_USERNAME = "dev-user"
DEV_EMAIL = "dev-user@example.com"


def get_db() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


SessionDep = Annotated[Session, Depends(get_db)]


def get_current_user(
    session: SessionDep,
    x_forwarded_preferred_username: Annotated[str | None, Header()] = None,
    x_forwarded_email: Annotated[str | None, Header()] = None,
) -> User:
    """Resolve the current user from the proxy headers."""
    username = x_forwarded_preferred_username
    email = x_forwarded_email

    if not username or not email:
        if settings.ENVIRONMENT != "local":
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Not authenticated",
            )
        username = username or DEV_USERNAME
        email = email or DEV_EMAIL

    user, created = get_or_create_user(session=session, username=username, email=email)
    if created:
        logger.info("Created user %s", username)

    if not user.active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user",
        )
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]
