from contextlib import contextmanager
from typing import Generator

from sqlmodel import Session, SQLModel, create_engine

from tripmatrix.core.config import settings

# Create database engine
engine = create_engine(str(settings.SQLALCHEMY_DATABASE_URI))

# make sure all SQLModel models are imported (tripmatrix.models) before initializing DB
# otherwise, SQLModel might fail to initialize relationships properly
from tripmatrix.models import CanvaAuthorizationState, CanvaToken, User  # noqa: F401


def init_db(bind=None) -> None:
    """Create any missing tables."""
    SQLModel.metadata.create_all(bind or engine)


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """
    Get a database session context manager.

    This is used for background tasks that need database access
    outside of FastAPI's dependency injection.

    Usage:
        with get_session() as session:
            session.exec(select(User)).all()
    """
    with Session(engine) as session:
        yield session
