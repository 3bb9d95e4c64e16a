"""
Read access to trips and places, and the diary update that records a
generated Canva design.
"""

from datetime import datetime, timezone

from sqlmodel import Session, select

from tripmatrix.models import TravelDiary, Trip, TripPlace


def get_trip(*, session: Session, trip_id: int) -> Trip | None:
    return session.get(Trip, trip_id)


def get_trip_places(*, session: Session, trip_id: int) -> list[TripPlace]:
    """
    Get a trip's places in visit order.

    Args:
        session: Database session
        trip_id: Trip ID

    Returns:
        Places sorted by visited_at (oldest first)
    """
    statement = (
        select(TripPlace)
        .where(TripPlace.trip_id == trip_id)
        .order_by(TripPlace.visited_at, TripPlace.id)
    )
    return list(session.exec(statement).all())


def get_diary(*, session: Session, diary_id: int) -> TravelDiary | None:
    return session.get(TravelDiary, diary_id)


def update_diary_design(
    *,
    session: Session,
    diary: TravelDiary,
    design_id: str,
    design_url: str,
    editor_url: str,
) -> TravelDiary:
    """
    Record a generated Canva design on a diary.

    Only the Canva fields and updated_at are touched.
    """
    diary.canva_design_id = design_id
    diary.canva_design_url = design_url
    diary.canva_editor_url = editor_url
    diary.updated_at = datetime.now(timezone.utc)
    session.add(diary)
    session.commit()
    session.refresh(diary)
    return diary
