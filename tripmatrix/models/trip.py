"""
Trip, TripPlace and TravelDiary models.

These tables are owned by the trip-logging side of the application. The
design integration only reads trips and places, and writes the Canva
fields of a diary once a design has been generated.
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

# Only completed trips can be turned into a design
TRIP_STATUS_COMPLETED = "completed"


class Trip(SQLModel, table=True):
    """Trip database model (read-only here)."""
    id: int | None = Field(default=None, primary_key=True)
    creator_id: int = Field(foreign_key="user.id", index=True)
    title: str = Field(max_length=255)
    description: str | None = None
    cover_image: str | None = Field(default=None, max_length=2048)
    status: str = Field(default=TRIP_STATUS_COMPLETED, max_length=20)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_type=DateTime(timezone=True),
    )


class TripPlace(SQLModel, table=True):
    """A visited place (a "step") within a trip."""
    __tablename__ = "trip_place"

    id: int | None = Field(default=None, primary_key=True)
    trip_id: int = Field(foreign_key="trip.id", index=True)
    name: str = Field(max_length=255)
    visited_at: datetime = Field(sa_type=DateTime(timezone=True), index=True)
    rating: int | None = Field(default=None, ge=1, le=5)
    comment: str | None = None
    rewritten_comment: str | None = None
    # Ordered image URLs
    images: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))


class TravelDiary(SQLModel, table=True):
    """Diary record for a trip; receives the generated Canva design links."""
    __tablename__ = "travel_diary"

    id: int | None = Field(default=None, primary_key=True)
    trip_id: int = Field(foreign_key="trip.id", index=True)
    title: str = Field(max_length=255)
    description: str | None = None
    cover_image_url: str | None = Field(default=None, max_length=2048)
    canva_design_id: str | None = Field(default=None, max_length=255)
    canva_design_url: str | None = Field(default=None, max_length=2048)
    canva_editor_url: str | None = Field(default=None, max_length=2048)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_type=DateTime(timezone=True),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_type=DateTime(timezone=True),
    )
