"""
Request and response schemas for Canva design generation.

Nothing here is persisted: a generated design is written onto the
TravelDiary it belongs to.
"""

from sqlmodel import Field, SQLModel


class DesignRequest(SQLModel):
    """Input schema for generating a design from a trip."""
    trip_id: int
    diary_id: int | None = None


class DesignResult(SQLModel):
    """A generated Canva design and its links."""
    design_id: str = Field(max_length=255)
    design_url: str
    editor_url: str
