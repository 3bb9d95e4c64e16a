"""
Models package for database models and schemas.

This package contains SQLModel database models and Pydantic schemas:
- User models and schemas
- Canva authorization state and token models
- Trip, TripPlace and TravelDiary (owned by the trip-logging side)
- Shared base models

All models are re-exported here for convenience:

    from tripmatrix.models import User, CanvaToken, CanvaAuthorizationState, Trip

Or import from specific modules for clarity:

    from tripmatrix.models.canva_token import CanvaToken, CanvaConnectionStatus
"""

# Re-export SQLModel for metadata creation
from sqlmodel import SQLModel

# Base models
from tripmatrix.models.base import Message

# User models
from tripmatrix.models.user import (
    User,
    UserBase,
)

# Canva models
from tripmatrix.models.canva_design import (
    DesignRequest,
    DesignResult,
)
from tripmatrix.models.canva_state import (
    CanvaAuthorizationState,
    STATE_EXPIRATION_MINUTES,
    STATE_TTL,
)
from tripmatrix.models.canva_token import (
    CanvaConnectionStatus,
    CanvaToken,
)

# Trip models
from tripmatrix.models.trip import (
    TravelDiary,
    Trip,
    TripPlace,
)

__all__ = [
    "SQLModel",
    # Base
    "Message",
    # User
    "User",
    "UserBase",
    # Canva
    "CanvaAuthorizationState",
    "CanvaConnectionStatus",
    "CanvaToken",
    "DesignRequest",
    "DesignResult",
    "STATE_EXPIRATION_MINUTES",
    "STATE_TTL",
    # Trip
    "TravelDiary",
    "Trip",
    "TripPlace",
]
