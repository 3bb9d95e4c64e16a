"""
CRUD operations module.
"""

from tripmatrix.crud.user import (
    get_or_create_user,
    get_user_by_email,
    get_user_by_username,
)

from tripmatrix.crud.canva_state import (
    cleanup_expired_authorization_states,
    consume_authorization_state,
    get_authorization_state,
    store_authorization_state,
)

from tripmatrix.crud.canva_token import (
    delete_canva_token,
    get_canva_token,
    get_decrypted_tokens,
    update_refreshed_token,
    upsert_canva_token,
)

from tripmatrix.crud.trip import (
    get_diary,
    get_trip,
    get_trip_places,
    update_diary_design,
)

__all__ = [
    # User
    "get_or_create_user",
    "get_user_by_email",
    "get_user_by_username",
    # Canva authorization state
    "cleanup_expired_authorization_states",
    "consume_authorization_state",
    "get_authorization_state",
    "store_authorization_state",
    # Canva tokens
    "delete_canva_token",
    "get_canva_token",
    "get_decrypted_tokens",
    "update_refreshed_token",
    "upsert_canva_token",
    # Trips
    "get_diary",
    "get_trip",
    "get_trip_places",
    "update_diary_design",
]
