"""
Canva API routes.

Provides endpoints for:
- Starting the Canva OAuth flow
- Handling the OAuth callback from Canva
- Connection status and disconnect
- Generating a Canva design from a trip
"""

import logging
from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel
from sqlmodel import Session

from tripmatrix.api.deps import CurrentUser, SessionDep
from tripmatrix.core.config import settings
from tripmatrix.core.errors import (
    DesignIntegrationError,
    NetworkError,
    NotConnected,
    ReauthorizationRequired,
)
from tripmatrix.crud.trip import get_diary, get_trip
from tripmatrix.models import CanvaConnectionStatus, DesignRequest, DesignResult, Message
from tripmatrix.models.trip import TRIP_STATUS_COMPLETED
from tripmatrix.services.canva import (
    DesignGenerator,
    begin_authorization,
    complete_authorization,
    disconnect,
    generate_diary_design,
    get_connection_status,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/canva", tags=["canva"])


class AuthorizationStartResponse(BaseModel):
    """Response for the authorization start endpoint."""

    authorization_url: str


def get_design_generator() -> DesignGenerator:
    return DesignGenerator()


DesignGeneratorDep = Annotated[DesignGenerator, Depends(get_design_generator)]


def _callback_uri(request: Request) -> str:
    base_url = str(request.base_url).rstrip("/")
    return f"{base_url}{settings.API_V1_STR}/canva/callback"


def _to_http_exception(
    error: DesignIntegrationError,
    *,
    request: Request,
    session: Session,
    user_id: int,
    diary_id: int | None = None,
) -> HTTPException:
    """Translate an integration error into an HTTPException with a {code, message} detail."""
    detail: dict[str, str] = error.to_detail()

    # Offer a way back in when the user has to (re)connect
    if isinstance(error, (NotConnected, ReauthorizationRequired)):
        try:
            detail["authorization_url"] = begin_authorization(
                session=session,
                user_id=user_id,
                diary_id=diary_id,
                redirect_uri=_callback_uri(request),
            )
        except DesignIntegrationError as e:
            logger.warning("Could not build a Canva reauthorization link: %s", e.message)

    return HTTPException(status_code=error.http_status, detail=detail)


def _build_trips_redirect(
    *,
    diary_id: int | None = None,
    error_code: str | None = None,
) -> RedirectResponse:
    """Build redirect URL back to the frontend trips pages with status."""
    base_url = settings.FRONTEND_HOST.rstrip("/")

    if error_code:
        redirect_url = f"{base_url}/trips?canva_error={quote(error_code)}"
    elif diary_id is not None:
        redirect_url = f"{base_url}/trips/{diary_id}/diary?canva_auth=success"
    else:
        redirect_url = f"{base_url}/trips?canva_auth=success"

    return RedirectResponse(url=redirect_url, status_code=status.HTTP_302_FOUND)


@router.get("/auth", response_model=AuthorizationStartResponse)
async def start_authorization(
    request: Request,
    current_user: CurrentUser,
    session: SessionDep,
    diary_id: int | None = None,
) -> AuthorizationStartResponse:
    """
    Start the Canva OAuth flow.

    Returns the authorization URL to redirect the user to. State and the
    PKCE verifier are stored in the database for multi-replica support.
    """
    try:
        authorization_url = begin_authorization(
            session=session,
            user_id=current_user.id,
            diary_id=diary_id,
            redirect_uri=_callback_uri(request),
        )
    except DesignIntegrationError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_detail())

    return AuthorizationStartResponse(authorization_url=authorization_url)


@router.get("/callback")
async def oauth_callback(
    session: SessionDep,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
):
    """
    Handle the OAuth callback from Canva.

    This endpoint does NOT require CurrentUser authentication: the request
    is Canva's redirect, and the user is identified by the stored state.

    Every outcome is a redirect to the frontend, with canva_auth=success
    or canva_error=<code>.
    """
    if error:
        logger.warning("Canva authorization denied: %s %s", error, error_description or "")
        return _build_trips_redirect(error_code=error)

    if not code or not state:
        return _build_trips_redirect(error_code="missing_code_or_state")

    try:
        auth_state = await complete_authorization(session=session, code=code, state=state)
    except NetworkError as e:
        logger.error("Canva token exchange failed: %s", e.message)
        return _build_trips_redirect(error_code=e.message)
    except DesignIntegrationError as e:
        return _build_trips_redirect(error_code=e.code)

    return _build_trips_redirect(diary_id=auth_state.diary_id)


@router.get("/status", response_model=CanvaConnectionStatus)
async def read_status(current_user: CurrentUser, session: SessionDep) -> CanvaConnectionStatus:
    """Get the current user's Canva connection status (never the token)."""
    return get_connection_status(session=session, user_id=current_user.id)


@router.delete("/connection", response_model=Message)
async def delete_connection(current_user: CurrentUser, session: SessionDep) -> Message:
    """
    Disconnect Canva.

    Removes the stored tokens. Succeeds whether or not a connection existed.
    """
    try:
        deleted = disconnect(session=session, user_id=current_user.id)
    except DesignIntegrationError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_detail())

    if not deleted:
        return Message(message="Canva was not connected")
    return Message(message="Canva disconnected")


@router.post("/designs", response_model=DesignResult)
async def create_design(
    design_in: DesignRequest,
    request: Request,
    current_user: CurrentUser,
    session: SessionDep,
    generator: DesignGeneratorDep,
) -> DesignResult:
    """
    Generate a Canva design from a trip.

    Blocks until the design is ready, fails, or times out. When diary_id
    is given, the design links are saved on that diary.
    """
    trip = get_trip(session=session, trip_id=design_in.trip_id)
    if not trip:
        raise HTTPException(status_code=404, detail="Trip not found")
    if trip.creator_id != current_user.id:
        raise HTTPException(status_code=403, detail="Not enough permissions")
    if trip.status != TRIP_STATUS_COMPLETED:
        raise HTTPException(
            status_code=400,
            detail={
                "code": "trip_not_completed",
                "message": "Trip must be completed before generating a diary",
            },
        )

    if design_in.diary_id is not None:
        diary = get_diary(session=session, diary_id=design_in.diary_id)
        if not diary or diary.trip_id != trip.id:
            raise HTTPException(status_code=404, detail="Diary not found")

    try:
        return await generate_diary_design(
            session=session,
            user_id=current_user.id,
            trip_id=trip.id,
            diary_id=design_in.diary_id,
            generator=generator,
        )
    except DesignIntegrationError as e:
        raise _to_http_exception(
            e,
            request=request,
            session=session,
            user_id=current_user.id,
            diary_id=design_in.diary_id,
        )
