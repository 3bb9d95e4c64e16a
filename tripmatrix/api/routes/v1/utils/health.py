import logging

from fastapi import APIRouter
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from tripmatrix.api.deps import SessionDep
from tripmatrix.core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health-check")
async def health_check(session: SessionDep):
    """
    Health check endpoint that verifies database connectivity and reports
    whether the Canva integration is configured.
    """
    try:
        session.exec(select(1)).first()
        db_status = "healthy"
        db_message = "Database connection successful"
    except SQLAlchemyError as e:
        logger.error("Database health check failed: %s", e)
        db_status = "unhealthy"
        db_message = "Database connection failed"

    return {
        "status": db_status,
        "message": "Backend is running",
        "version": settings.APP_VERSION,
        "database": {"status": db_status, "message": db_message},
        "canva": {
            "configured": bool(settings.CANVA_CLIENT_ID and settings.CANVA_CLIENT_SECRET),
            "template_configured": bool(settings.CANVA_BRAND_TEMPLATE_ID),
        },
    }
