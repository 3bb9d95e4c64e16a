import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tripmatrix.api.routes.v1.router import router as api_router
from tripmatrix.core.config import settings
from tripmatrix.core.db import get_session, init_db
from tripmatrix.services.canva_state_cleanup import run_cleanup_task

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and run the Canva state cleanup task for the app's lifetime."""
    init_db()

    stop_event = asyncio.Event()
    cleanup_task = asyncio.create_task(
        run_cleanup_task(get_session=get_session, stop_event=stop_event)
    )
    logger.info("%s %s started", settings.PROJECT_NAME, settings.APP_VERSION)

    try:
        yield
    finally:
        stop_event.set()
        try:
            await asyncio.wait_for(cleanup_task, timeout=5)
        except asyncio.TimeoutError:
            cleanup_task.cancel()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.APP_VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

if settings.all_cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.all_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(api_router, prefix=settings.API_V1_STR)
