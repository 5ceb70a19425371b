from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from studydesk.config import get_settings
from studydesk.database import engine
from studydesk.exceptions import StudyDeskError
from studydesk.utils.messages import get_language, msg

settings = get_settings()
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifespan: startup and shutdown events."""
    # Startup: create all database tables if they don't exist
    from studydesk.database import Base
    from studydesk import models  # noqa: F401 - Import models to register them with Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield
    # Shutdown: dispose the async engine connection pool
    await engine.dispose()


app = FastAPI(
    title="StudyDesk",
    description="Personal study notes, links and projects",
    version="0.1.0",
    lifespan=lifespan,
)

# --- CORS Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StudyDeskError)
async def studydesk_error_handler(request: Request, exc: StudyDeskError) -> JSONResponse:
    """Render domain errors as ``{"error": message}``.

    A message supplied by the store is passed through; otherwise the
    localized text for the error's message key is used.
    """
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    message = exc.message or msg(exc.message_key, get_language(request), **exc.params)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content={"error": message}, headers=headers)


# --- Router includes ---
from studydesk.api.categories import router as categories_router
from studydesk.api.dashboard import router as dashboard_router
from studydesk.api.links import router as links_router
from studydesk.api.notes import router as notes_router
from studydesk.api.projects import router as projects_router
from studydesk.api.realtime import router as realtime_router

app.include_router(dashboard_router, prefix="/api")
app.include_router(notes_router, prefix="/api")
app.include_router(categories_router, prefix="/api")
app.include_router(links_router, prefix="/api")
app.include_router(projects_router, prefix="/api")
app.include_router(realtime_router, prefix="/api")


@app.get("/api/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint.

    Returns a simple status response to verify the API is running.
    """
    return {"status": "ok"}
