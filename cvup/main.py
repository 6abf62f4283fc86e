import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .config import get_settings
from .controllers import career, courses, extension, meetings, participants, profiles, recordings, sessions, zoom_api
from .database import init_db

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Available routes:")
    for route in app.routes:
        logger.info("  %s %s", getattr(route, "methods", None), route.path)
    yield


app = FastAPI(title="CV UP Training Backend", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers - all without /api prefix
app.include_router(sessions.router)
app.include_router(participants.router)
app.include_router(meetings.router)
app.include_router(recordings.router)
app.include_router(zoom_api.router)
app.include_router(extension.router)
app.include_router(courses.router)
app.include_router(profiles.router)
app.include_router(profiles.admin_router)
app.include_router(career.cv_router)
app.include_router(career.linkedin_router)
app.include_router(career.interview_router)

# Locally stored recordings and uploads, when Azure is not configured
if not settings.azure_storage_connection_string:
    os.makedirs(settings.media_root, exist_ok=True)
    app.mount("/media", StaticFiles(directory=settings.media_root), name="media")
