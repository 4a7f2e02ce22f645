# pyright: reportMissingTypeStubs=false
"""
Admin Panel API

A FastAPI application serving the resource endpoints of the admin panel.
Host applications register their resources with
admin_panel.resources.registry.admin_panel before the app starts, or build
their own app and include admin_panel.api.resources.router.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from admin_panel.api import resources
from admin_panel.core.config import ADMIN_PANEL_NAME, ADMIN_PANEL_PATH, CREATE_TABLES_ON_STARTUP, TRASH_CLEANUP_ENABLED
from admin_panel.core.constants import CORS_ORIGINS
from admin_panel.core.database import create_tables
from admin_panel.services.trash_cleanup_scheduler import start_trash_cleanup_scheduler, stop_trash_cleanup_scheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info(f"Starting {ADMIN_PANEL_NAME} API")

    if CREATE_TABLES_ON_STARTUP:
        create_tables()

    if TRASH_CLEANUP_ENABLED:
        try:
            await start_trash_cleanup_scheduler()
        except Exception as e:
            logger.exception(f"Failed to start trash cleanup scheduler: {e}")

    yield

    if TRASH_CLEANUP_ENABLED:
        try:
            await stop_trash_cleanup_scheduler()
        except Exception as e:
            logger.exception(f"Error stopping trash cleanup scheduler: {e}")

    logger.info(f"Shutting down {ADMIN_PANEL_NAME} API")


# Create FastAPI application
app = FastAPI(
    title=ADMIN_PANEL_NAME,
    description="Declarative admin panel resources for FastAPI + SQLAlchemy",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS middleware for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(
    resources.router,
    prefix=f"{ADMIN_PANEL_PATH}/api/resources",
    tags=["resources"],
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Forbidden"},
        404: {"description": "Resource not found"},
        422: {"description": "Validation failed"},
        500: {"description": "Internal server error"},
    },
)


@app.get(
    "/health",
    summary="Health check",
    description="Returns the health status of the API",
)
async def health_check() -> dict[str, str]:
    """Check if the API is healthy and responding."""
    return {"status": "healthy"}
