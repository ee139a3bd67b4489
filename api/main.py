"""Courts API: FastAPI entry point.

Registers middleware, routers, and lifecycle hooks. Each vertical
adds its own router under /api/{vertical}/.
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import FacilityMiddleware
from core.database import close_db, init_db
from core.observability.logging_setup import configure_logging
from core.observability.otel_setup import setup_otel

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://localhost:3001"
).split(",")
VERSION = "0.1.0"
CREATE_TABLES = os.getenv("DB_CREATE_TABLES", "false").lower() == "true"


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown hooks."""
    configure_logging()
    setup_otel()
    if CREATE_TABLES:
        await init_db()

    logger.info("Courts API started")
    yield
    logger.info("Courts API shutting down")
    await close_db()


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Courts",
    description="Booking rules engine for multi-tenant court reservations",
    version=VERSION,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Facility scoping middleware
app.add_middleware(FacilityMiddleware)

# ---------------------------------------------------------------------------
# Routers: verticals register here
# ---------------------------------------------------------------------------

from verticals.courts.evaluators import registry as courts_registry  # noqa: E402
from verticals.courts.router import router as courts_router  # noqa: E402

app.include_router(courts_router, prefix="/api/courts", tags=["Courts"])


# ---------------------------------------------------------------------------
# Health & root
# ---------------------------------------------------------------------------

@app.get("/health")
async def health():
    return {"status": "healthy", "version": VERSION, "rules_loaded": len(courts_registry)}


@app.get("/")
async def root():
    return {
        "name": "Courts",
        "version": VERSION,
        "docs": "/docs",
        "verticals": ["courts"],
        "description": "Booking rules engine for court reservations",
    }
