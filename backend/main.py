"""FastAPI application: review sessions, learner stats and deck backups."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from backend.api.deck_router import router as deck_router
from backend.api.session_router import router as session_router
from backend.api.stats_router import router as stats_router
from backend.config import settings
from backend.database import async_session, engine
from backend.models import Base
from backend.storage import STORAGE_VERSION

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create the schema on startup and release connections on shutdown."""
    logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("%s ready (storage version %d)", settings.app_name, STORAGE_VERSION)
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description="Spaced repetition trainer for the Thai script",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(session_router)
app.include_router(stats_router)
app.include_router(deck_router)


@app.get("/health")
async def health_check() -> dict[str, str | int]:
    """Check database connectivity and report the deck storage version."""
    async with async_session() as session:
        await session.execute(text("SELECT 1"))
    return {"status": "ok", "storage_version": STORAGE_VERSION}
