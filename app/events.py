import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.core.settings import settings
from app.db.init_db import init_db
from app.db.session import engine
from app.utils.redis_client import close_redis_client

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Seed on the way up; release pooled connections on the way down."""
    logger.info(
        "Workspace API starting",
        extra={"environment": settings.environment, "seed_on_startup": settings.seed_on_startup},
    )
    if settings.seed_on_startup:
        await init_db()
    try:
        yield
    finally:
        await close_redis_client()
        await engine.dispose()
        logger.info("Workspace API stopped")
