from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

from app.config import Settings
from app.db import dispose_db, init_db
from app.logger import setup_logging
from app.services.countdown import CountdownRegistry
from app.services.record_store import close_store, init_store
from app.services.usage import InFlightGuard
from app.controllers import v1

settings = Settings()
setup_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_store(settings)
    await asyncio.to_thread(init_db, settings)
    app.state.countdowns = CountdownRegistry(settings.countdown_seconds)
    app.state.in_flight = InFlightGuard()
    if not settings.redis_url:
        logger.warning("REDIS_URL not set; usage records are kept in process memory only")
    yield
    app.state.countdowns.cancel_all()
    await close_store()
    dispose_db()


app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(v1.router)

Instrumentator().instrument(app).expose(app)
