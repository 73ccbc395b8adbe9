"""FastAPI application factory.

Assembles the API routers and, when ``DELIVERY_WORKER_ENABLED`` is set,
runs the delivery worker loop alongside the web server.
mailroom/main.py re-exports the app object defined here.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from mailroom.api.routes.health import router as health_router
from mailroom.api.routes.newsletters import router as newsletters_router
from mailroom.core.logging import setup_logging
from mailroom.core.settings import get_settings
from mailroom.delivery.worker import build_delivery_worker, run_worker_until_stopped

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    setup_logging()
    settings = get_settings()
    if not settings.delivery_worker_enabled:
        logger.info("Delivery worker disabled; tasks wait for an external worker")
        yield
        return

    stop_event = asyncio.Event()
    task = asyncio.create_task(
        run_worker_until_stopped(
            build_delivery_worker(settings),
            poll_interval_s=settings.worker_poll_interval_s,
            retry_interval_s=settings.worker_retry_interval_s,
            stop_event=stop_event,
        )
    )
    yield
    # Let the in-flight task reach a terminal outcome before shutting down.
    stop_event.set()
    await task


settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)

app.include_router(health_router)
app.include_router(newsletters_router)
