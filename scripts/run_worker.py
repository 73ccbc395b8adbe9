#!/usr/bin/env python3
"""Run the newsletter delivery worker as a standalone process.

Usage:
    python scripts/run_worker.py          # uses DATABASE_URL / EMAIL_* from env / .env

Several instances may run against the same PostgreSQL database; each task
is claimed by exactly one of them.
"""
from __future__ import annotations

import asyncio
import logging
import signal

from mailroom.core.logging import setup_logging
from mailroom.core.settings import get_settings
from mailroom.delivery.worker import build_delivery_worker, run_worker_until_stopped

logger = logging.getLogger("mailroom.worker")


async def main() -> None:
    settings = get_settings()
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    await run_worker_until_stopped(
        build_delivery_worker(settings),
        poll_interval_s=settings.worker_poll_interval_s,
        retry_interval_s=settings.worker_retry_interval_s,
        stop_event=stop_event,
    )


if __name__ == "__main__":
    setup_logging()
    logger.info("Starting delivery worker")
    asyncio.run(main())
