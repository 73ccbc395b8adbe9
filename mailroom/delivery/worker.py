"""Delivery worker.

Each iteration claims one task inside its own transaction, sends the email
while still holding the claim, and ends the transaction with one of three
outcomes:

- sent, or permanently undeliverable: the row is deleted
- transient failure: the row stays (``n_retries`` + 1) for a later iteration
- anything unexpected: the transaction rolls back and the error propagates

Safety: recipient addresses are never logged, only task and issue ids.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from uuid import UUID

from sqlalchemy.orm import sessionmaker

from mailroom.core.errors import PermanentDeliveryError, TransientDeliveryError
from mailroom.core.settings import Settings, get_settings
from mailroom.db.session import get_session_factory
from mailroom.delivery.queue import DeliveryQueue
from mailroom.domain.subscriber_email import SubscriberEmail
from mailroom.notification.email_client import EmailClient, build_email_client

logger = logging.getLogger(__name__)


class ExecutionOutcome(str, Enum):
    TASK_COMPLETED = "task_completed"
    EMPTY_QUEUE = "empty_queue"
    TASK_FAILED_TRANSIENTLY = "task_failed_transiently"


class DeliveryWorker:
    """Drain the delivery queue one task at a time, fewest failed attempts first."""

    def __init__(self, session_factory: sessionmaker, email_client: EmailClient) -> None:
        self.session_factory = session_factory
        self.email_client = email_client

    def try_execute_task(self, issue_id: UUID | None = None) -> ExecutionOutcome:
        """Process at most one task, optionally restricted to *issue_id*."""
        with self.session_factory() as db:
            queue = DeliveryQueue(db)
            task = queue.claim_next(issue_id)
            if task is None:
                db.rollback()
                return ExecutionOutcome.EMPTY_QUEUE

            issue = task.newsletter_issue
            task_id, claimed_issue_id, attempt = task.id, issue.id, task.n_retries + 1
            try:
                recipient = SubscriberEmail.parse(task.subscriber_email)
            except ValueError:
                logger.warning(
                    "Skipping delivery task %d of issue %s: the stored contact details are invalid",
                    task_id,
                    claimed_issue_id,
                )
                queue.retire(task)
                db.commit()
                return ExecutionOutcome.TASK_COMPLETED

            try:
                self.email_client.send_email(
                    str(recipient),
                    issue.title,
                    issue.html_content,
                    issue.text_content,
                )
            except PermanentDeliveryError as exc:
                logger.warning(
                    "Skipping delivery task %d of issue %s: %s", task_id, claimed_issue_id, exc
                )
                queue.retire(task)
                db.commit()
                return ExecutionOutcome.TASK_COMPLETED
            except TransientDeliveryError as exc:
                logger.warning(
                    "Delivery task %d of issue %s failed (attempt %d), keeping it queued: %s",
                    task_id,
                    claimed_issue_id,
                    attempt,
                    exc,
                )
                queue.release(task)
                db.commit()
                return ExecutionOutcome.TASK_FAILED_TRANSIENTLY

            queue.retire(task)
            db.commit()
            logger.info("Delivered issue %s (task %d)", claimed_issue_id, task_id)
            return ExecutionOutcome.TASK_COMPLETED

    def drain(self, issue_id: UUID | None = None) -> int:
        """Run until the queue is empty and return the number of retired tasks.

        Stops at the first transient failure and raises
        ``TransientDeliveryError``; tasks not yet retired stay queued.
        """
        completed = 0
        while True:
            outcome = self.try_execute_task(issue_id)
            if outcome is ExecutionOutcome.EMPTY_QUEUE:
                return completed
            if outcome is ExecutionOutcome.TASK_FAILED_TRANSIENTLY:
                with self.session_factory() as db:
                    remaining = DeliveryQueue(db).pending_count(issue_id)
                logger.warning(
                    "Delivery stopped after %d task(s); %d task(s) stay queued", completed, remaining
                )
                raise TransientDeliveryError(
                    f"Delivery stopped after {completed} task(s); {remaining} task(s) stay queued"
                )
            completed += 1


async def run_worker_until_stopped(
    worker: DeliveryWorker,
    *,
    poll_interval_s: float,
    retry_interval_s: float,
    stop_event: asyncio.Event | None = None,
) -> None:
    """Loop forever (or until *stop_event* is set) executing delivery tasks.

    Database work and sends run in a thread so the event loop stays free.
    """
    stop_event = stop_event or asyncio.Event()
    logger.info("Delivery worker started")
    while not stop_event.is_set():
        try:
            outcome = await asyncio.to_thread(worker.try_execute_task)
        except Exception:
            logger.exception("Delivery worker iteration failed")
            outcome = None

        if outcome is ExecutionOutcome.TASK_COMPLETED:
            continue
        delay = poll_interval_s if outcome is ExecutionOutcome.EMPTY_QUEUE else retry_interval_s
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass
    logger.info("Delivery worker stopped")


def build_delivery_worker(settings: Settings | None = None) -> DeliveryWorker:
    settings = settings or get_settings()
    return DeliveryWorker(get_session_factory(), build_email_client(settings))
