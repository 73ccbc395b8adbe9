"""Delivery queue store.

Pending work is the set of rows in ``issue_delivery_queue``; there is no
status column.  Claims go to the task with the fewest failed attempts, oldest
first, so a recipient that keeps failing transiently never holds up the
rest of the queue.  Claiming uses ``FOR UPDATE SKIP LOCKED`` so concurrent
workers on PostgreSQL never pick the same row.  SQLite has no row locks;
there the connection-level ``BEGIN IMMEDIATE`` gives the same exclusion.
"""
from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from mailroom.db.models import DeliveryTask


class DeliveryQueue:
    """Enqueue, claim, retire and release delivery tasks."""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    # -- enqueue ------------------------------------------------------------

    def enqueue(self, issue_id: UUID, recipients: Iterable[str]) -> int:
        """Add one task per distinct recipient of *issue_id*.  Flushes, does not commit."""
        seen: set[str] = set()
        tasks: list[DeliveryTask] = []
        for email in recipients:
            if email in seen:
                continue
            seen.add(email)
            tasks.append(DeliveryTask(newsletter_issue_id=issue_id, subscriber_email=email))
        self.db.add_all(tasks)
        self.db.flush()
        return len(tasks)

    # -- claim --------------------------------------------------------------

    def claim_next(self, issue_id: UUID | None = None) -> DeliveryTask | None:
        """Lock and return the next pending task, or ``None`` when the queue is empty.

        The lock lasts until the caller's transaction ends.
        """
        stmt = select(DeliveryTask)
        if issue_id is not None:
            stmt = stmt.where(DeliveryTask.newsletter_issue_id == issue_id)
        stmt = (
            stmt.order_by(DeliveryTask.n_retries.asc(), DeliveryTask.id.asc())
            .limit(1)
            .with_for_update(skip_locked=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    # -- terminal outcomes --------------------------------------------------

    def retire(self, task: DeliveryTask) -> None:
        """Delete *task*; it will never be picked again."""
        self.db.delete(task)
        self.db.flush()

    def release(self, task: DeliveryTask) -> None:
        """Keep *task* queued behind every task with fewer failed attempts."""
        task.n_retries += 1
        self.db.flush()

    # -- query --------------------------------------------------------------

    def pending_count(self, issue_id: UUID | None = None) -> int:
        stmt = select(func.count()).select_from(DeliveryTask)
        if issue_id is not None:
            stmt = stmt.where(DeliveryTask.newsletter_issue_id == issue_id)
        return self.db.execute(stmt).scalar_one()
