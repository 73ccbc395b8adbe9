"""Publish request handler.

One transaction writes the idempotency row, the newsletter issue and one
delivery task per confirmed subscriber, then saves the 303 response on the
idempotency row and commits.  Nothing is visible to the delivery worker
unless all of it commits; a duplicate submission gets the saved response
back and writes nothing.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from mailroom.core.http import see_other
from mailroom.db.repositories import NewsletterIssueRepository
from mailroom.delivery.queue import DeliveryQueue
from mailroom.domain.newsletter import NewsletterContent
from mailroom.idempotency import (
    IdempotencyKey,
    SavedResponse,
    save_response,
    try_processing,
)
from mailroom.subscribers.source import ConfirmedSubscriberSource

logger = logging.getLogger(__name__)

PUBLISH_FORM_PATH = "/admin/newsletters"
PUBLISHED_FLASH = "The newsletter issue has been accepted - emails will go out shortly."


@dataclass(frozen=True)
class PublishResult:
    response: SavedResponse
    issue_id: UUID | None = None
    enqueued: int = 0
    skipped: int = 0

    @property
    def replayed(self) -> bool:
        """``True`` when the response came from the idempotency ledger."""
        return self.issue_id is None


class NewsletterPublisher:
    """Turn an admin publish submission into an issue plus delivery tasks.

    The session must not have an open transaction when :meth:`publish` is
    called: the idempotency insert has to be its first statement.
    """

    def __init__(
        self,
        db_session: Session,
        subscribers: ConfirmedSubscriberSource | None = None,
    ) -> None:
        self.db = db_session
        self.subscribers = subscribers or ConfirmedSubscriberSource(db_session)

    def publish(
        self,
        user_id: UUID,
        idempotency_key: str | None,
        title: str | None,
        html_content: str | None,
        text_content: str | None,
    ) -> PublishResult:
        """Publish once per (*user_id*, *idempotency_key*).

        Raises ``ValidationError`` before touching the database when a field
        is missing or empty.
        """
        content = NewsletterContent.parse(title, html_content, text_content)
        key = IdempotencyKey.parse(idempotency_key)

        try:
            saved = try_processing(self.db, user_id, key)
            if saved is not None:
                return PublishResult(response=saved)

            issue = NewsletterIssueRepository(self.db).create(
                title=content.title,
                html_content=content.html_content,
                text_content=content.text_content,
            )
            issue_id = issue.id
            enqueued, skipped = self._enqueue_delivery_tasks(issue_id)

            response = SavedResponse.from_response(see_other(PUBLISH_FORM_PATH, PUBLISHED_FLASH))
            save_response(self.db, user_id, key, response)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Published issue %s for user %s: %d task(s) enqueued, %d subscriber(s) skipped",
            issue_id,
            user_id,
            enqueued,
            skipped,
        )
        return PublishResult(response=response, issue_id=issue_id, enqueued=enqueued, skipped=skipped)

    def _enqueue_delivery_tasks(self, issue_id: UUID) -> tuple[int, int]:
        recipients: list[str] = []
        skipped = 0
        for subscriber in self.subscribers.list_confirmed():
            if not subscriber.is_valid:
                skipped += 1
                logger.warning(
                    "Skipping confirmed subscriber %s: their stored contact details are invalid",
                    subscriber.subscription_id,
                )
                continue
            recipients.append(subscriber.email)
        enqueued = DeliveryQueue(self.db).enqueue(issue_id, recipients)
        return enqueued, skipped
