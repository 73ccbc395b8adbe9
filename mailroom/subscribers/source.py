"""Confirmed subscriber source.

Each stored address is parsed independently so that one bad row never
blocks the rest of the batch.
"""
from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from mailroom.core.errors import DataIntegrityError
from mailroom.db.models import SUBSCRIPTION_CONFIRMED, Subscription
from mailroom.domain.subscriber_email import SubscriberEmail


@dataclass(frozen=True)
class ConfirmedSubscriber:
    subscription_id: UUID
    email: str
    error: DataIntegrityError | None = None

    @property
    def is_valid(self) -> bool:
        return self.error is None


class ConfirmedSubscriberSource:
    """Query confirmed subscriptions inside the caller's transaction."""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def list_confirmed(self) -> list[ConfirmedSubscriber]:
        stmt = (
            select(Subscription.id, Subscription.email)
            .where(Subscription.status == SUBSCRIPTION_CONFIRMED)
            .order_by(Subscription.subscribed_at.asc(), Subscription.id.asc())
        )
        subscribers: list[ConfirmedSubscriber] = []
        for subscription_id, raw_email in self.db.execute(stmt).all():
            try:
                email = SubscriberEmail.parse(raw_email)
            except ValueError as exc:
                subscribers.append(
                    ConfirmedSubscriber(
                        subscription_id=subscription_id,
                        email=raw_email,
                        error=DataIntegrityError(str(exc)),
                    )
                )
                continue
            subscribers.append(ConfirmedSubscriber(subscription_id=subscription_id, email=str(email)))
        return subscribers
