from __future__ import annotations

from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from mailroom.db import models

ModelT = TypeVar("ModelT")


class BaseRepository(Generic[ModelT]):
    model: type[ModelT]

    def __init__(self, db: Session):
        self.db = db

    def create(self, **kwargs) -> ModelT:
        entity = self.model(**kwargs)
        self.db.add(entity)
        self.db.flush()
        return entity

    def get(self, entity_id: UUID) -> ModelT | None:
        return self.db.get(self.model, entity_id)

    def list(self, limit: int = 100, offset: int = 0) -> list[ModelT]:
        stmt = select(self.model).offset(offset).limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def count(self) -> int:
        return self.db.execute(select(func.count()).select_from(self.model)).scalar_one()


class SubscriptionRepository(BaseRepository[models.Subscription]):
    model = models.Subscription

    def confirm(self, subscription: models.Subscription) -> models.Subscription:
        subscription.status = models.SUBSCRIPTION_CONFIRMED
        self.db.flush()
        return subscription


class NewsletterIssueRepository(BaseRepository[models.NewsletterIssue]):
    model = models.NewsletterIssue


class IdempotencyRecordRepository(BaseRepository[models.IdempotencyRecord]):
    model = models.IdempotencyRecord

    def find(self, user_id: UUID, idempotency_key: str) -> models.IdempotencyRecord | None:
        stmt = select(models.IdempotencyRecord).where(
            models.IdempotencyRecord.user_id == user_id,
            models.IdempotencyRecord.idempotency_key == idempotency_key,
        )
        return self.db.execute(stmt).scalar_one_or_none()
