from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    String,
    Text,
    UniqueConstraint,
    func,
    text as sql_text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mailroom.db.base import Base

SUBSCRIPTION_PENDING = "pending_confirmation"
SUBSCRIPTION_CONFIRMED = "confirmed"


class Subscription(Base):
    """A subscriber as recorded by the signup / confirmation workflow.

    Only rows with ``status = 'confirmed'`` receive newsletter issues.
    """

    __tablename__ = "subscriptions"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        index=True,
        default=SUBSCRIPTION_PENDING,
        server_default=sql_text(f"'{SUBSCRIPTION_PENDING}'"),
    )
    subscribed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class NewsletterIssue(Base):
    """One published issue.  Written once by the publish transaction, never updated."""

    __tablename__ = "newsletter_issues"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    html_content: Mapped[str] = mapped_column(Text, nullable=False)
    text_content: Mapped[str] = mapped_column(Text, nullable=False)
    published_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    delivery_tasks: Mapped[list[DeliveryTask]] = relationship(back_populates="newsletter_issue")


class DeliveryTask(Base):
    """A pending "send this issue to this recipient" unit of work.

    The row existing *is* the pending state: it is deleted once the email
    has been handed to the email service (or permanently skipped).  Claims
    follow ``(n_retries, id)``: fewest failed attempts first, then insertion
    order.
    """

    __tablename__ = "issue_delivery_queue"
    __table_args__ = (
        UniqueConstraint(
            "newsletter_issue_id", "subscriber_email", name="uq_issue_delivery_queue_issue_email"
        ),
        Index("ix_issue_delivery_queue_claim_order", "n_retries", "id"),
    )

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    newsletter_issue_id: Mapped[UUID] = mapped_column(
        ForeignKey("newsletter_issues.id", ondelete="CASCADE"), nullable=False
    )
    subscriber_email: Mapped[str] = mapped_column(String(320), nullable=False)
    n_retries: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sql_text("0")
    )
    enqueued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    newsletter_issue: Mapped[NewsletterIssue] = relationship(back_populates="delivery_tasks")


class IdempotencyRecord(Base):
    """Ledger row for one (user, idempotency key) submission.

    While the response columns are NULL the row is the "processing"
    sentinel held by the in-flight transaction.  Once the response is saved
    it is never modified again.
    """

    __tablename__ = "idempotency"
    __table_args__ = (
        UniqueConstraint("user_id", "idempotency_key", name="uq_idempotency_user_key"),
    )

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(nullable=False)
    idempotency_key: Mapped[str] = mapped_column(String(50), nullable=False)
    response_status_code: Mapped[int | None] = mapped_column(Integer, nullable=True)
    response_headers: Mapped[list | None] = mapped_column(JSON, nullable=True)
    response_body: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
