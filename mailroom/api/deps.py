"""FastAPI dependency injection: database sessions and service factories."""
from __future__ import annotations

from collections.abc import Generator
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session, sessionmaker

from mailroom.core.settings import get_settings
from mailroom.db.session import get_session_factory
from mailroom.delivery.worker import DeliveryWorker
from mailroom.notification.email_client import EmailClient, build_email_client
from mailroom.publishing.publisher import NewsletterPublisher


def get_sessionmaker() -> sessionmaker:
    return get_session_factory()


def get_db(factory: sessionmaker = Depends(get_sessionmaker)) -> Generator[Session, None, None]:
    """Yield a SQLAlchemy session; commit on success, rollback on error."""
    db = factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@lru_cache(maxsize=1)
def get_email_client() -> EmailClient:
    """Return the process-wide email client selected by settings."""
    return build_email_client(get_settings())


def get_publisher(db: Session = Depends(get_db)) -> NewsletterPublisher:
    """Return a NewsletterPublisher bound to the current DB session."""
    return NewsletterPublisher(db)


def get_delivery_worker(
    factory: sessionmaker = Depends(get_sessionmaker),
    email_client: EmailClient = Depends(get_email_client),
) -> DeliveryWorker:
    """Return a DeliveryWorker for inline delivery inside a request."""
    return DeliveryWorker(factory, email_client)
