#!/usr/bin/env python3
"""Seed demo data: confirmed, pending and malformed subscriptions.

Usage:
    python scripts/seed_demo.py          # uses DATABASE_URL from env / .env
    DATABASE_URL=... python scripts/seed_demo.py
"""
from __future__ import annotations

from mailroom.core.settings import get_settings
from mailroom.db.base import Base
from mailroom.db.repositories import SubscriptionRepository
from mailroom.db.session import build_engine, build_session_factory


def seed(repo: SubscriptionRepository) -> None:
    """Insert demo subscriptions covering every status the publisher sees."""
    demo_subscribers = [
        # (name, email, confirmed)
        ("Ursula Le Guin", "ursula@example.com", True),
        ("Octavia Butler", "octavia@example.com", True),
        ("Ted Chiang", "ted.chiang@example.org", True),
        ("Iain Banks", "iain@example.co.uk", False),
        ("Broken Record", "not-an-email", True),
    ]
    for name, email, confirmed in demo_subscribers:
        subscription = repo.create(name=name, email=email)
        if confirmed:
            repo.confirm(subscription)


def main() -> None:
    settings = get_settings()
    engine = build_engine(
        settings.database_url, sqlite_busy_timeout_s=settings.sqlite_busy_timeout_s
    )
    Base.metadata.create_all(bind=engine)

    with build_session_factory(engine)() as session:
        seed(SubscriptionRepository(session))
        session.commit()

    print(f"Seeded demo subscriptions into {engine.url.render_as_string(hide_password=True)}")


if __name__ == "__main__":
    main()
