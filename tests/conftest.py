from __future__ import annotations

from dataclasses import dataclass, field

import pytest
from fastapi.testclient import TestClient

from mailroom.db.base import Base
from mailroom.db.models import SUBSCRIPTION_CONFIRMED, Subscription
from mailroom.db.session import build_engine, build_session_factory


# ---------------------------------------------------------------------------
# Email client double
# ---------------------------------------------------------------------------

@dataclass
class SentEmail:
    recipient: str
    subject: str
    html_content: str
    text_content: str


@dataclass
class RecordingEmailClient:
    """Records every accepted send.

    ``fail_call(n, exc)`` makes the n-th call raise; ``fail_recipient(email, exc)``
    makes every send to *email* raise.
    """

    sent: list[SentEmail] = field(default_factory=list)
    calls: int = 0
    _failures: dict[int, Exception] = field(default_factory=dict)
    _failing_recipients: dict[str, Exception] = field(default_factory=dict)

    def fail_call(self, call_number: int, exc: Exception) -> None:
        self._failures[call_number] = exc

    def fail_recipient(self, recipient: str, exc: Exception) -> None:
        self._failing_recipients[recipient] = exc

    def send_email(self, recipient, subject, html_content, text_content) -> None:
        self.calls += 1
        exc = self._failures.pop(self.calls, None) or self._failing_recipients.get(recipient)
        if exc is not None:
            raise exc
        self.sent.append(SentEmail(recipient, subject, html_content, text_content))

    @property
    def recipients(self) -> list[str]:
        return [email.recipient for email in self.sent]


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture()
def engine(tmp_path):
    # File-backed so that sessions on different threads share one database.
    engine = build_engine(f"sqlite+pysqlite:///{tmp_path / 'mailroom.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture()
def db_session(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture()
def email_client() -> RecordingEmailClient:
    return RecordingEmailClient()


@pytest.fixture()
def subscribe(session_factory):
    """Commit one subscription per address with the given status."""

    def _subscribe(*emails: str, status: str = SUBSCRIPTION_CONFIRMED) -> None:
        with session_factory() as db:
            for email in emails:
                db.add(Subscription(email=email, name=email.split("@")[0], status=status))
            db.commit()

    return _subscribe


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------

def _make_client(monkeypatch, session_factory, email_client, *, inline_delivery: bool):
    monkeypatch.setenv("DATABASE_URL", "sqlite+pysqlite:///:memory:")
    monkeypatch.setenv("DELIVERY_WORKER_ENABLED", "false")
    monkeypatch.setenv("INLINE_DELIVERY", "true" if inline_delivery else "false")

    from mailroom.core.settings import get_settings

    get_settings.cache_clear()

    from mailroom.api.deps import get_email_client, get_sessionmaker
    from mailroom.main import app

    app.dependency_overrides[get_sessionmaker] = lambda: session_factory
    app.dependency_overrides[get_email_client] = lambda: email_client
    return app


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch, session_factory, email_client) -> TestClient:
    app = _make_client(monkeypatch, session_factory, email_client, inline_delivery=False)

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    from mailroom.core.settings import get_settings

    get_settings.cache_clear()


@pytest.fixture
def inline_client(monkeypatch: pytest.MonkeyPatch, session_factory, email_client) -> TestClient:
    app = _make_client(monkeypatch, session_factory, email_client, inline_delivery=True)

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    from mailroom.core.settings import get_settings

    get_settings.cache_clear()
