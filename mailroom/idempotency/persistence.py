"""Ledger reads and writes.

``try_processing`` must be the first statement of the protected
transaction.  On PostgreSQL ``INSERT ... ON CONFLICT DO NOTHING`` waits on
a concurrent writer's uncommitted row until that transaction ends; on
SQLite the connection's ``BEGIN IMMEDIATE`` already serialises writers.
Either way a conflict is only reported once the other request has
committed its response.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from uuid import UUID, uuid4

from sqlalchemy import update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session
from starlette.responses import Response

from mailroom.core.errors import UnexpectedError
from mailroom.db.models import IdempotencyRecord
from mailroom.db.repositories import IdempotencyRecordRepository
from mailroom.idempotency.key import IdempotencyKey

logger = logging.getLogger(__name__)

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


@dataclass(frozen=True)
class SavedResponse:
    """An HTTP response snapshot: status, raw headers and body."""

    status_code: int
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""

    @classmethod
    def from_response(cls, response: Response) -> SavedResponse:
        headers = [
            (name.decode("latin-1"), value.decode("latin-1"))
            for name, value in response.raw_headers
        ]
        return cls(status_code=response.status_code, headers=headers, body=bytes(response.body))

    def to_response(self) -> Response:
        response = Response(content=self.body, status_code=self.status_code)
        response.raw_headers = [
            (name.encode("latin-1"), value.encode("latin-1")) for name, value in self.headers
        ]
        return response

    def header(self, name: str) -> str | None:
        for key, value in self.headers:
            if key.lower() == name.lower():
                return value
        return None


def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    try:
        return _INSERTS[dialect]
    except KeyError:
        raise UnexpectedError(f"Idempotency ledger does not support the {dialect!r} dialect") from None


def try_processing(
    db: Session,
    user_id: UUID,
    key: IdempotencyKey,
) -> SavedResponse | None:
    """Claim *key* for *user_id*.

    Returns ``None`` when the caller is the first writer: the sentinel row
    now exists inside the caller's open transaction and must be completed
    with :func:`save_response` before commit.  Otherwise the transaction is
    rolled back and the previously saved response is returned.
    """
    insert = _insert_for(db)
    stmt = (
        insert(IdempotencyRecord.__table__)
        .values(id=uuid4(), user_id=user_id, idempotency_key=key.value)
        .on_conflict_do_nothing(index_elements=["user_id", "idempotency_key"])
    )
    inserted = db.execute(stmt).rowcount
    if inserted > 0:
        return None

    db.rollback()
    saved = get_saved_response(db, user_id, key)
    db.rollback()
    if saved is None:
        # The conflicting transaction committed without saving a response.
        raise UnexpectedError(
            f"Idempotency key for user {user_id} is recorded without a saved response"
        )
    logger.info("Replaying saved response for user %s", user_id)
    return saved


def get_saved_response(
    db: Session,
    user_id: UUID,
    key: IdempotencyKey,
) -> SavedResponse | None:
    """Return the saved response for (*user_id*, *key*), or ``None``."""
    record = IdempotencyRecordRepository(db).find(user_id, key.value)
    if record is None or record.response_status_code is None:
        return None
    return SavedResponse(
        status_code=record.response_status_code,
        headers=[(name, value) for name, value in (record.response_headers or [])],
        body=record.response_body or b"",
    )


def save_response(
    db: Session,
    user_id: UUID,
    key: IdempotencyKey,
    response: SavedResponse,
) -> SavedResponse:
    """Replace the sentinel with *response*.  Does **not** commit."""
    stmt = (
        update(IdempotencyRecord.__table__)
        .where(
            IdempotencyRecord.user_id == user_id,
            IdempotencyRecord.idempotency_key == key.value,
            IdempotencyRecord.response_status_code.is_(None),
        )
        .values(
            response_status_code=response.status_code,
            response_headers=[list(header) for header in response.headers],
            response_body=response.body,
        )
    )
    updated = db.execute(stmt).rowcount
    if updated != 1:
        raise UnexpectedError(
            f"No in-flight idempotency record to complete for user {user_id}"
        )
    return response
