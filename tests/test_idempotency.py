"""Tests for mailroom/idempotency/persistence.py: the (user, key) ledger."""
from __future__ import annotations

from uuid import uuid4

import pytest

from mailroom.core.errors import UnexpectedError
from mailroom.core.http import see_other
from mailroom.db.repositories import IdempotencyRecordRepository
from mailroom.idempotency import (
    IdempotencyKey,
    SavedResponse,
    get_saved_response,
    save_response,
    try_processing,
)


def _redirect_snapshot() -> SavedResponse:
    return SavedResponse.from_response(see_other("/admin/newsletters", "Done!"))


# ===========================================================================
# SavedResponse
# ===========================================================================

class TestSavedResponse:
    def test_snapshot_keeps_status_location_and_cookie(self):
        saved = _redirect_snapshot()

        assert saved.status_code == 303
        assert saved.header("location") == "/admin/newsletters"
        assert saved.header("Set-Cookie").startswith("_flash=Done%21")
        assert saved.body == b""

    def test_rebuilt_response_has_identical_raw_headers(self):
        saved = _redirect_snapshot()
        response = saved.to_response()

        assert response.status_code == 303
        assert SavedResponse.from_response(response) == saved

    def test_header_lookup_misses_return_none(self):
        assert _redirect_snapshot().header("x-missing") is None


# ===========================================================================
# Ledger
# ===========================================================================

class TestTryProcessing:
    def test_first_submission_gets_to_start_processing(self, session_factory):
        user_id, key = uuid4(), IdempotencyKey("key-1")

        with session_factory() as db:
            assert try_processing(db, user_id, key) is None
            record = IdempotencyRecordRepository(db).find(user_id, "key-1")
            assert record is not None
            assert record.response_status_code is None

    def test_duplicate_submission_gets_the_saved_response(self, session_factory):
        user_id, key = uuid4(), IdempotencyKey("key-1")
        saved = _redirect_snapshot()

        with session_factory() as db:
            assert try_processing(db, user_id, key) is None
            save_response(db, user_id, key, saved)
            db.commit()

        with session_factory() as db:
            assert try_processing(db, user_id, key) == saved
            assert not db.in_transaction()

    def test_same_key_for_another_user_is_independent(self, session_factory):
        key = IdempotencyKey("shared-key")
        first_user, second_user = uuid4(), uuid4()

        with session_factory() as db:
            assert try_processing(db, first_user, key) is None
            save_response(db, first_user, key, _redirect_snapshot())
            db.commit()

        with session_factory() as db:
            assert try_processing(db, second_user, key) is None
            db.rollback()

    def test_rolled_back_submission_leaves_no_trace(self, session_factory):
        user_id, key = uuid4(), IdempotencyKey("key-1")

        with session_factory() as db:
            assert try_processing(db, user_id, key) is None
            db.rollback()

        with session_factory() as db:
            assert IdempotencyRecordRepository(db).count() == 0
            assert try_processing(db, user_id, key) is None

    def test_record_committed_without_response_is_unexpected(self, session_factory):
        user_id, key = uuid4(), IdempotencyKey("key-1")

        with session_factory() as db:
            try_processing(db, user_id, key)
            db.commit()

        with session_factory() as db:
            with pytest.raises(UnexpectedError):
                try_processing(db, user_id, key)


class TestSaveResponse:
    def test_saved_response_is_readable(self, session_factory):
        user_id, key = uuid4(), IdempotencyKey("key-1")
        saved = _redirect_snapshot()

        with session_factory() as db:
            try_processing(db, user_id, key)
            save_response(db, user_id, key, saved)
            db.commit()

        with session_factory() as db:
            assert get_saved_response(db, user_id, key) == saved

    def test_unknown_key_has_no_saved_response(self, session_factory):
        with session_factory() as db:
            assert get_saved_response(db, uuid4(), IdempotencyKey("nope")) is None

    def test_saving_without_a_sentinel_fails(self, session_factory):
        with session_factory() as db:
            with pytest.raises(UnexpectedError):
                save_response(db, uuid4(), IdempotencyKey("key-1"), _redirect_snapshot())

    def test_saved_response_is_never_overwritten(self, session_factory):
        user_id, key = uuid4(), IdempotencyKey("key-1")

        with session_factory() as db:
            try_processing(db, user_id, key)
            save_response(db, user_id, key, _redirect_snapshot())
            db.commit()

        with session_factory() as db:
            with pytest.raises(UnexpectedError):
                save_response(db, user_id, key, SavedResponse(status_code=500))
