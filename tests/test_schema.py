from sqlalchemy import inspect

from mailroom.db import models  # noqa: F401


def test_schema_creation_in_sqlite_includes_all_tables(engine):
    table_names = set(inspect(engine).get_table_names())

    assert {"subscriptions", "newsletter_issues", "issue_delivery_queue", "idempotency"}.issubset(
        table_names
    )


def test_delivery_queue_columns_and_uniqueness(engine):
    inspector = inspect(engine)

    columns = {column["name"]: column for column in inspector.get_columns("issue_delivery_queue")}
    assert {"id", "newsletter_issue_id", "subscriber_email", "n_retries", "enqueued_at"} <= set(
        columns
    )
    assert columns["subscriber_email"]["nullable"] is False
    assert columns["n_retries"]["nullable"] is False

    unique = {tuple(c["column_names"]) for c in inspector.get_unique_constraints("issue_delivery_queue")}
    assert ("newsletter_issue_id", "subscriber_email") in unique

    foreign_keys = inspector.get_foreign_keys("issue_delivery_queue")
    assert foreign_keys[0]["referred_table"] == "newsletter_issues"

    indexes = {ix["name"]: ix["column_names"] for ix in inspector.get_indexes("issue_delivery_queue")}
    assert indexes["ix_issue_delivery_queue_claim_order"] == ["n_retries", "id"]


def test_idempotency_columns_and_uniqueness(engine):
    inspector = inspect(engine)

    columns = {column["name"]: column for column in inspector.get_columns("idempotency")}
    assert columns["user_id"]["nullable"] is False
    assert columns["idempotency_key"]["nullable"] is False
    # NULL response columns mark a submission that is still being processed.
    assert columns["response_status_code"]["nullable"] is True
    assert columns["response_headers"]["nullable"] is True
    assert columns["response_body"]["nullable"] is True

    unique = {tuple(c["column_names"]) for c in inspector.get_unique_constraints("idempotency")}
    assert ("user_id", "idempotency_key") in unique


def test_subscription_email_is_unique(engine):
    inspector = inspect(engine)

    unique_columns = {tuple(c["column_names"]) for c in inspector.get_unique_constraints("subscriptions")}
    unique_indexes = {
        tuple(index["column_names"])
        for index in inspector.get_indexes("subscriptions")
        if index["unique"]
    }
    assert ("email",) in unique_columns | unique_indexes
