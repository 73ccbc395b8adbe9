"""Idempotency ledger for state-changing admin submissions.

A client-supplied key is recorded per user inside the same transaction as
the work it protects.  The first writer holds a "processing" row until it
commits the saved response; duplicates block on that row and then replay
the saved response byte-for-byte.
"""
from mailroom.idempotency.key import IdempotencyKey
from mailroom.idempotency.persistence import (
    SavedResponse,
    get_saved_response,
    save_response,
    try_processing,
)

__all__ = [
    "IdempotencyKey",
    "SavedResponse",
    "get_saved_response",
    "save_response",
    "try_processing",
]
