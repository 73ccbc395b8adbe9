"""Error taxonomy shared by the publish handler, the worker and the routes.

Routes translate these into HTTP status codes:

- ``ValidationError``        -> 400, raised before any durable write
- ``AuthenticationError``    -> 401, raised before any transaction starts
- ``TransientDeliveryError`` -> 500 when it surfaces inside a request
- ``UnexpectedError``        -> 500

``DataIntegrityError`` and ``PermanentDeliveryError`` are recovered
locally: the offending subscriber is skipped and a warning is logged.
"""
from __future__ import annotations


class MailroomError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(MailroomError):
    """Publish form fields are missing, empty or malformed."""


class AuthenticationError(MailroomError):
    """The request carries no usable authenticated user id."""


class DataIntegrityError(MailroomError):
    """Stored subscriber data can no longer be used, e.g. an unparsable email."""


class DeliveryError(MailroomError):
    """Sending one email failed."""


class TransientDeliveryError(DeliveryError):
    """The email service or the network failed; retrying may succeed."""


class PermanentDeliveryError(DeliveryError):
    """The email service rejected the message; retrying will never succeed."""


class UnexpectedError(MailroomError):
    """An internal invariant was violated."""
