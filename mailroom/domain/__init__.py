"""Validated value types for publish requests and subscriber data."""
from mailroom.domain.newsletter import NewsletterContent
from mailroom.domain.subscriber_email import SubscriberEmail

__all__ = ["NewsletterContent", "SubscriberEmail"]
