"""Outbox-style newsletter delivery.

Tasks are written in the publish transaction and drained one at a time by
:class:`~mailroom.delivery.worker.DeliveryWorker`.  A task row is deleted
only after the email service accepted the message (or the recipient is
permanently undeliverable), so re-running the worker never contacts a
subscriber twice.
"""
