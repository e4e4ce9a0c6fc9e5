"""Executors and producers for the email job types."""

from email_jobs.handlers.emails import (
    EmailJobType,
    Mailer,
    enqueue_admin_notification,
    enqueue_document_expiry,
    enqueue_query_confirmation,
    enqueue_quotation,
    register_email_executors,
)

__all__ = [
    "EmailJobType",
    "Mailer",
    "enqueue_admin_notification",
    "enqueue_document_expiry",
    "enqueue_query_confirmation",
    "enqueue_quotation",
    "register_email_executors",
]
