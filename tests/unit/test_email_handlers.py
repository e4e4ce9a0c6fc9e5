"""Unit tests for the email job types."""

import base64
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from email_jobs.errors import InvalidPayloadError, UnknownJobTypeError
from email_jobs.handlers import (
    EmailJobType,
    enqueue_admin_notification,
    enqueue_document_expiry,
    enqueue_query_confirmation,
    enqueue_quotation,
    register_email_executors,
)
from email_jobs.registry import ExecutorRegistry

QUERY = {"id": 12, "name": "Jane", "email": "jane@example.com"}
COMPANY = {"name": "Acme Machines", "email": "info@acme.example"}


@pytest.fixture
def mailer():
    mailer = MagicMock()
    mailer.send_query_confirmation = AsyncMock()
    mailer.send_new_query_notification = AsyncMock()
    mailer.send_document_expiry_notification = AsyncMock()
    mailer.send_quotation_email = AsyncMock()
    return mailer


@pytest.fixture
def registry(mailer):
    return register_email_executors(ExecutorRegistry(), mailer)


@pytest.fixture
def service():
    service = MagicMock()
    service.enqueue = AsyncMock(return_value=1)
    return service


def test_all_email_job_types_registered(registry):
    for job_type in EmailJobType:
        assert job_type.value in registry


@pytest.mark.asyncio
async def test_query_confirmation_executor(registry, mailer):
    """Test that the confirmation executor passes query and company details."""
    executor = registry.require_executor("query-confirmation")

    await executor({"query": QUERY, "companyDetails": COMPANY})

    mailer.send_query_confirmation.assert_awaited_once_with(QUERY, COMPANY)


@pytest.mark.asyncio
async def test_admin_notification_executor_default_url(registry, mailer):
    executor = registry.require_executor("admin-notification")

    await executor({"query": QUERY, "adminEmails": ["admin@acme.example"]})

    mailer.send_new_query_notification.assert_awaited_once_with(
        QUERY, ["admin@acme.example"], "#"
    )


@pytest.mark.asyncio
async def test_document_expiry_executor(registry, mailer):
    executor = registry.require_executor("document-expiry")
    document = {"id": 5, "name": "CE certificate", "expiry_date": "2026-03-01"}

    await executor({"document": document, "daysBefore": 30, "adminEmails": None})

    mailer.send_document_expiry_notification.assert_awaited_once_with(document, 30, None)


@pytest.mark.asyncio
async def test_quotation_executor_decodes_pdf(registry, mailer):
    """Test that the stored base64 PDF reaches the mailer as bytes."""
    executor = registry.require_executor("quotation")
    pdf = b"%PDF-1.4 quotation"

    await executor(
        {
            "quotation": {"id": 8},
            "pdfBuffer": base64.b64encode(pdf).decode("ascii"),
            "companyDetails": COMPANY,
        }
    )

    mailer.send_quotation_email.assert_awaited_once_with({"id": 8}, pdf, COMPANY)


@pytest.mark.asyncio
async def test_quotation_executor_rejects_corrupt_pdf(registry, mailer):
    executor = registry.require_executor("quotation")

    with pytest.raises(InvalidPayloadError, match="pdfBuffer"):
        await executor(
            {"quotation": {"id": 8}, "pdfBuffer": "***", "companyDetails": COMPANY}
        )

    mailer.send_quotation_email.assert_not_called()


@pytest.mark.asyncio
async def test_executor_rejects_payload_missing_fields(registry, mailer):
    """Test that schema violations are permanent errors."""
    executor = registry.require_executor("query-confirmation")

    with pytest.raises(InvalidPayloadError, match="query-confirmation"):
        await executor({"query": QUERY})

    mailer.send_query_confirmation.assert_not_called()


@pytest.mark.asyncio
async def test_mailer_errors_propagate(registry, mailer):
    """Test that delivery failures stay retryable."""
    mailer.send_query_confirmation.side_effect = ConnectionError("SMTP down")
    executor = registry.require_executor("query-confirmation")

    with pytest.raises(ConnectionError):
        await executor({"query": QUERY, "companyDetails": COMPANY})


def test_unregistered_type_is_unknown(registry):
    with pytest.raises(UnknownJobTypeError):
        registry.require_executor("newsletter")


@pytest.mark.asyncio
async def test_enqueue_query_confirmation(service):
    """Test that payloads are stored with camelCase keys."""
    await enqueue_query_confirmation(service, QUERY, COMPANY)

    service.enqueue.assert_awaited_once_with(
        "query-confirmation",
        {"query": QUERY, "companyDetails": COMPANY},
        scheduled_for=None,
    )


@pytest.mark.asyncio
async def test_enqueue_admin_notification(service):
    await enqueue_admin_notification(
        service, QUERY, ["admin@acme.example"], admin_url="https://acme.example/admin"
    )

    job_type, payload = service.enqueue.call_args.args
    assert job_type == "admin-notification"
    assert payload["adminEmails"] == ["admin@acme.example"]
    assert payload["adminUrl"] == "https://acme.example/admin"


@pytest.mark.asyncio
async def test_enqueue_document_expiry_is_scheduled(service):
    """Test that expiry reminders are delayed until the notification date."""
    expiry = datetime(2026, 3, 1, tzinfo=timezone.utc)
    notify_on = expiry - timedelta(days=30)
    document = {"id": 5, "expiry_date": expiry.isoformat()}

    await enqueue_document_expiry(service, document, 30, notify_on)

    job_type, payload = service.enqueue.call_args.args
    assert job_type == "document-expiry"
    assert payload == {"document": document, "daysBefore": 30, "adminEmails": None}
    assert service.enqueue.call_args.kwargs["scheduled_for"] == notify_on


@pytest.mark.asyncio
async def test_enqueue_quotation_encodes_pdf(service):
    pdf = b"%PDF-1.4 quotation"

    await enqueue_quotation(service, {"id": 8}, pdf, COMPANY)

    job_type, payload = service.enqueue.call_args.args
    assert job_type == "quotation"
    assert base64.b64decode(payload["pdfBuffer"]) == pdf
    assert payload["companyDetails"] == COMPANY
