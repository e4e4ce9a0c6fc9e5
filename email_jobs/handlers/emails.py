"""Email job types: payload schemas, producers and executors."""

import base64
import binascii
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from email_jobs.errors import InvalidPayloadError
from email_jobs.registry import ExecutorRegistry

PayloadT = TypeVar("PayloadT", bound=BaseModel)


class EmailJobType(str, Enum):
    """Job types produced by the business application."""

    query_confirmation = "query-confirmation"
    admin_notification = "admin-notification"
    document_expiry = "document-expiry"
    quotation = "quotation"


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class QueryConfirmationPayload(_Payload):
    query: Dict[str, Any]
    company_details: Dict[str, Any] = Field(alias="companyDetails")


class AdminNotificationPayload(_Payload):
    query: Dict[str, Any]
    admin_emails: List[str] = Field(alias="adminEmails")
    admin_url: str = Field("#", alias="adminUrl")


class DocumentExpiryPayload(_Payload):
    document: Dict[str, Any]
    days_before: int = Field(alias="daysBefore")
    admin_emails: Optional[List[str]] = Field(None, alias="adminEmails")


class QuotationPayload(_Payload):
    quotation: Dict[str, Any]
    # Base64 so the PDF survives the text payload column
    pdf_buffer: str = Field(alias="pdfBuffer")
    company_details: Dict[str, Any] = Field(alias="companyDetails")

    def pdf_bytes(self) -> bytes:
        try:
            return base64.b64decode(self.pdf_buffer, validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidPayloadError(
                EmailJobType.quotation.value, f"pdfBuffer is not valid base64: {e}"
            ) from e


class Mailer(Protocol):
    """Sends the actual emails; provided by the host application."""

    async def send_query_confirmation(
        self, query: Dict[str, Any], company_details: Dict[str, Any]
    ) -> None: ...

    async def send_new_query_notification(
        self, query: Dict[str, Any], admin_emails: List[str], admin_url: str
    ) -> None: ...

    async def send_document_expiry_notification(
        self,
        document: Dict[str, Any],
        days_before: int,
        admin_emails: Optional[List[str]] = None,
    ) -> None: ...

    async def send_quotation_email(
        self,
        quotation: Dict[str, Any],
        pdf: bytes,
        company_details: Dict[str, Any],
    ) -> None: ...


def parse_payload(model: Type[PayloadT], job_type: str, payload: Any) -> PayloadT:
    """Validate a decoded payload against its schema."""
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise InvalidPayloadError(job_type, str(e)) from e


def register_email_executors(registry: ExecutorRegistry, mailer: Mailer) -> ExecutorRegistry:
    """Register executors for every EmailJobType, delegating to mailer."""

    @registry.executor(EmailJobType.query_confirmation)
    async def send_query_confirmation(payload: Any) -> None:
        data = parse_payload(
            QueryConfirmationPayload, EmailJobType.query_confirmation.value, payload
        )
        await mailer.send_query_confirmation(data.query, data.company_details)

    @registry.executor(EmailJobType.admin_notification)
    async def send_admin_notification(payload: Any) -> None:
        data = parse_payload(
            AdminNotificationPayload, EmailJobType.admin_notification.value, payload
        )
        await mailer.send_new_query_notification(
            data.query, data.admin_emails, data.admin_url
        )

    @registry.executor(EmailJobType.document_expiry)
    async def send_document_expiry(payload: Any) -> None:
        data = parse_payload(
            DocumentExpiryPayload, EmailJobType.document_expiry.value, payload
        )
        await mailer.send_document_expiry_notification(
            data.document, data.days_before, data.admin_emails
        )

    @registry.executor(EmailJobType.quotation)
    async def send_quotation(payload: Any) -> None:
        data = parse_payload(QuotationPayload, EmailJobType.quotation.value, payload)
        await mailer.send_quotation_email(
            data.quotation, data.pdf_bytes(), data.company_details
        )

    return registry


async def _enqueue(
    service, job_type: EmailJobType, payload: _Payload, scheduled_for=None
) -> int:
    return await service.enqueue(
        job_type.value,
        payload.model_dump(by_alias=True, mode="json"),
        scheduled_for=scheduled_for,
    )


async def enqueue_query_confirmation(
    service, query: Dict[str, Any], company_details: Dict[str, Any]
) -> int:
    """Queue the confirmation email sent to a customer after a query."""
    payload = QueryConfirmationPayload(query=query, company_details=company_details)
    return await _enqueue(service, EmailJobType.query_confirmation, payload)


async def enqueue_admin_notification(
    service, query: Dict[str, Any], admin_emails: List[str], admin_url: str = "#"
) -> int:
    """Queue the new-query notification sent to administrators."""
    payload = AdminNotificationPayload(
        query=query, admin_emails=admin_emails, admin_url=admin_url
    )
    return await _enqueue(service, EmailJobType.admin_notification, payload)


async def enqueue_document_expiry(
    service,
    document: Dict[str, Any],
    days_before: int,
    notify_on: datetime,
    admin_emails: Optional[List[str]] = None,
) -> int:
    """Queue a document expiry reminder to be sent on notify_on."""
    payload = DocumentExpiryPayload(
        document=document, days_before=days_before, admin_emails=admin_emails
    )
    return await _enqueue(
        service, EmailJobType.document_expiry, payload, scheduled_for=notify_on
    )


async def enqueue_quotation(
    service,
    quotation: Dict[str, Any],
    pdf: bytes,
    company_details: Dict[str, Any],
) -> int:
    """Queue a quotation email with its rendered PDF attached."""
    payload = QuotationPayload(
        quotation=quotation,
        pdf_buffer=base64.b64encode(pdf).decode("ascii"),
        company_details=company_details,
    )
    return await _enqueue(service, EmailJobType.quotation, payload)
