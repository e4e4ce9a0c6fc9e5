"""Example executors module for the email job processor.

Run with:
    EMAIL_JOBS_HANDLERS_MODULE=examples.handlers python -m email_jobs.processor_main
"""

import logging
from typing import Any, Dict, List, Optional

from email_jobs import executor_registry
from email_jobs.handlers import register_email_executors

logger = logging.getLogger(__name__)


class LoggingMailer:
    """Mailer that logs instead of sending; swap for an SMTP client in production."""

    async def send_query_confirmation(
        self, query: Dict[str, Any], company_details: Dict[str, Any]
    ) -> None:
        logger.info(
            f"Query confirmation to {query.get('email')} from "
            f"{company_details.get('company_name')}"
        )

    async def send_new_query_notification(
        self, query: Dict[str, Any], admin_emails: List[str], admin_url: str
    ) -> None:
        logger.info(f"New query {query.get('id')} notification to {admin_emails} ({admin_url})")

    async def send_document_expiry_notification(
        self,
        document: Dict[str, Any],
        days_before: int,
        admin_emails: Optional[List[str]] = None,
    ) -> None:
        logger.info(
            f"Document {document.get('id')} expires in {days_before} days, "
            f"notifying {admin_emails}"
        )

    async def send_quotation_email(
        self,
        quotation: Dict[str, Any],
        pdf: bytes,
        company_details: Dict[str, Any],
    ) -> None:
        logger.info(f"Quotation {quotation.get('id')} sent with {len(pdf)} byte PDF")


register_email_executors(executor_registry, LoggingMailer())


@executor_registry.executor("echo")
async def echo(payload):
    """Log the payload; handy for checking a deployment end to end."""
    logger.info(f"echo: {payload}")
