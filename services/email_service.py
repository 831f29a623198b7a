"""
Email Service - verification and invoice emails over the HTTP mail relay
"""

import logging
from pathlib import Path
from typing import Optional

import httpx
from jinja2 import Environment, FileSystemLoader, StrictUndefined

from config.settings import settings
from database_models import Invoice

logger = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).resolve().parent.parent
EMAIL_TEMPLATE_DIR = REPO_ROOT / "templates" / "email"

VERIFY_SUBJECT = "Verifica tu correo - CV Manager"
INVOICE_SUBJECT = "Tu factura - CV Manager"

_env: Optional[Environment] = None


class EmailDeliveryError(Exception):
    """Raised when the mail relay rejects or cannot receive a message"""


def _get_env() -> Environment:
    global _env
    if _env is None:
        _env = Environment(
            loader=FileSystemLoader(EMAIL_TEMPLATE_DIR),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )
    return _env


def render_email(template: str, **context) -> str:
    return _get_env().get_template(template).render(**context)


class EmailService:
    """
    Sends plain-text email through the relay at https://{SMTP_HOST}:{SMTP_PORT}/send.
    Every send is skipped when the relay is not configured.
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.user = settings.smtp_user
        self.password = settings.smtp_pass
        self.sender = settings.smtp_from or settings.smtp_user
        self.app_url = (settings.app_url or "http://localhost:8787").rstrip("/")
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.user and self.password)

    async def send(self, to: str, subject: str, text: str) -> None:
        """
        Post a message to the relay.

        Raises:
            EmailDeliveryError: If the relay is unreachable or answers with an error status
        """
        url = f"https://{self.host}:{self.port}/send"
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=15.0) as client:
                response = await client.post(
                    url,
                    auth=(self.user, self.password),
                    json={
                        "from": self.sender,
                        "to": to,
                        "subject": subject,
                        "text": text,
                    },
                )
        except httpx.HTTPError as e:
            raise EmailDeliveryError(f"Mail relay unreachable: {e}") from e

        if response.status_code >= 400:
            raise EmailDeliveryError(f"SMTP error: {response.status_code}")

    async def send_verification_email(self, email: str, token: str, username: str) -> bool:
        """
        Send the email verification link.

        Returns:
            True if a message was sent, False if the relay is not configured
        """
        if not self.is_configured:
            logger.info("SMTP not configured, skipping email verification")
            return False

        text = render_email(
            "verify_email.txt",
            username=username,
            verification_url=f"{self.app_url}/api/verify-email/{token}",
        )
        await self.send(email, VERIFY_SUBJECT, text)
        logger.info(f"Verification email sent to {email}")
        return True

    async def send_invoice_email(self, email: str, name: str, plan: str, invoice: Invoice) -> bool:
        """
        Send an invoice summary.

        Returns:
            True if a message was sent, False if the relay is not configured
        """
        if not self.is_configured:
            logger.info(f"SMTP not configured, invoice {invoice.id} stays pending")
            return False

        text = render_email(
            "invoice.txt",
            name=name,
            plan=plan,
            invoice=invoice,
        )
        await self.send(email, INVOICE_SUBJECT, text)
        logger.info(f"Invoice {invoice.id} sent to {email}")
        return True
