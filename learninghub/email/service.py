"""Email service using the Gmail API with a service account.

The service account needs domain-wide delegation with the
``https://www.googleapis.com/auth/gmail.send`` scope so it can send on
behalf of the configured Workspace sender.
"""

import asyncio
import base64
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Any

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from learninghub.core.logging import get_logger

from .schemas import EmailRecipient, SendEmailRequest, SendEmailResponse
from .templates import (
    render_email_change_email,
    render_login_code_email,
    render_password_reset_email,
    render_verification_email,
)


logger = get_logger(__name__)

GMAIL_SCOPES = ["https://www.googleapis.com/auth/gmail.send"]


class EmailDeliveryError(Exception):
    """The email provider did not accept a message."""

    def __init__(self, message: str = "Failed to send email"):
        self.message = message
        self.code = "upstream_failure"
        super().__init__(message)


def mask_email(email: str) -> str:
    """Mask an address for logs: ``jane@example.com`` -> ``j***@example.com``."""
    local, _, domain = email.partition("@")
    if not domain:
        return "***"
    return f"{local[:1]}***@{domain}"


class EmailService:
    """Send transactional email through Gmail."""

    def __init__(
        self,
        credentials_path: str,
        sender_address: str,
        sender_name: str = "LearningHub",
    ):
        self.credentials_path = credentials_path
        self.sender_address = sender_address
        self.sender_name = sender_name
        self._service: Any = None

        if not Path(credentials_path).exists():
            logger.warning("email_credentials_not_found", path=credentials_path)

    def _get_service(self) -> Any:
        """Build the Gmail client on first use.

        Raises:
            FileNotFoundError: If the credentials file doesn't exist
        """
        if self._service is not None:
            return self._service

        credentials_file = Path(self.credentials_path)
        if not credentials_file.exists():
            msg = f"Credentials file not found: {self.credentials_path}"
            raise FileNotFoundError(msg)

        credentials = service_account.Credentials.from_service_account_file(
            str(credentials_file),
            scopes=GMAIL_SCOPES,
        ).with_subject(self.sender_address)
        self._service = build(
            "gmail",
            "v1",
            credentials=credentials,
            cache_discovery=False,
        )
        logger.info("gmail_service_initialized", sender=self.sender_address)
        return self._service

    def _create_message(self, request: SendEmailRequest) -> dict[str, str]:
        """Encode the request as a base64url MIME message."""
        message = MIMEMultipart("alternative")
        message["From"] = f"{self.sender_name} <{self.sender_address}>"
        message["To"] = ", ".join(
            f"{r.name} <{r.email}>" if r.name else r.email for r in request.to
        )
        message["Subject"] = request.subject

        # Plain text first; clients prefer the last alternative
        if request.body_text:
            message.attach(MIMEText(request.body_text, "plain", "utf-8"))
        message.attach(MIMEText(request.body_html, "html", "utf-8"))

        raw = base64.urlsafe_b64encode(message.as_bytes()).decode("utf-8")
        return {"raw": raw}

    async def send_email(self, request: SendEmailRequest) -> SendEmailResponse:
        """Send an email; failures are reported in the response."""
        recipients = [mask_email(r.email) for r in request.to]
        try:
            service = self._get_service()
            body = self._create_message(request)
            result = await asyncio.to_thread(
                service.users().messages().send(userId="me", body=body).execute
            )
        except HttpError as e:
            logger.exception("email_send_failed", to=recipients, error=str(e))
            return SendEmailResponse(success=False, error=f"Gmail API error: {e}")
        except FileNotFoundError as e:
            logger.error("email_credentials_missing", error=str(e))
            return SendEmailResponse(
                success=False,
                error="Email service not configured: credentials file missing",
            )
        except Exception as e:
            logger.exception("email_send_unexpected_error", to=recipients)
            return SendEmailResponse(success=False, error=f"Unexpected error: {e!s}")

        logger.info(
            "email_sent",
            message_id=result.get("id"),
            to=recipients,
            subject=request.subject[:50],
        )
        return SendEmailResponse(success=True, message_id=result.get("id"))

    async def deliver(
        self,
        to: str,
        subject: str,
        body_html: str,
        body_text: str | None = None,
        to_name: str | None = None,
    ) -> str | None:
        """Send one message and return its provider id.

        Raises:
            EmailDeliveryError: If the provider rejected the message
        """
        response = await self.send_email(
            SendEmailRequest(
                to=[EmailRecipient(email=to, name=to_name)],
                subject=subject,
                body_html=body_html,
                body_text=body_text,
            )
        )
        if not response.success:
            raise EmailDeliveryError
        return response.message_id

    async def send_verification_email(
        self, to: str, name: str, link: str, expires_in_minutes: int
    ) -> str | None:
        body_html, body_text = render_verification_email(name, link, expires_in_minutes)
        return await self.deliver(
            to, "Verify your email address", body_html, body_text, to_name=name
        )

    async def send_password_reset_email(
        self, to: str, name: str, link: str, expires_in_minutes: int
    ) -> str | None:
        body_html, body_text = render_password_reset_email(
            name, link, expires_in_minutes
        )
        return await self.deliver(
            to, "Reset your password", body_html, body_text, to_name=name
        )

    async def send_email_change_email(
        self, to: str, name: str, link: str, expires_in_minutes: int
    ) -> str | None:
        body_html, body_text = render_email_change_email(name, link, expires_in_minutes)
        return await self.deliver(
            to, "Confirm your new email address", body_html, body_text, to_name=name
        )

    async def send_login_code_email(
        self, to: str, name: str, code: str, expires_in_minutes: int
    ) -> str | None:
        body_html, body_text = render_login_code_email(name, code, expires_in_minutes)
        return await self.deliver(
            to, "Your sign-in code", body_html, body_text, to_name=name
        )
