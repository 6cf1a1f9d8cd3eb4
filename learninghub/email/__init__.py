"""Outgoing email via the Gmail API."""

from .schemas import EmailRecipient, SendEmailRequest, SendEmailResponse
from .service import EmailDeliveryError, EmailService


__all__ = [
    "EmailDeliveryError",
    "EmailRecipient",
    "EmailService",
    "SendEmailRequest",
    "SendEmailResponse",
]
