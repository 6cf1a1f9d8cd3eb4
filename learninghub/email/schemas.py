"""Pydantic schemas for outgoing email."""

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class EmailRecipient(BaseModel):
    email: EmailStr = Field(..., description="Recipient email address")
    name: str | None = Field(None, description="Recipient display name")


class SendEmailRequest(BaseModel):
    to: list[EmailRecipient] = Field(..., min_length=1, max_length=50)
    subject: str = Field(..., min_length=1, max_length=998)
    body_html: str = Field(..., min_length=1)
    body_text: str | None = Field(None, description="Plain text fallback")


class SendEmailResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    success: bool = Field(..., description="Whether the email was accepted")
    message_id: str | None = Field(None, description="Gmail message ID")
    error: str | None = Field(None, description="Error message if failed")
