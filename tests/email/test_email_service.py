"""Tests for verification email delivery."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from learninghub.email.service import EmailDeliveryError, EmailService, mask_email


LINK = "https://app.example.com/verify-email?email=a%40example.com&token=abc"


class TestEmailService:
    @pytest.fixture
    def email_service(self):
        with patch.object(EmailService, "_get_service"):
            service = EmailService(
                credentials_path="/fake/path.json",
                sender_address="no-reply@example.com",
            )
            service.send_email = AsyncMock(
                return_value=MagicMock(success=True, message_id="msg123")
            )
            return service

    @pytest.mark.asyncio
    async def test_verification_email_is_sent(self, email_service) -> None:
        message_id = await email_service.send_verification_email(
            "ana@example.com", "Ana", LINK, 1440
        )

        assert message_id == "msg123"
        request = email_service.send_email.call_args.args[0]
        assert request.to[0].email == "ana@example.com"
        assert request.subject == "Verify your email address"
        assert "24 hours" in request.body_text
        assert LINK in request.body_text

    @pytest.mark.asyncio
    async def test_password_reset_subject(self, email_service) -> None:
        await email_service.send_password_reset_email("ana@example.com", "Ana", LINK, 30)

        request = email_service.send_email.call_args.args[0]
        assert request.subject == "Reset your password"
        assert "30 minutes" in request.body_text

    @pytest.mark.asyncio
    async def test_rejected_message_raises(self, email_service) -> None:
        email_service.send_email.return_value = MagicMock(success=False, message_id=None)

        with pytest.raises(EmailDeliveryError):
            await email_service.send_email_change_email(
                "new@example.com", "Ana", LINK, 30
            )

    @pytest.mark.asyncio
    async def test_missing_credentials_reported(self) -> None:
        service = EmailService(
            credentials_path="/does/not/exist.json",
            sender_address="no-reply@example.com",
        )
        with pytest.raises(EmailDeliveryError):
            await service.send_verification_email("ana@example.com", "Ana", LINK, 60)


def test_mask_email() -> None:
    masked = mask_email("ana.maria@example.com")
    assert "ana.maria" not in masked
    assert masked.endswith("@example.com")
