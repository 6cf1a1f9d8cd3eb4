"""Tests for signup, resend, password reset, email change and sign-in codes."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock
from urllib.parse import parse_qs, urlparse

import pytest

from learninghub.auth.models import UserStatus
from learninghub.auth.security import hash_password, verify_password
from learninghub.auth.service import (
    AccountDisabledError,
    AuthService,
    EmailNotVerifiedError,
    InvalidCredentialsError,
    UserExistsError,
)
from learninghub.config import get_settings
from learninghub.core.rate_limit import RateLimiter, RateLimitExceededError
from learninghub.verification.models import TokenType
from learninghub.verification.service import AccountVerificationService
from learninghub.verification.tokens import (
    AlreadyVerifiedError,
    InvalidTokenError,
    NoPendingVerificationError,
    VerificationTokenService,
)


EMAIL = "ana@example.com"
PASSWORD = "s3cretpass"


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def email_service() -> MagicMock:
    service = MagicMock()
    service.send_verification_email = AsyncMock(return_value="m1")
    service.send_password_reset_email = AsyncMock(return_value="m2")
    service.send_email_change_email = AsyncMock(return_value="m3")
    service.send_login_code_email = AsyncMock(return_value="m4")
    return service


@pytest.fixture
def auth_service(cassandra_session, keyspace) -> AuthService:
    return AuthService(cassandra_session, keyspace)


@pytest.fixture
def flows(cassandra_session, keyspace, auth_service, email_service):
    return AccountVerificationService(
        tokens=VerificationTokenService(cassandra_session, keyspace, timedelta(days=1)),
        auth_service=auth_service,
        email_service=email_service,
        rate_limiter=RateLimiter(None, 60),
        settings=get_settings(),
    )


def _token_from(mock: AsyncMock) -> str:
    link = mock.call_args.args[2]
    return parse_qs(urlparse(link).query)["token"][0]


async def _signup(flows, email_service) -> str:
    await flows.signup("Ana Maria", EMAIL, "+14155550100", PASSWORD)
    return _token_from(email_service.send_verification_email)


# ==============================================================================
# Signup
# ==============================================================================


class TestSignup:
    @pytest.mark.asyncio
    async def test_signup_then_verify_creates_account(
        self, flows, email_service, auth_service
    ) -> None:
        token = await _signup(flows, email_service)

        user, created = await flows.verify_email(EMAIL, token)

        assert created is True
        assert user.email_verified is True
        assert user.full_name == "Ana Maria"
        assert verify_password(PASSWORD, user.password_hash)[0] is True
        assert (await auth_service.get_user_by_email(EMAIL)).id == user.id

    @pytest.mark.asyncio
    async def test_no_account_before_verification(
        self, flows, email_service, auth_service
    ) -> None:
        await _signup(flows, email_service)
        assert await auth_service.get_user_by_email(EMAIL) is None

    @pytest.mark.asyncio
    async def test_signup_for_existing_account(self, flows, auth_service) -> None:
        await auth_service.create_user(EMAIL, "Ana", "5550100", hash_password(PASSWORD))

        with pytest.raises(UserExistsError):
            await flows.signup("Ana", EMAIL, "5550100", PASSWORD)

    @pytest.mark.asyncio
    async def test_token_is_single_use(self, flows, email_service) -> None:
        token = await _signup(flows, email_service)
        await flows.verify_email(EMAIL, token)

        with pytest.raises(InvalidTokenError):
            await flows.verify_email(EMAIL, token)

    @pytest.mark.asyncio
    async def test_concurrent_verification_creates_one_account(
        self, flows, email_service, cassandra_session
    ) -> None:
        token = await _signup(flows, email_service)

        results = await asyncio.gather(
            flows.verify_email(EMAIL, token),
            flows.verify_email(EMAIL, token),
        )

        users = {user.id for user, _ in results}
        assert len(users) == 1
        assert sorted(created for _, created in results) == [False, True]
        assert len(cassandra_session.tables["users"].rows) == 1
        assert len(cassandra_session.tables["users_by_email"].rows) == 1

    @pytest.mark.asyncio
    async def test_delivery_failure_keeps_token(self, flows, email_service) -> None:
        email_service.send_verification_email.side_effect = RuntimeError("smtp down")

        with pytest.raises(RuntimeError):
            await flows.signup("Ana", EMAIL, "5550100", PASSWORD)
        assert await flows.tokens.get(EMAIL, TokenType.SIGNUP) is not None


# ==============================================================================
# Resend
# ==============================================================================


class TestResend:
    @pytest.mark.asyncio
    async def test_resend_replaces_link(self, flows, email_service) -> None:
        old = await _signup(flows, email_service)

        await flows.resend_verification(EMAIL)
        new = _token_from(email_service.send_verification_email)

        assert new != old
        with pytest.raises(InvalidTokenError):
            await flows.verify_email(EMAIL, old)
        user, created = await flows.verify_email(EMAIL, new)
        assert created is True
        assert user.full_name == "Ana Maria"

    @pytest.mark.asyncio
    async def test_resend_without_signup(self, flows) -> None:
        with pytest.raises(NoPendingVerificationError):
            await flows.resend_verification(EMAIL)

    @pytest.mark.asyncio
    async def test_resend_after_account_exists(
        self, flows, email_service, auth_service
    ) -> None:
        await _signup(flows, email_service)
        await auth_service.create_user(EMAIL, "Ana", "5550100", hash_password(PASSWORD))

        with pytest.raises(AlreadyVerifiedError):
            await flows.resend_verification(EMAIL)

    @pytest.mark.asyncio
    async def test_rate_limited(self, flows, email_service) -> None:
        flows.rate_limiter.hit = AsyncMock(
            side_effect=RateLimitExceededError("Too many requests", retry_after=30)
        )
        with pytest.raises(RateLimitExceededError) as exc_info:
            await flows.resend_verification(EMAIL)
        assert exc_info.value.retry_after == 30
        email_service.send_verification_email.assert_not_called()


# ==============================================================================
# Password reset
# ==============================================================================


class TestPasswordReset:
    @pytest.mark.asyncio
    async def test_reset_flow(self, flows, email_service, auth_service) -> None:
        user, _ = await auth_service.create_user(
            EMAIL, "Ana", "5550100", hash_password(PASSWORD)
        )

        await flows.request_password_reset(EMAIL)
        token = _token_from(email_service.send_password_reset_email)
        await flows.reset_password(EMAIL, token, "n3wpassword")

        stored = await auth_service.get_user_by_id(user.id)
        assert verify_password("n3wpassword", stored.password_hash)[0] is True
        with pytest.raises(InvalidTokenError):
            await flows.reset_password(EMAIL, token, "an0therpass")

    @pytest.mark.asyncio
    async def test_unknown_email_is_silent(self, flows, email_service) -> None:
        await flows.request_password_reset("ghost@example.com")
        email_service.send_password_reset_email.assert_not_called()


# ==============================================================================
# Email change
# ==============================================================================


class TestEmailChange:
    @pytest.mark.asyncio
    async def test_change_flow(self, flows, email_service, auth_service) -> None:
        user, _ = await auth_service.create_user(
            EMAIL, "Ana", "5550100", hash_password(PASSWORD)
        )

        await flows.request_email_change(user.id, "New@Example.com", PASSWORD)
        assert email_service.send_email_change_email.call_args.args[0] == "new@example.com"
        token = _token_from(email_service.send_email_change_email)

        updated = await flows.confirm_email_change(user.id, token)

        assert updated.email == "new@example.com"
        assert await auth_service.get_user_by_email(EMAIL) is None
        assert (await auth_service.get_user_by_email("new@example.com")).id == user.id

    @pytest.mark.asyncio
    async def test_wrong_password(self, flows, auth_service) -> None:
        user, _ = await auth_service.create_user(
            EMAIL, "Ana", "5550100", hash_password(PASSWORD)
        )
        with pytest.raises(InvalidCredentialsError):
            await flows.request_email_change(user.id, "new@example.com", "wrongpass1")

    @pytest.mark.asyncio
    async def test_taken_email(self, flows, auth_service) -> None:
        user, _ = await auth_service.create_user(
            EMAIL, "Ana", "5550100", hash_password(PASSWORD)
        )
        await auth_service.create_user(
            "taken@example.com", "Bo", "5550101", hash_password(PASSWORD)
        )
        with pytest.raises(UserExistsError):
            await flows.request_email_change(user.id, "taken@example.com", PASSWORD)


# ==============================================================================
# Sign-in codes
# ==============================================================================


class TestLoginCodes:
    @pytest.mark.asyncio
    async def test_code_flow(self, flows, email_service, auth_service) -> None:
        user, _ = await auth_service.create_user(
            EMAIL, "Ana", "5550100", hash_password(PASSWORD)
        )

        await flows.request_login_code(EMAIL, PASSWORD)
        code = email_service.send_login_code_email.call_args.args[2]

        assert (await flows.verify_login_code(EMAIL, code)).id == user.id
        with pytest.raises(InvalidTokenError):
            await flows.verify_login_code(EMAIL, code)

    @pytest.mark.asyncio
    async def test_wrong_password_sends_nothing(
        self, flows, email_service, auth_service
    ) -> None:
        await auth_service.create_user(EMAIL, "Ana", "5550100", hash_password(PASSWORD))

        with pytest.raises(InvalidCredentialsError):
            await flows.request_login_code(EMAIL, "wrongpass1")
        email_service.send_login_code_email.assert_not_called()

    @pytest.mark.asyncio
    async def test_unverified_account(self, flows, auth_service) -> None:
        await auth_service.create_user(
            EMAIL, "Ana", "5550100", hash_password(PASSWORD), email_verified=False
        )

        with pytest.raises(EmailNotVerifiedError):
            await flows.request_login_code(EMAIL, PASSWORD)

    @pytest.mark.asyncio
    async def test_new_request_replaces_code(
        self, flows, email_service, auth_service
    ) -> None:
        await auth_service.create_user(EMAIL, "Ana", "5550100", hash_password(PASSWORD))

        await flows.request_login_code(EMAIL, PASSWORD)
        first = email_service.send_login_code_email.call_args.args[2]
        await flows.request_login_code(EMAIL, PASSWORD)
        second = email_service.send_login_code_email.call_args.args[2]

        if first != second:
            with pytest.raises(InvalidTokenError):
                await flows.verify_login_code(EMAIL, first)
        assert (await flows.verify_login_code(EMAIL, second)).email == EMAIL

    @pytest.mark.asyncio
    async def test_wrong_guesses_revoke_code(
        self, flows, email_service, auth_service
    ) -> None:
        await auth_service.create_user(EMAIL, "Ana", "5550100", hash_password(PASSWORD))
        await flows.request_login_code(EMAIL, PASSWORD)
        code = email_service.send_login_code_email.call_args.args[2]
        wrong = f"{(int(code) + 1) % 1_000_000:06d}"

        for _ in range(get_settings().login_code_max_attempts):
            with pytest.raises(InvalidTokenError):
                await flows.verify_login_code(EMAIL, wrong)

        with pytest.raises(InvalidTokenError):
            await flows.verify_login_code(EMAIL, code)

    @pytest.mark.asyncio
    async def test_blocked_after_request(self, flows, email_service, auth_service) -> None:
        user, _ = await auth_service.create_user(
            EMAIL, "Ana", "5550100", hash_password(PASSWORD)
        )
        await flows.request_login_code(EMAIL, PASSWORD)
        code = email_service.send_login_code_email.call_args.args[2]
        await auth_service.set_status(user.id, UserStatus.BLOCKED)

        with pytest.raises(AccountDisabledError):
            await flows.verify_login_code(EMAIL, code)
