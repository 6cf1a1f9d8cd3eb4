"""Account flows built on verification tokens.

- Signup: the account is only created once the emailed link is followed
- Resend: rotate the pending signup token and email it again
- Password reset: single-use link, no account enumeration
- Email change: link sent to the new address, keyed by the current one
- Sign-in codes: short emailed codes with a wrong-guess limit, kept in the
  same token store as the links
"""

from datetime import timedelta
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode
from uuid import UUID

from learninghub.auth.models import User, normalize_email
from learninghub.auth.security import hash_password, verify_password
from learninghub.auth.service import (
    AccountDisabledError,
    AuthService,
    InvalidCredentialsError,
    UserExistsError,
    UserNotFoundError,
)
from learninghub.core.logging import get_logger
from learninghub.core.rate_limit import RateLimiter
from learninghub.email.service import EmailDeliveryError, mask_email

from .models import TokenType
from .tokens import (
    AlreadyVerifiedError,
    InvalidPayloadError,
    InvalidTokenError,
    VerificationTokenService,
    generate_login_code,
)


if TYPE_CHECKING:
    from learninghub.config.settings import Settings
    from learninghub.email.service import EmailService


logger = get_logger(__name__)

SIGNUP_PAYLOAD_FIELDS = ("full_name", "phone", "password_hash")


class AccountVerificationService:
    """Signup, resend, password reset, email change and sign-in code flows."""

    def __init__(
        self,
        tokens: VerificationTokenService,
        auth_service: AuthService,
        email_service: "EmailService | None",
        rate_limiter: RateLimiter,
        settings: "Settings",
    ):
        self.tokens = tokens
        self.auth_service = auth_service
        self.email_service = email_service
        self.rate_limiter = rate_limiter
        self.settings = settings

        self.signup_ttl = timedelta(hours=settings.verification_signup_ttl_hours)
        self.password_reset_ttl = timedelta(
            minutes=settings.verification_password_reset_ttl_minutes
        )
        self.email_change_ttl = timedelta(
            minutes=settings.verification_email_change_ttl_minutes
        )
        self.login_code_ttl = timedelta(minutes=settings.login_code_ttl_minutes)

    # =========================================================================
    # Links & delivery
    # =========================================================================

    def _link(self, path: str, **params: str) -> str:
        base = self.settings.frontend_url.rstrip("/")
        return f"{base}/{path}?{urlencode(params)}"

    async def _send(
        self,
        kind: str,
        to: str,
        name: str,
        link: str,
        ttl: timedelta,
    ) -> None:
        """Send a link email; in development without email the link is logged.

        Raises:
            EmailDeliveryError: If the provider rejected the message
        """
        minutes = int(ttl.total_seconds() // 60)
        if self.email_service is None:
            if not self.settings.is_development:
                raise EmailDeliveryError("Email delivery is not configured")
            logger.warning("email_disabled_link", kind=kind, to=mask_email(to), link=link)
            return

        if kind == "signup":
            await self.email_service.send_verification_email(to, name, link, minutes)
        elif kind == "password_reset":
            await self.email_service.send_password_reset_email(to, name, link, minutes)
        else:
            await self.email_service.send_email_change_email(to, name, link, minutes)

    async def _send_code(self, to: str, name: str, code: str) -> None:
        minutes = int(self.login_code_ttl.total_seconds() // 60)
        if self.email_service is None:
            if not self.settings.is_development:
                raise EmailDeliveryError("Email delivery is not configured")
            logger.warning("email_disabled_login_code", to=mask_email(to), code=code)
            return
        await self.email_service.send_login_code_email(to, name, code, minutes)

    # =========================================================================
    # Signup
    # =========================================================================

    async def signup(
        self, full_name: str, email: str, phone: str, password: str
    ) -> str:
        """Start a signup and email the verification link.

        The token stays stored when delivery fails; the user can ask for a
        resend.

        Returns:
            The normalized email the link was sent to.

        Raises:
            RateLimitExceededError: Too many signups for this email
            UserExistsError: The email already has an account
            EmailDeliveryError: The link could not be sent
        """
        email = normalize_email(email)
        await self.rate_limiter.hit(
            "signup", email, self.settings.rate_limit_signup_per_window
        )

        if await self.auth_service.email_exists(email):
            raise UserExistsError

        token = await self.tokens.issue(
            email,
            TokenType.SIGNUP,
            self.signup_ttl,
            payload={
                "full_name": full_name,
                "phone": phone,
                "password_hash": hash_password(password),
            },
        )
        logger.info("signup_started", email=mask_email(email))

        await self._send(
            "signup",
            email,
            full_name,
            self._link("verify-email", email=email, token=token),
            self.signup_ttl,
        )
        return email

    async def verify_email(self, email: str, token: str) -> tuple[User, bool]:
        """Complete a signup.

        Verifying twice at the same time yields one account and two
        successes: whoever loses the email claim gets the winner's account.

        Returns:
            ``(user, created)``

        Raises:
            InvalidTokenError: Unknown or already used token
            TokenExpiredError: The link expired
            InvalidPayloadError: The stored signup data is incomplete
        """
        email = normalize_email(email)
        record = await self.tokens.find(email, token, TokenType.SIGNUP)

        existing = await self.auth_service.get_user_by_email(email)
        if existing is not None:
            await self.auth_service.mark_email_verified(existing)
            await self.tokens.discard(record)
            logger.info("verify_email_existing_account", user_id=str(existing.id))
            return existing, False

        payload: dict[str, Any] = record.payload
        if any(not payload.get(field) for field in SIGNUP_PAYLOAD_FIELDS):
            await self.tokens.discard(record)
            raise InvalidPayloadError

        user, created = await self.auth_service.create_user(
            email=email,
            full_name=payload["full_name"],
            phone=payload["phone"],
            password_hash=payload["password_hash"],
            email_verified=True,
        )
        await self.tokens.discard(record)

        logger.info("email_verified", user_id=str(user.id), created=created)
        return user, created

    async def resend_verification(self, email: str) -> None:
        """Rotate the pending signup token and email the new link.

        Raises:
            RateLimitExceededError: Too many resends for this email
            NoPendingVerificationError: No signup is pending for this email
            AlreadyVerifiedError: The account already exists
            EmailDeliveryError: The link could not be sent
        """
        email = normalize_email(email)
        await self.rate_limiter.hit(
            "resend", email, self.settings.rate_limit_resend_per_window
        )

        pending = await self.tokens.get(email, TokenType.SIGNUP)
        if pending is not None and await self.auth_service.email_exists(email):
            await self.tokens.discard(pending)
            raise AlreadyVerifiedError

        token, record = await self.tokens.rotate(
            email, TokenType.SIGNUP, self.signup_ttl
        )
        await self._send(
            "signup",
            email,
            record.payload.get("full_name") or "there",
            self._link("verify-email", email=email, token=token),
            self.signup_ttl,
        )

    # =========================================================================
    # Password reset
    # =========================================================================

    async def request_password_reset(self, email: str) -> None:
        """Email a reset link if the account exists.

        Unknown emails return silently so callers cannot probe for accounts.

        Raises:
            RateLimitExceededError: Too many requests for this email
            EmailDeliveryError: The link could not be sent
        """
        email = normalize_email(email)
        await self.rate_limiter.hit(
            "password_reset", email, self.settings.rate_limit_password_reset_per_window
        )

        user = await self.auth_service.get_user_by_email(email)
        if user is None:
            logger.info("password_reset_unknown_email", email=mask_email(email))
            return

        token = await self.tokens.issue(
            email,
            TokenType.PASSWORD_RESET,
            self.password_reset_ttl,
            payload={"user_id": str(user.id)},
        )
        await self._send(
            "password_reset",
            email,
            user.full_name,
            self._link("reset-password", email=email, token=token),
            self.password_reset_ttl,
        )
        logger.info("password_reset_requested", user_id=str(user.id))

    async def reset_password(self, email: str, token: str, new_password: str) -> None:
        """Use a reset token to set a new password.

        Raises:
            InvalidTokenError: Unknown or already used token
            TokenExpiredError: The link expired
            UserNotFoundError: The account was removed meanwhile
        """
        email = normalize_email(email)
        await self.tokens.consume(email, token, TokenType.PASSWORD_RESET)

        user = await self.auth_service.get_user_by_email(email)
        if user is None:
            raise UserNotFoundError

        await self.auth_service.set_password_hash(user.id, hash_password(new_password))
        logger.info("password_reset_completed", user_id=str(user.id))

    # =========================================================================
    # Email change
    # =========================================================================

    async def request_email_change(
        self, user_id: UUID, new_email: str, password: str
    ) -> None:
        """Send a confirmation link to the new address.

        Raises:
            UserNotFoundError: Unknown account
            InvalidCredentialsError: Wrong current password
            UserExistsError: The new email is taken
            EmailDeliveryError: The link could not be sent
        """
        user = await self.auth_service.require_user(user_id)
        is_valid, _ = verify_password(password, user.password_hash)
        if not is_valid:
            raise InvalidCredentialsError("Current password is incorrect")

        new_email = normalize_email(new_email)
        if new_email == user.email or await self.auth_service.email_exists(new_email):
            raise UserExistsError("This email is already in use")

        token = await self.tokens.issue(
            user.email,
            TokenType.EMAIL_CHANGE,
            self.email_change_ttl,
            payload={"user_id": str(user.id), "new_email": new_email},
        )
        await self._send(
            "email_change",
            new_email,
            user.full_name,
            self._link("confirm-email-change", token=token),
            self.email_change_ttl,
        )
        logger.info("email_change_requested", user_id=str(user.id))

    async def confirm_email_change(self, user_id: UUID, token: str) -> User:
        """Apply a pending email change.

        Raises:
            InvalidTokenError: Unknown, used, or issued for another account
            TokenExpiredError: The link expired
            UserExistsError: The new email was taken meanwhile
        """
        user = await self.auth_service.require_user(user_id)
        payload = await self.tokens.consume(user.email, token, TokenType.EMAIL_CHANGE)
        if payload.get("user_id") != str(user.id) or not payload.get("new_email"):
            raise InvalidTokenError
        return await self.auth_service.change_email(user, payload["new_email"])

    # =========================================================================
    # Sign-in codes
    # =========================================================================

    async def request_login_code(self, email: str, password: str) -> None:
        """Check the password and email a one-time sign-in code.

        A new request replaces any code sent before.

        Raises:
            RateLimitExceededError: Too many requests for this email
            InvalidCredentialsError: Unknown email or wrong password
            EmailNotVerifiedError: Address never confirmed
            AccountDisabledError: Account blocked or inactive
            EmailDeliveryError: The code could not be sent
        """
        email = normalize_email(email)
        await self.rate_limiter.hit(
            "login_code", email, self.settings.rate_limit_login_code_per_window
        )

        user = await self.auth_service.authenticate_user(email, password)
        code = generate_login_code()
        await self.tokens.issue(
            email,
            TokenType.LOGIN_CODE,
            self.login_code_ttl,
            payload={"user_id": str(user.id)},
            token=code,
        )
        await self._send_code(email, user.full_name, code)
        logger.info("login_code_sent", user_id=str(user.id))

    async def verify_login_code(self, email: str, code: str) -> User:
        """Exchange a sign-in code for the account it was sent for.

        Every wrong code counts against the live one; after
        ``login_code_max_attempts`` it is revoked and a new one must be
        requested.

        Raises:
            InvalidTokenError: Wrong, used or revoked code
            TokenExpiredError: The code expired
            AccountDisabledError: The account was blocked meanwhile
        """
        email = normalize_email(email)
        try:
            payload = await self.tokens.consume(email, code, TokenType.LOGIN_CODE)
        except InvalidTokenError:
            await self.tokens.record_failed_attempt(
                email, TokenType.LOGIN_CODE, self.settings.login_code_max_attempts
            )
            raise

        user = await self.auth_service.get_user_by_email(email)
        if user is None or payload.get("user_id") != str(user.id):
            raise InvalidTokenError
        if not user.is_active:
            raise AccountDisabledError(f"Account is {user.status}")

        logger.info("login_code_verified", user_id=str(user.id))
        return user
