"""Account service layer.

Business logic for:
- Account creation guarded by the unique email claim
- Login and access token issuing
- Profile, password and email updates
- Admin user management
"""

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from learninghub.auth.models import User, UserStatus, normalize_email
from learninghub.auth.permissions import UserRole
from learninghub.auth.security import create_access_token, verify_password
from learninghub.config.settings import get_settings


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class AuthError(Exception):
    """Base authentication error."""

    def __init__(self, message: str, code: str = "auth_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class InvalidCredentialsError(AuthError):
    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message, "invalid_credentials")


class UserExistsError(AuthError):
    def __init__(self, message: str = "An account with this email already exists"):
        super().__init__(message, "user_exists")


class UserNotFoundError(AuthError):
    def __init__(self, message: str = "User not found"):
        super().__init__(message, "user_not_found")


class EmailNotVerifiedError(AuthError):
    def __init__(self, message: str = "Email verification pending"):
        super().__init__(message, "email_not_verified")


class AccountDisabledError(AuthError):
    """Account is blocked or inactive."""

    def __init__(self, message: str = "Account is not active"):
        super().__init__(message, "account_disabled")


class PermissionDeniedError(AuthError):
    def __init__(self, message: str = "Permission denied"):
        super().__init__(message, "permission_denied")


# ==============================================================================
# Auth Service
# ==============================================================================


class AuthService:
    """Account persistence and authentication."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        ks = self.keyspace
        self._get_user_by_id = self.session.prepare(
            f"SELECT * FROM {ks}.users WHERE id = ?"
        )
        self._get_email_claim = self.session.prepare(
            f"SELECT * FROM {ks}.users_by_email WHERE email = ?"
        )
        self._claim_email = self.session.prepare(f"""
            INSERT INTO {ks}.users_by_email (email, user_id, created_at)
            VALUES (?, ?, ?)
            IF NOT EXISTS
        """)
        self._release_email = self.session.prepare(
            f"DELETE FROM {ks}.users_by_email WHERE email = ? IF user_id = ?"
        )
        self._insert_user = self.session.prepare(f"""
            INSERT INTO {ks}.users
            (id, email, full_name, phone, password_hash, role, status,
             email_verified, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._delete_user = self.session.prepare(
            f"DELETE FROM {ks}.users WHERE id = ?"
        )
        self._list_users = self.session.prepare(f"SELECT * FROM {ks}.users")
        self._update_profile = self.session.prepare(f"""
            UPDATE {ks}.users
            SET full_name = ?, phone = ?, updated_at = ?
            WHERE id = ?
        """)
        self._update_password = self.session.prepare(f"""
            UPDATE {ks}.users
            SET password_hash = ?, updated_at = ?
            WHERE id = ?
        """)
        self._update_status = self.session.prepare(f"""
            UPDATE {ks}.users
            SET status = ?, updated_at = ?
            WHERE id = ?
        """)
        self._update_email = self.session.prepare(f"""
            UPDATE {ks}.users
            SET email = ?, email_verified = ?, updated_at = ?
            WHERE id = ?
        """)
        self._mark_verified = self.session.prepare(f"""
            UPDATE {ks}.users
            SET email_verified = ?, updated_at = ?
            WHERE id = ?
        """)
        self._add_enrollment = self.session.prepare(f"""
            UPDATE {ks}.users
            SET enrolled_courses = enrolled_courses + ?
            WHERE id = ?
        """)

    # ==========================================================================
    # Lookups
    # ==========================================================================

    async def get_user_by_id(self, user_id: UUID) -> User | None:
        result = await self.session.aexecute(self._get_user_by_id, [user_id])
        row = result.one()
        return User.from_row(row) if row else None

    async def get_user_by_email(self, email: str) -> User | None:
        """Resolve an email through its claim row."""
        result = await self.session.aexecute(
            self._get_email_claim, [normalize_email(email)]
        )
        claim = result.one()
        if not claim:
            return None
        return await self.get_user_by_id(claim.user_id)

    async def email_exists(self, email: str) -> bool:
        result = await self.session.aexecute(
            self._get_email_claim, [normalize_email(email)]
        )
        return result.one() is not None

    async def require_user(self, user_id: UUID) -> User:
        user = await self.get_user_by_id(user_id)
        if not user:
            raise UserNotFoundError
        return user

    # ==========================================================================
    # Account creation
    # ==========================================================================

    async def create_user(
        self,
        email: str,
        full_name: str,
        phone: str,
        password_hash: str,
        role: UserRole = UserRole.USER,
        email_verified: bool = True,
    ) -> tuple[User, bool]:
        """Create an account unless the email is already claimed.

        The users row is written before the email claim so that whoever
        reads a claim always finds its row. When the claim is lost to a
        concurrent request, our row is removed and the existing account is
        returned instead.

        Returns:
            ``(user, created)``; ``created`` is False when the email already
            belonged to another account.
        """
        now = datetime.now(UTC)
        user = User(
            email=email,
            full_name=full_name,
            phone=phone,
            password_hash=password_hash,
            role=role.value,
            status=UserStatus.ACTIVE.value,
            email_verified=email_verified,
            created_at=now,
            updated_at=now,
        )
        await self.session.aexecute(
            self._insert_user,
            [
                user.id,
                user.email,
                user.full_name,
                user.phone,
                user.password_hash,
                user.role,
                user.status,
                user.email_verified,
                user.created_at,
                user.updated_at,
            ],
        )

        claim = await self.session.aexecute(
            self._claim_email, [user.email, user.id, now]
        )
        if claim.was_applied:
            logger.info("user_created", user_id=str(user.id), role=user.role)
            return user, True

        await self.session.aexecute(self._delete_user, [user.id])
        existing = await self.get_user_by_email(user.email)
        if existing is None:
            # The claim exists but its account row is gone (admin deletion
            # in between); report the conflict rather than guess.
            raise UserExistsError
        logger.info("user_create_lost_race", user_id=str(existing.id))
        return existing, False

    async def admin_create_user(
        self,
        email: str,
        full_name: str,
        phone: str,
        password_hash: str,
        role: UserRole,
    ) -> User:
        """Create a verified account on behalf of an administrator.

        Raises:
            UserExistsError: If the email is already registered
        """
        user, created = await self.create_user(
            email=email,
            full_name=full_name,
            phone=phone,
            password_hash=password_hash,
            role=role,
            email_verified=True,
        )
        if not created:
            raise UserExistsError
        return user

    # ==========================================================================
    # Login
    # ==========================================================================

    async def authenticate_user(self, email: str, password: str) -> User:
        """Check credentials and account state.

        Raises:
            InvalidCredentialsError: Unknown email or wrong password
            EmailNotVerifiedError: Address never confirmed
            AccountDisabledError: Account blocked or inactive
        """
        user = await self.get_user_by_email(email)
        if not user:
            raise InvalidCredentialsError

        is_valid, new_hash = verify_password(password, user.password_hash)
        if not is_valid:
            raise InvalidCredentialsError

        if not user.email_verified:
            raise EmailNotVerifiedError
        if not user.is_active:
            raise AccountDisabledError(f"Account is {user.status}")

        if new_hash:
            await self.session.aexecute(
                self._update_password, [new_hash, datetime.now(UTC), user.id]
            )
            user.password_hash = new_hash

        return user

    def issue_access_token(self, user: User) -> tuple[str, int]:
        """Return ``(token, expires_in_seconds)`` for a logged-in user."""
        settings = get_settings()
        lifetime = timedelta(minutes=settings.auth_access_token_expire_minutes)
        token = create_access_token(
            {"sub": str(user.id), "email": user.email, "role": user.role},
            expires_delta=lifetime,
        )
        return token, int(lifetime.total_seconds())

    # ==========================================================================
    # Updates
    # ==========================================================================

    async def update_profile(
        self,
        user_id: UUID,
        full_name: str | None = None,
        phone: str | None = None,
    ) -> User:
        user = await self.require_user(user_id)

        if full_name is not None:
            user.full_name = full_name
        if phone is not None:
            user.phone = phone
        user.updated_at = datetime.now(UTC)

        await self.session.aexecute(
            self._update_profile,
            [user.full_name, user.phone, user.updated_at, user.id],
        )
        logger.info("profile_updated", user_id=str(user_id))
        return user

    async def set_password_hash(self, user_id: UUID, password_hash: str) -> None:
        await self.session.aexecute(
            self._update_password, [password_hash, datetime.now(UTC), user_id]
        )

    async def mark_email_verified(self, user: User) -> User:
        if not user.email_verified:
            user.email_verified = True
            user.updated_at = datetime.now(UTC)
            await self.session.aexecute(
                self._mark_verified, [True, user.updated_at, user.id]
            )
        return user

    async def change_email(self, user: User, new_email: str) -> User:
        """Move an account to a new (already confirmed) address.

        Raises:
            UserExistsError: If another account holds ``new_email``
        """
        new_email = normalize_email(new_email)
        now = datetime.now(UTC)

        claim = await self.session.aexecute(
            self._claim_email, [new_email, user.id, now]
        )
        if not claim.was_applied:
            raise UserExistsError("This email is already in use")

        old_email = user.email
        await self.session.aexecute(self._update_email, [new_email, True, now, user.id])
        await self.session.aexecute(self._release_email, [old_email, user.id])

        user.email = new_email
        user.email_verified = True
        user.updated_at = now
        logger.info("email_changed", user_id=str(user.id))
        return user

    async def add_enrollment(self, user_id: UUID, course_id: UUID) -> None:
        """Append ``course_id`` to the user's enrolled set (idempotent)."""
        await self.session.aexecute(self._add_enrollment, [{course_id}, user_id])

    # ==========================================================================
    # Admin
    # ==========================================================================

    async def list_users(self, status: UserStatus | None = None) -> list[User]:
        """All accounts, newest first, optionally filtered by status."""
        result = await self.session.aexecute(self._list_users)
        users = [User.from_row(row) for row in result]
        if status is not None:
            users = [u for u in users if u.status == status.value]
        users.sort(key=lambda u: u.created_at, reverse=True)
        return users

    async def set_status(self, user_id: UUID, status: UserStatus) -> User:
        user = await self.require_user(user_id)
        user.status = status.value
        user.updated_at = datetime.now(UTC)
        await self.session.aexecute(
            self._update_status, [user.status, user.updated_at, user.id]
        )
        logger.info("user_status_changed", target_user_id=str(user_id), status=user.status)
        return user

    async def delete_user(self, user_id: UUID) -> None:
        user = await self.require_user(user_id)
        await self.session.aexecute(self._release_email, [user.email, user.id])
        await self.session.aexecute(self._delete_user, [user.id])
        logger.info("user_deleted", target_user_id=str(user_id))
