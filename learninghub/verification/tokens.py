"""Verification token lifecycle.

Tokens are 256-bit random values handed to the user exactly once. The store
keeps a digest, the expiry and a payload per (email, token_type):

- issue: overwrite the pair's row (any earlier token stops working)
- find: validate without consuming
- consume: validate, then conditionally delete so only one caller wins
- rotate: replace the token and expiry of an existing row, keeping its payload
- record_failed_attempt: count wrong guesses against short codes, revoking
  the row once the limit is reached
"""

import hashlib
import secrets
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from learninghub.auth.models import normalize_email
from learninghub.core.logging import get_logger
from learninghub.email.service import mask_email

from .models import TokenType, VerificationToken


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = get_logger(__name__)

TOKEN_BYTES = 32
LOGIN_CODE_DIGITS = 6


# =============================================================================
# Exceptions
# =============================================================================


class VerificationError(Exception):
    """Base verification error."""

    def __init__(self, message: str, code: str = "verification_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class InvalidTokenError(VerificationError):
    """Unknown, mismatched or already consumed token."""

    def __init__(self, message: str = "Invalid or already used verification token"):
        super().__init__(message, "invalid_token")


class TokenExpiredError(VerificationError):
    def __init__(self, message: str = "Verification token has expired"):
        super().__init__(message, "token_expired")


class NoPendingVerificationError(VerificationError):
    def __init__(self, message: str = "No pending verification for this email"):
        super().__init__(message, "no_pending_verification")


class AlreadyVerifiedError(VerificationError):
    def __init__(self, message: str = "Email is already verified"):
        super().__init__(message, "already_verified")


class InvalidPayloadError(VerificationError):
    def __init__(self, message: str = "Verification data is incomplete"):
        super().__init__(message, "validation_error")


# =============================================================================
# Helpers
# =============================================================================


def generate_token() -> str:
    """Return a new opaque token (64 hex characters)."""
    return secrets.token_hex(TOKEN_BYTES)


def generate_login_code() -> str:
    """Return a zero-padded numeric sign-in code."""
    return f"{secrets.randbelow(10**LOGIN_CODE_DIGITS):0{LOGIN_CODE_DIGITS}d}"


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _token_matches(token: str, token_hash: str) -> bool:
    return secrets.compare_digest(hash_token(token), token_hash)


# =============================================================================
# Token Service
# =============================================================================


class VerificationTokenService:
    """Issue, validate, consume and rotate verification tokens."""

    def __init__(self, session: "Session", keyspace: str, grace: timedelta):
        """
        Args:
            session: Cassandra session with aexecute()
            keyspace: Keyspace name
            grace: How long rows stay readable after expiring
        """
        self.session = session
        self.keyspace = keyspace
        self.grace = grace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        ks = self.keyspace
        self._select = self.session.prepare(f"""
            SELECT * FROM {ks}.verification_tokens
            WHERE email = ? AND token_type = ?
        """)
        self._insert = self.session.prepare(f"""
            INSERT INTO {ks}.verification_tokens
            (email, token_type, token_hash, payload, expires_at, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            USING TTL ?
        """)
        self._rotate = self.session.prepare(f"""
            UPDATE {ks}.verification_tokens USING TTL ?
            SET token_hash = ?, payload = ?, expires_at = ?, created_at = ?
            WHERE email = ? AND token_type = ?
            IF EXISTS
        """)
        self._delete_if_hash = self.session.prepare(f"""
            DELETE FROM {ks}.verification_tokens
            WHERE email = ? AND token_type = ?
            IF token_hash = ?
        """)
        self._delete_if_payload = self.session.prepare(f"""
            DELETE FROM {ks}.verification_tokens
            WHERE email = ? AND token_type = ?
            IF token_hash = ? AND payload = ?
        """)
        self._update_payload = self.session.prepare(f"""
            UPDATE {ks}.verification_tokens USING TTL ?
            SET payload = ?
            WHERE email = ? AND token_type = ?
            IF token_hash = ? AND payload = ?
        """)

    def _ttl_seconds(self, ttl: timedelta) -> int:
        return int((ttl + self.grace).total_seconds())

    async def get(self, email: str, token_type: TokenType) -> VerificationToken | None:
        """Return the stored record for the pair, if any."""
        result = await self.session.aexecute(
            self._select, [normalize_email(email), token_type.value]
        )
        row = result.one()
        return VerificationToken.from_row(row) if row else None

    async def issue(
        self,
        email: str,
        token_type: TokenType,
        ttl: timedelta,
        payload: dict[str, Any] | None = None,
        token: str | None = None,
    ) -> str:
        """Create a token for the pair, replacing any previous one.

        ``token`` overrides the generated value (short sign-in codes).

        Returns:
            The plain token; it is not stored and cannot be recovered.
        """
        email = normalize_email(email)
        token = token or generate_token()
        now = datetime.now(UTC)
        record = VerificationToken(
            email=email,
            token_type=token_type,
            token_hash=hash_token(token),
            payload=payload or {},
            expires_at=now + ttl,
            created_at=now,
        )
        await self.session.aexecute(
            self._insert,
            [
                record.email,
                record.token_type.value,
                record.token_hash,
                record.encoded_payload(),
                record.expires_at,
                record.created_at,
                self._ttl_seconds(ttl),
            ],
        )
        logger.info(
            "verification_token_issued",
            email=mask_email(email),
            token_type=token_type.value,
            expires_at=record.expires_at.isoformat(),
        )
        return token

    async def find(
        self, email: str, token: str, token_type: TokenType
    ) -> VerificationToken:
        """Validate a token without consuming it.

        An expired record is deleted before the error is raised.

        Raises:
            InvalidTokenError: No record for the pair or the token differs
            TokenExpiredError: The record is past its expiry
        """
        record = await self.get(email, token_type)
        if record is None or not _token_matches(token, record.token_hash):
            logger.warning(
                "verification_token_invalid",
                email=mask_email(normalize_email(email)),
                token_type=token_type.value,
            )
            raise InvalidTokenError

        if record.is_expired():
            await self.discard(record)
            logger.info(
                "verification_token_expired",
                email=mask_email(record.email),
                token_type=token_type.value,
            )
            raise TokenExpiredError

        return record

    async def discard(self, record: VerificationToken) -> bool:
        """Delete the record if it still holds the same token.

        Returns:
            True if this call removed it, False if it was already gone or
            had been replaced by a newer token.
        """
        result = await self.session.aexecute(
            self._delete_if_hash,
            [record.email, record.token_type.value, record.token_hash],
        )
        return bool(result.was_applied)

    async def consume(
        self, email: str, token: str, token_type: TokenType
    ) -> dict[str, Any]:
        """Validate and use up a token.

        Returns:
            The payload stored with the token.

        Raises:
            InvalidTokenError: Unknown token, or another request consumed it first
            TokenExpiredError: The token is past its expiry
        """
        record = await self.find(email, token, token_type)
        if not await self.discard(record):
            raise InvalidTokenError
        logger.info(
            "verification_token_consumed",
            email=mask_email(record.email),
            token_type=token_type.value,
        )
        return record.payload

    async def rotate(
        self, email: str, token_type: TokenType, ttl: timedelta
    ) -> tuple[str, VerificationToken]:
        """Give an existing record a fresh token and expiry.

        The payload is rewritten unchanged so it shares the new row TTL.

        Returns:
            ``(token, record)`` with the updated record.

        Raises:
            NoPendingVerificationError: Nothing is stored for the pair
        """
        record = await self.get(email, token_type)
        if record is None:
            raise NoPendingVerificationError

        token = generate_token()
        now = datetime.now(UTC)
        record.token_hash = hash_token(token)
        record.expires_at = now + ttl
        record.created_at = now

        result = await self.session.aexecute(
            self._rotate,
            [
                self._ttl_seconds(ttl),
                record.token_hash,
                record.encoded_payload(),
                record.expires_at,
                record.created_at,
                record.email,
                record.token_type.value,
            ],
        )
        if not result.was_applied:
            # Consumed or purged between the read and the update
            raise NoPendingVerificationError

        logger.info(
            "verification_token_rotated",
            email=mask_email(record.email),
            token_type=token_type.value,
        )
        return token, record

    async def record_failed_attempt(
        self, email: str, token_type: TokenType, max_attempts: int
    ) -> int:
        """Count a wrong guess against the pair's live token.

        The counter lives in the payload and every write is a compare-and-set
        on the payload it was computed from, retried until it applies, so
        concurrent guesses each count once. Reaching ``max_attempts`` deletes
        the row so the token can no longer be guessed.

        Returns:
            Attempts recorded so far, 0 when nothing is stored (including
            when a concurrent guess revoked the token first).
        """
        while True:
            record = await self.get(email, token_type)
            if record is None:
                return 0

            previous = record.encoded_payload()
            attempts = int(record.payload.get("attempts", 0)) + 1
            if attempts >= max_attempts:
                result = await self.session.aexecute(
                    self._delete_if_payload,
                    [record.email, record.token_type.value, record.token_hash, previous],
                )
                if not result.was_applied:
                    continue
                logger.warning(
                    "verification_token_revoked",
                    email=mask_email(record.email),
                    token_type=token_type.value,
                    attempts=attempts,
                )
                return attempts

            record.payload["attempts"] = attempts
            remaining = record.expires_at - datetime.now(UTC) + self.grace
            result = await self.session.aexecute(
                self._update_payload,
                [
                    max(int(remaining.total_seconds()), 1),
                    record.encoded_payload(),
                    record.email,
                    record.token_type.value,
                    record.token_hash,
                    previous,
                ],
            )
            if result.was_applied:
                return attempts
