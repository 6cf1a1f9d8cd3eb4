"""Database model for verification tokens.

One row per (email, token_type): issuing a token for a pair overwrites the
previous one in a single write, so at most one token per pair is live.
Only a SHA-256 digest of the token is stored.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import orjson

from learninghub.auth.models import ensure_utc_aware


class TokenType(str, Enum):
    SIGNUP = "signup"
    PASSWORD_RESET = "password-reset"
    EMAIL_CHANGE = "email-change"
    LOGIN_CODE = "login-code"


# Rows outlive expires_at by a grace period (USING TTL ttl + grace) so an
# expired token is reported as expired rather than unknown.
VERIFICATION_TOKENS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.verification_tokens (
    email TEXT,
    token_type TEXT,
    token_hash TEXT,
    payload TEXT,
    expires_at TIMESTAMP,
    created_at TIMESTAMP,
    PRIMARY KEY ((email, token_type))
)
"""

VERIFICATION_TABLES_CQL = [
    VERIFICATION_TOKENS_TABLE_CQL,
]


@dataclass
class VerificationToken:
    """A stored token record (never holds the plain token)."""

    email: str
    token_type: TokenType
    token_hash: str
    payload: dict[str, Any]
    expires_at: datetime
    created_at: datetime

    @classmethod
    def from_row(cls, row: Any) -> "VerificationToken":
        return cls(
            email=row.email,
            token_type=TokenType(row.token_type),
            token_hash=row.token_hash,
            payload=orjson.loads(row.payload) if row.payload else {},
            expires_at=ensure_utc_aware(row.expires_at),
            created_at=ensure_utc_aware(row.created_at),
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or datetime.now(UTC)) > self.expires_at

    def encoded_payload(self) -> str:
        return orjson.dumps(self.payload).decode("utf-8")
