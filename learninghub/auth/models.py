"""Database models for user accounts.

Tables:
- users: account data, keyed by id
- users_by_email: unique email claim, written with IF NOT EXISTS

Email uniqueness is enforced by the lightweight transaction on
users_by_email; a users row whose claim was lost is deleted again.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from learninghub.auth.permissions import UserRole


class UserStatus(str, Enum):
    ACTIVE = "active"
    BLOCKED = "blocked"
    INACTIVE = "inactive"


USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.users (
    id UUID PRIMARY KEY,
    email TEXT,
    full_name TEXT,
    phone TEXT,
    password_hash TEXT,
    role TEXT,
    status TEXT,
    email_verified BOOLEAN,
    enrolled_courses SET<UUID>,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

USERS_BY_EMAIL_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.users_by_email (
    email TEXT PRIMARY KEY,
    user_id UUID,
    created_at TIMESTAMP
)
"""

AUTH_TABLES_CQL = [
    USER_TABLE_CQL,
    USERS_BY_EMAIL_TABLE_CQL,
]


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def normalize_email(email: str) -> str:
    return email.strip().lower()


class User:
    """A registered account.

    Attributes:
        id: Unique identifier
        email: Normalized (trimmed, lower-cased) email address
        full_name: Display name
        phone: Contact phone number
        password_hash: Argon2id hash
        role: ``user`` or ``admin``
        status: ``active``, ``blocked`` or ``inactive``
        email_verified: Whether the address was confirmed
        enrolled_courses: Ids of the courses the user is enrolled in
    """

    def __init__(
        self,
        id: UUID | None = None,
        email: str = "",
        full_name: str = "",
        phone: str = "",
        password_hash: str = "",
        role: str = UserRole.USER.value,
        status: str = UserStatus.ACTIVE.value,
        email_verified: bool = False,
        enrolled_courses: set[UUID] | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.email = normalize_email(email)
        self.full_name = full_name
        self.phone = phone
        self.password_hash = password_hash
        self.role = role
        self.status = status
        self.email_verified = email_verified
        self.enrolled_courses = set(enrolled_courses or ())
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "User":
        return cls(
            id=row.id,
            email=row.email,
            full_name=row.full_name or "",
            phone=row.phone or "",
            password_hash=row.password_hash or "",
            role=row.role or UserRole.USER.value,
            status=row.status or UserStatus.ACTIVE.value,
            email_verified=bool(row.email_verified),
            enrolled_courses=row.enrolled_courses,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def is_enrolled(self, course_id: UUID) -> bool:
        return course_id in self.enrolled_courses

    def to_dict(self, include_password: bool = False) -> dict[str, Any]:
        """Convert to dictionary (excludes password_hash by default)."""
        data = {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "phone": self.phone,
            "role": self.role,
            "status": self.status,
            "email_verified": self.email_verified,
            "enrolled_courses": sorted(self.enrolled_courses, key=str),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        if include_password:
            data["password_hash"] = self.password_hash
        return data

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role}, {self.status})>"
