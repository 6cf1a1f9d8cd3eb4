"""Database models for course feedback.

Tables:
- course_feedback: one row per (course, user), claimed with IF NOT EXISTS
- feedback_by_user: the same rows partitioned by user
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from learninghub.auth.models import ensure_utc_aware


COURSE_FEEDBACK_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_feedback (
    course_id UUID,
    user_id UUID,
    id UUID,
    rating INT,
    feedback TEXT,
    full_name TEXT,
    remember_top BOOLEAN,
    remember_bottom BOOLEAN,
    created_at TIMESTAMP,
    PRIMARY KEY (course_id, user_id)
)
"""

FEEDBACK_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.feedback_by_user (
    user_id UUID,
    course_id UUID,
    id UUID,
    rating INT,
    feedback TEXT,
    full_name TEXT,
    remember_top BOOLEAN,
    remember_bottom BOOLEAN,
    created_at TIMESTAMP,
    PRIMARY KEY (user_id, course_id)
)
"""

FEEDBACK_TABLES_CQL = [
    COURSE_FEEDBACK_TABLE_CQL,
    FEEDBACK_BY_USER_TABLE_CQL,
]


class Feedback:
    """A user's rating and review of a course.

    ``remember_top`` and ``remember_bottom`` are display flags chosen by the
    author for where the review may be featured.
    """

    def __init__(
        self,
        course_id: UUID,
        user_id: UUID,
        rating: int,
        feedback: str,
        full_name: str,
        remember_top: bool = False,
        remember_bottom: bool = False,
        id: UUID | None = None,
        created_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.course_id = course_id
        self.user_id = user_id
        self.rating = rating
        self.feedback = feedback.strip()
        self.full_name = full_name.strip()
        self.remember_top = bool(remember_top)
        self.remember_bottom = bool(remember_bottom)
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)

    @classmethod
    def from_row(cls, row: Any) -> "Feedback":
        return cls(
            id=row.id,
            course_id=row.course_id,
            user_id=row.user_id,
            rating=row.rating,
            feedback=row.feedback or "",
            full_name=row.full_name or "",
            remember_top=row.remember_top,
            remember_bottom=row.remember_bottom,
            created_at=row.created_at,
        )

    @property
    def values(self) -> list[Any]:
        """Column values after the two key columns, in table order."""
        return [
            self.id,
            self.rating,
            self.feedback,
            self.full_name,
            self.remember_top,
            self.remember_bottom,
            self.created_at,
        ]

    def __repr__(self) -> str:
        return f"<Feedback course={self.course_id} user={self.user_id} {self.rating}*>"
