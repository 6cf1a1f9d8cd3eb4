"""Database models for enrollment and progress tracking.

Cassandra table definitions for:
- course_enrollments: who is enrolled in a course (enrolled-student counts)
- course_progress: one summary row per (user, course)
- lesson_progress: one row per (user, course, lesson)

Uniqueness of every record is structural: the primary keys admit exactly one
row per pair or triple, and writes are upserts.
"""

from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from learninghub.auth.models import ensure_utc_aware


class LessonState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_enrollments (
    course_id UUID,
    user_id UUID,
    enrolled_at TIMESTAMP,
    PRIMARY KEY (course_id, user_id)
)
"""

# Partitioned by user so that all of a user's courses are one read
COURSE_PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_progress (
    user_id UUID,
    course_id UUID,
    overall_progress INT,
    started_at TIMESTAMP,
    last_accessed_at TIMESTAMP,
    PRIMARY KEY (user_id, course_id)
)
"""

LESSON_PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lesson_progress (
    user_id UUID,
    course_id UUID,
    lesson_id UUID,
    watched_seconds INT,
    completed BOOLEAN,
    last_watched_at TIMESTAMP,
    PRIMARY KEY ((user_id, course_id), lesson_id)
)
"""

PROGRESS_TABLES_CQL = [
    COURSE_ENROLLMENTS_TABLE_CQL,
    COURSE_PROGRESS_TABLE_CQL,
    LESSON_PROGRESS_TABLE_CQL,
]


def compute_overall_progress(completed: int, touched: int) -> int:
    """Percentage of touched lessons that are completed, rounded half up."""
    if touched <= 0:
        return 0
    percent = Decimal(100 * completed) / Decimal(touched)
    return int(percent.quantize(Decimal(1), rounding=ROUND_HALF_UP))


# ==============================================================================
# Entity Classes
# ==============================================================================


class LessonProgress:
    """Watch state of one lesson for one user."""

    def __init__(
        self,
        lesson_id: UUID,
        watched_seconds: int = 0,
        completed: bool = False,
        last_watched_at: datetime | None = None,
    ):
        self.lesson_id = lesson_id
        self.watched_seconds = watched_seconds or 0
        self.completed = bool(completed)
        self.last_watched_at = ensure_utc_aware(last_watched_at)

    @classmethod
    def from_row(cls, row: Any) -> "LessonProgress":
        return cls(
            lesson_id=row.lesson_id,
            watched_seconds=row.watched_seconds,
            completed=row.completed,
            last_watched_at=row.last_watched_at,
        )

    @property
    def state(self) -> LessonState:
        if self.completed:
            return LessonState.COMPLETED
        if self.watched_seconds > 0:
            return LessonState.IN_PROGRESS
        return LessonState.NOT_STARTED

    def to_dict(self) -> dict[str, Any]:
        return {
            "lesson_id": self.lesson_id,
            "watched_seconds": self.watched_seconds,
            "completed": self.completed,
            "state": self.state.value,
            "last_watched_at": self.last_watched_at,
        }


class CourseProgress:
    """Progress of one user through one course.

    ``overall_progress`` is derived from ``lessons``; a record with no
    lessons is the zero state.
    """

    def __init__(
        self,
        user_id: UUID,
        course_id: UUID,
        lessons: list[LessonProgress] | None = None,
        started_at: datetime | None = None,
        last_accessed_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.course_id = course_id
        self.lessons = list(lessons or [])
        self.started_at = ensure_utc_aware(started_at)
        self.last_accessed_at = ensure_utc_aware(last_accessed_at)

    @property
    def completed_lessons(self) -> int:
        return sum(1 for lesson in self.lessons if lesson.completed)

    @property
    def overall_progress(self) -> int:
        return compute_overall_progress(self.completed_lessons, len(self.lessons))

    @property
    def sort_key(self) -> datetime:
        return self.last_accessed_at or self.started_at or datetime.min.replace(tzinfo=UTC)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "course_id": self.course_id,
            "overall_progress": self.overall_progress,
            "lessons": [lesson.to_dict() for lesson in self.lessons],
            "started_at": self.started_at,
            "last_accessed_at": self.last_accessed_at,
        }

    def __repr__(self) -> str:
        return f"<CourseProgress user={self.user_id} course={self.course_id} {self.overall_progress}%>"
