"""Pydantic schemas for enrollment and progress."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from pydantic import BaseModel, Field

from learninghub.progress.models import LessonState


if TYPE_CHECKING:
    from learninghub.progress.models import CourseProgress, LessonProgress


class EnrollRequest(BaseModel):
    course_id: UUID


class LessonProgressUpdateRequest(BaseModel):
    """Watch state report for one lesson.

    ``watched_seconds`` of 0 or omitted leaves the stored value unchanged;
    omit ``completed`` to leave the completion flag unchanged.
    """

    watched_seconds: int | None = Field(None, ge=0)
    completed: bool | None = None


class EnrollmentResponse(BaseModel):
    course_id: UUID
    already_enrolled: bool


class EnrollmentListResponse(BaseModel):
    course_ids: list[UUID]


class LessonProgressResponse(BaseModel):
    lesson_id: UUID
    watched_seconds: int
    completed: bool
    state: LessonState
    last_watched_at: datetime | None = None

    @classmethod
    def from_lesson(cls, lesson: "LessonProgress") -> "LessonProgressResponse":
        return cls(
            lesson_id=lesson.lesson_id,
            watched_seconds=lesson.watched_seconds,
            completed=lesson.completed,
            state=lesson.state,
            last_watched_at=lesson.last_watched_at,
        )


class CourseProgressResponse(BaseModel):
    user_id: UUID
    course_id: UUID
    overall_progress: int = Field(..., ge=0, le=100)
    lessons: list[LessonProgressResponse]
    started_at: datetime | None = None
    last_accessed_at: datetime | None = None

    @classmethod
    def from_progress(cls, progress: "CourseProgress") -> "CourseProgressResponse":
        return cls(
            user_id=progress.user_id,
            course_id=progress.course_id,
            overall_progress=progress.overall_progress,
            lessons=[LessonProgressResponse.from_lesson(x) for x in progress.lessons],
            started_at=progress.started_at,
            last_accessed_at=progress.last_accessed_at,
        )
