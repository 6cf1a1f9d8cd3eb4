"""Enrollment and progress tracking service.

Business logic for:
- Enrollment: idempotent set-append on the user plus a lookup row per course
- Lesson progress: one single-statement upsert per update, no read-modify-write
- Course progress: overall percentage derived from the stored lesson rows
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from learninghub.progress.models import CourseProgress, LessonProgress


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from learninghub.auth.service import AuthService
    from learninghub.courses.service import CourseService


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class ProgressError(Exception):
    """Base progress error."""

    def __init__(self, message: str, code: str = "progress_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotEnrolledError(ProgressError):
    def __init__(self, message: str = "User is not enrolled in this course"):
        super().__init__(message, "not_enrolled")


class ProgressUserNotFoundError(ProgressError):
    def __init__(self, message: str = "User not found"):
        super().__init__(message, "user_not_found")


class ProgressCourseNotFoundError(ProgressError):
    def __init__(self, message: str = "Course not found"):
        super().__init__(message, "course_not_found")


# ==============================================================================
# Progress Service
# ==============================================================================


class ProgressService:
    """Service for enrollment and lesson progress."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        auth_service: "AuthService",
        course_service: "CourseService",
    ):
        self.session = session
        self.keyspace = keyspace
        self.auth_service = auth_service
        self.course_service = course_service
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        ks = self.keyspace

        self._insert_enrollment = self.session.prepare(f"""
            INSERT INTO {ks}.course_enrollments (course_id, user_id, enrolled_at)
            VALUES (?, ?, ?)
        """)

        # One statement per combination of provided fields; each call issues
        # exactly one of them.
        self._upsert_lesson = {
            (True, True): self.session.prepare(f"""
                UPDATE {ks}.lesson_progress
                SET watched_seconds = ?, completed = ?, last_watched_at = ?
                WHERE user_id = ? AND course_id = ? AND lesson_id = ?
            """),
            (True, False): self.session.prepare(f"""
                UPDATE {ks}.lesson_progress
                SET watched_seconds = ?, last_watched_at = ?
                WHERE user_id = ? AND course_id = ? AND lesson_id = ?
            """),
            (False, True): self.session.prepare(f"""
                UPDATE {ks}.lesson_progress
                SET completed = ?, last_watched_at = ?
                WHERE user_id = ? AND course_id = ? AND lesson_id = ?
            """),
            (False, False): self.session.prepare(f"""
                UPDATE {ks}.lesson_progress
                SET last_watched_at = ?
                WHERE user_id = ? AND course_id = ? AND lesson_id = ?
            """),
        }
        self._get_lessons = self.session.prepare(f"""
            SELECT * FROM {ks}.lesson_progress
            WHERE user_id = ? AND course_id = ?
        """)

        self._start_course = self.session.prepare(f"""
            INSERT INTO {ks}.course_progress
            (user_id, course_id, overall_progress, started_at, last_accessed_at)
            VALUES (?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._update_summary = self.session.prepare(f"""
            UPDATE {ks}.course_progress
            SET overall_progress = ?, last_accessed_at = ?
            WHERE user_id = ? AND course_id = ?
        """)
        self._get_summary = self.session.prepare(f"""
            SELECT * FROM {ks}.course_progress
            WHERE user_id = ? AND course_id = ?
        """)
        self._get_user_summaries = self.session.prepare(
            f"SELECT * FROM {ks}.course_progress WHERE user_id = ?"
        )

    # --------------------------------------------------------------------------
    # Enrollment
    # --------------------------------------------------------------------------

    async def enroll(self, user_id: UUID, course_id: UUID) -> bool:
        """Enroll a user in a course.

        Returns:
            True if the user was already enrolled.

        Raises:
            ProgressUserNotFoundError: If the user does not exist
            ProgressCourseNotFoundError: If the course does not exist
        """
        user = await self.auth_service.get_user_by_id(user_id)
        if user is None:
            raise ProgressUserNotFoundError
        if await self.course_service.get_course(course_id) is None:
            raise ProgressCourseNotFoundError

        already_enrolled = user.is_enrolled(course_id)
        await self.auth_service.add_enrollment(user_id, course_id)
        await self.session.aexecute(
            self._insert_enrollment, [course_id, user_id, datetime.now(UTC)]
        )

        logger.info(
            "user_enrolled",
            user_id=str(user_id),
            course_id=str(course_id),
            already_enrolled=already_enrolled,
        )
        return already_enrolled

    async def list_enrollments(self, user_id: UUID) -> list[UUID]:
        user = await self.auth_service.get_user_by_id(user_id)
        if user is None:
            raise ProgressUserNotFoundError
        return sorted(user.enrolled_courses, key=str)

    async def require_enrollment(self, user_id: UUID, course_id: UUID) -> None:
        """Raise unless ``user_id`` exists and is enrolled in ``course_id``."""
        user = await self.auth_service.get_user_by_id(user_id)
        if user is None:
            raise ProgressUserNotFoundError
        if not user.is_enrolled(course_id):
            raise NotEnrolledError

    # --------------------------------------------------------------------------
    # Progress
    # --------------------------------------------------------------------------

    async def _load_lessons(self, user_id: UUID, course_id: UUID) -> list[LessonProgress]:
        result = await self.session.aexecute(self._get_lessons, [user_id, course_id])
        return [LessonProgress.from_row(row) for row in result]

    async def update_lesson_progress(
        self,
        user_id: UUID,
        course_id: UUID,
        lesson_id: UUID,
        watched_seconds: int | None = None,
        completed: bool | None = None,
    ) -> CourseProgress:
        """Record watch state for one lesson and refresh the course summary.

        ``watched_seconds`` is written only when truthy, so 0 or None keep the
        stored value. ``completed`` is written whenever it is given, including
        an explicit False.

        Raises:
            ProgressUserNotFoundError: If the user does not exist
            NotEnrolledError: If the user is not enrolled in the course
        """
        await self.require_enrollment(user_id, course_id)

        now = datetime.now(UTC)
        write_watched = bool(watched_seconds)
        write_completed = completed is not None

        params: list = []
        if write_watched:
            params.append(watched_seconds)
        if write_completed:
            params.append(completed)
        params.extend([now, user_id, course_id, lesson_id])
        await self.session.aexecute(
            self._upsert_lesson[(write_watched, write_completed)], params
        )

        await self.session.aexecute(
            self._start_course, [user_id, course_id, 0, now, now]
        )
        lessons = await self._load_lessons(user_id, course_id)
        progress = CourseProgress(user_id, course_id, lessons, last_accessed_at=now)
        await self.session.aexecute(
            self._update_summary,
            [progress.overall_progress, now, user_id, course_id],
        )

        summary = (
            await self.session.aexecute(self._get_summary, [user_id, course_id])
        ).one()
        progress.started_at = summary.started_at if summary else now

        logger.info(
            "lesson_progress_updated",
            user_id=str(user_id),
            course_id=str(course_id),
            lesson_id=str(lesson_id),
            overall_progress=progress.overall_progress,
        )
        return progress

    async def get_progress(self, user_id: UUID, course_id: UUID) -> CourseProgress:
        """Progress for a user/course pair; the zero state if nothing was recorded."""
        summary = (
            await self.session.aexecute(self._get_summary, [user_id, course_id])
        ).one()
        lessons = await self._load_lessons(user_id, course_id)
        return CourseProgress(
            user_id,
            course_id,
            lessons,
            started_at=summary.started_at if summary else None,
            last_accessed_at=summary.last_accessed_at if summary else None,
        )

    async def list_user_progress(self, user_id: UUID) -> list[CourseProgress]:
        """All progress records of a user, most recently accessed first."""
        result = await self.session.aexecute(self._get_user_summaries, [user_id])
        records = []
        for summary in result:
            lessons = await self._load_lessons(user_id, summary.course_id)
            records.append(
                CourseProgress(
                    user_id,
                    summary.course_id,
                    lessons,
                    started_at=summary.started_at,
                    last_accessed_at=summary.last_accessed_at,
                )
            )
        records.sort(key=lambda p: p.sort_key, reverse=True)
        return records
