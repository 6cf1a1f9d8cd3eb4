"""Course feedback service.

A user may review a course once, and only while enrolled in it. The
one-per-user rule is enforced by the IF NOT EXISTS insert on
course_feedback; the by-user copy is written only by the winner.
"""

from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from learninghub.feedback.models import Feedback
from learninghub.feedback.schemas import SubmitFeedbackRequest
from learninghub.progress.service import (
    NotEnrolledError,
    ProgressService,
    ProgressUserNotFoundError,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from learninghub.courses.service import CourseService


logger = structlog.get_logger(__name__)


class FeedbackError(Exception):
    """Base feedback error."""

    def __init__(self, message: str, code: str = "feedback_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class FeedbackExistsError(FeedbackError):
    def __init__(self, message: str = "You have already submitted feedback for this course"):
        super().__init__(message, "feedback_exists")


class FeedbackNotAllowedError(FeedbackError):
    def __init__(self, message: str = "User is not enrolled in this course"):
        super().__init__(message, "not_enrolled")


class FeedbackTargetNotFoundError(FeedbackError):
    def __init__(self, message: str):
        super().__init__(message, "not_found")


class FeedbackService:
    def __init__(
        self,
        session: "Session",
        keyspace: str,
        progress_service: ProgressService,
        course_service: "CourseService",
    ):
        self.session = session
        self.keyspace = keyspace
        self.progress_service = progress_service
        self.course_service = course_service
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        ks = self.keyspace
        columns = (
            "id, rating, feedback, full_name, remember_top, remember_bottom, created_at"
        )
        self._claim_feedback = self.session.prepare(f"""
            INSERT INTO {ks}.course_feedback (course_id, user_id, {columns})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._insert_by_user = self.session.prepare(f"""
            INSERT INTO {ks}.feedback_by_user (user_id, course_id, {columns})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._get_by_course = self.session.prepare(
            f"SELECT * FROM {ks}.course_feedback WHERE course_id = ?"
        )
        self._get_by_user = self.session.prepare(
            f"SELECT * FROM {ks}.feedback_by_user WHERE user_id = ?"
        )

    async def submit(self, user_id: UUID, data: SubmitFeedbackRequest) -> Feedback:
        """Record a review.

        Raises:
            FeedbackTargetNotFoundError: If the user or course does not exist
            FeedbackNotAllowedError: If the user is not enrolled
            FeedbackExistsError: If the user already reviewed this course
        """
        if await self.course_service.get_course(data.course_id) is None:
            raise FeedbackTargetNotFoundError("Course not found")
        try:
            await self.progress_service.require_enrollment(user_id, data.course_id)
        except ProgressUserNotFoundError as e:
            raise FeedbackTargetNotFoundError("User not found") from e
        except NotEnrolledError as e:
            raise FeedbackNotAllowedError from e

        item = Feedback(
            course_id=data.course_id,
            user_id=user_id,
            rating=data.rating,
            feedback=data.feedback,
            full_name=data.full_name,
            remember_top=data.remember_top,
            remember_bottom=data.remember_bottom,
        )
        claim = await self.session.aexecute(
            self._claim_feedback, [item.course_id, item.user_id, *item.values]
        )
        if not claim.was_applied:
            raise FeedbackExistsError

        await self.session.aexecute(
            self._insert_by_user, [item.user_id, item.course_id, *item.values]
        )
        logger.info(
            "feedback_submitted",
            user_id=str(user_id),
            course_id=str(data.course_id),
            rating=item.rating,
        )
        return item

    async def list_for_course(self, course_id: UUID) -> list[Feedback]:
        """Reviews of a course, newest first."""
        result = await self.session.aexecute(self._get_by_course, [course_id])
        items = [Feedback.from_row(row) for row in result]
        items.sort(key=lambda f: f.created_at, reverse=True)
        return items

    async def list_for_user(self, user_id: UUID) -> list[Feedback]:
        result = await self.session.aexecute(self._get_by_user, [user_id])
        items = [Feedback.from_row(row) for row in result]
        items.sort(key=lambda f: f.created_at, reverse=True)
        return items
