"""Tests for course feedback."""

import asyncio
from uuid import uuid4

import pytest
import pytest_asyncio

from learninghub.auth.service import AuthService
from learninghub.courses.schemas import CourseCreateRequest
from learninghub.courses.service import CourseService
from learninghub.feedback.schemas import SubmitFeedbackRequest
from learninghub.feedback.service import (
    FeedbackExistsError,
    FeedbackNotAllowedError,
    FeedbackService,
    FeedbackTargetNotFoundError,
)
from learninghub.progress.service import ProgressService


@pytest.fixture
def services(cassandra_session, keyspace):
    auth = AuthService(cassandra_session, keyspace)
    courses = CourseService(cassandra_session, keyspace)
    progress = ProgressService(cassandra_session, keyspace, auth, courses)
    feedback = FeedbackService(cassandra_session, keyspace, progress, courses)
    return auth, courses, progress, feedback


@pytest_asyncio.fixture
async def enrolled(services):
    auth, courses, progress, _ = services
    user, _ = await auth.create_user("fan@example.com", "Fan", "5550100", "hash")
    course = await courses.create_course(
        CourseCreateRequest(
            title="Watercolor",
            category="Art",
            instructor="Bob",
            price="15",
            description="Paint",
        ),
        uuid4(),
    )
    await progress.enroll(user.id, course.id)
    return user, course


def _review(course_id, rating: int = 5) -> SubmitFeedbackRequest:
    return SubmitFeedbackRequest(
        course_id=course_id, rating=rating, feedback="Loved it", full_name="Fan"
    )


class TestSubmitFeedback:
    @pytest.mark.asyncio
    async def test_submit_and_list(self, services, enrolled) -> None:
        feedback = services[3]
        user, course = enrolled

        item = await feedback.submit(user.id, _review(course.id, rating=4))

        assert item.rating == 4
        assert [f.user_id for f in await feedback.list_for_course(course.id)] == [user.id]
        assert [f.course_id for f in await feedback.list_for_user(user.id)] == [course.id]

    @pytest.mark.asyncio
    async def test_one_review_per_user_and_course(self, services, enrolled) -> None:
        feedback = services[3]
        user, course = enrolled

        results = await asyncio.gather(
            feedback.submit(user.id, _review(course.id)),
            feedback.submit(user.id, _review(course.id, rating=1)),
            return_exceptions=True,
        )

        assert sum(isinstance(r, FeedbackExistsError) for r in results) == 1
        assert len(await feedback.list_for_course(course.id)) == 1

    @pytest.mark.asyncio
    async def test_not_enrolled(self, services, enrolled) -> None:
        auth, courses, _, feedback = services
        _, course = enrolled
        stranger, _ = await auth.create_user("x@example.com", "X", "5550101", "hash")

        with pytest.raises(FeedbackNotAllowedError):
            await feedback.submit(stranger.id, _review(course.id))

    @pytest.mark.asyncio
    async def test_unknown_course(self, services, enrolled) -> None:
        user, _ = enrolled
        with pytest.raises(FeedbackTargetNotFoundError):
            await services[3].submit(user.id, _review(uuid4()))


def test_rating_bounds() -> None:
    with pytest.raises(ValueError):
        _review(uuid4(), rating=6)
    with pytest.raises(ValueError):
        _review(uuid4(), rating=0)

