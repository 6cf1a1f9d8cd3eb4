"""Tests for enrollment and lesson progress."""

import asyncio
from datetime import timedelta
from uuid import uuid4

import pytest
import pytest_asyncio

from learninghub.auth.service import AuthService
from learninghub.courses.schemas import CourseCreateRequest
from learninghub.courses.service import CourseService
from learninghub.progress.models import LessonState, compute_overall_progress
from learninghub.progress.service import (
    NotEnrolledError,
    ProgressCourseNotFoundError,
    ProgressService,
    ProgressUserNotFoundError,
)


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def auth_service(cassandra_session, keyspace) -> AuthService:
    return AuthService(cassandra_session, keyspace)


@pytest.fixture
def course_service(cassandra_session, keyspace) -> CourseService:
    return CourseService(cassandra_session, keyspace)


@pytest.fixture
def progress(cassandra_session, keyspace, auth_service, course_service) -> ProgressService:
    return ProgressService(cassandra_session, keyspace, auth_service, course_service)


@pytest_asyncio.fixture
async def user(auth_service):
    created, _ = await auth_service.create_user(
        "learner@example.com", "Lee Learner", "5550100", "hash"
    )
    return created


@pytest_asyncio.fixture
async def course(course_service):
    return await course_service.create_course(
        CourseCreateRequest(
            title="Intro to Python",
            category="Programming",
            instructor="Grace",
            price="20",
            description="Basics",
            status="published",
            lessons=[
                {"name": "One", "learning_outcomes": "a"},
                {"name": "Two", "learning_outcomes": "b"},
                {"name": "Three", "learning_outcomes": "c"},
            ],
        ),
        uuid4(),
    )


@pytest_asyncio.fixture
async def two_lesson_course(course_service):
    return await course_service.create_course(
        CourseCreateRequest(
            title="Git Essentials",
            category="Tools",
            instructor="Linus",
            price="10",
            description="Version control",
            status="published",
            lessons=[
                {"name": "L1", "learning_outcomes": "Commit"},
                {"name": "L2", "learning_outcomes": "Branch"},
            ],
        ),
        uuid4(),
    )


# ==============================================================================
# Percentage
# ==============================================================================


class TestComputeOverallProgress:
    @pytest.mark.parametrize(
        "completed,touched,expected",
        [
            (0, 0, 0),
            (0, 3, 0),
            (1, 1, 100),
            (1, 2, 50),
            (1, 3, 33),
            (2, 3, 67),
            (1, 8, 13),
            (3, 3, 100),
        ],
    )
    def test_rounding(self, completed: int, touched: int, expected: int) -> None:
        assert compute_overall_progress(completed, touched) == expected


# ==============================================================================
# Enrollment
# ==============================================================================


class TestEnroll:
    @pytest.mark.asyncio
    async def test_enroll_is_idempotent(
        self, progress, course_service, user, course, cassandra_session
    ) -> None:
        assert await progress.enroll(user.id, course.id) is False
        assert await progress.enroll(user.id, course.id) is True

        assert await progress.list_enrollments(user.id) == [course.id]
        assert await course_service.enrolled_count(course.id) == 1
        stored = cassandra_session.tables["users"].rows[(user.id,)]
        assert stored["enrolled_courses"] == {course.id}

    @pytest.mark.asyncio
    async def test_unknown_user(self, progress, course) -> None:
        with pytest.raises(ProgressUserNotFoundError):
            await progress.enroll(uuid4(), course.id)

    @pytest.mark.asyncio
    async def test_unknown_course(self, progress, user) -> None:
        with pytest.raises(ProgressCourseNotFoundError):
            await progress.enroll(user.id, uuid4())


# ==============================================================================
# Progress
# ==============================================================================


class TestLessonProgress:
    @pytest.mark.asyncio
    async def test_requires_enrollment(self, progress, user, course) -> None:
        with pytest.raises(NotEnrolledError):
            await progress.update_lesson_progress(
                user.id, course.id, course.lessons[0].id, watched_seconds=10
            )

    @pytest.mark.asyncio
    async def test_percentage_counts_touched_lessons(self, progress, user, course) -> None:
        first, second, _ = course.lessons
        await progress.enroll(user.id, course.id)

        result = await progress.update_lesson_progress(
            user.id, course.id, first.id, completed=True
        )
        assert result.overall_progress == 100

        result = await progress.update_lesson_progress(
            user.id, course.id, second.id, watched_seconds=30
        )
        assert result.overall_progress == 50
        states = {lesson.lesson_id: lesson.state for lesson in result.lessons}
        assert states == {
            first.id: LessonState.COMPLETED,
            second.id: LessonState.IN_PROGRESS,
        }

    @pytest.mark.asyncio
    async def test_only_first_of_two_lessons_completed(
        self, progress, user, two_lesson_course
    ) -> None:
        l1, _ = two_lesson_course.lessons
        await progress.enroll(user.id, two_lesson_course.id)

        result = await progress.update_lesson_progress(
            user.id, two_lesson_course.id, l1.id, completed=True
        )

        assert result.overall_progress == 100
        assert [lesson.lesson_id for lesson in result.lessons] == [l1.id]

    @pytest.mark.asyncio
    async def test_concurrent_updates_to_one_lesson(
        self, progress, user, course, cassandra_session
    ) -> None:
        lesson = course.lessons[0]
        await progress.enroll(user.id, course.id)

        await asyncio.gather(
            progress.update_lesson_progress(
                user.id, course.id, lesson.id, watched_seconds=90
            ),
            progress.update_lesson_progress(user.id, course.id, lesson.id, completed=True),
            progress.update_lesson_progress(user.id, course.id, lesson.id),
        )

        result = await progress.get_progress(user.id, course.id)
        assert len(result.lessons) == 1
        assert result.lessons[0].watched_seconds == 90
        assert result.lessons[0].completed is True
        assert result.overall_progress == 100
        assert len(cassandra_session.tables["course_progress"].rows) == 1
        assert len(cassandra_session.tables["lesson_progress"].rows) == 1

    @pytest.mark.asyncio
    async def test_concurrent_updates_to_different_lessons(
        self, progress, user, course, cassandra_session
    ) -> None:
        await progress.enroll(user.id, course.id)

        await asyncio.gather(
            *(
                progress.update_lesson_progress(
                    user.id, course.id, lesson.id, watched_seconds=10, completed=True
                )
                for lesson in course.lessons
            )
        )

        result = await progress.get_progress(user.id, course.id)
        assert {lesson.lesson_id for lesson in result.lessons} == set(course.lesson_ids())
        assert result.overall_progress == 100
        assert len(cassandra_session.tables["course_progress"].rows) == 1

    @pytest.mark.asyncio
    async def test_zero_watched_keeps_previous_value(self, progress, user, course) -> None:
        lesson = course.lessons[0]
        await progress.enroll(user.id, course.id)
        await progress.update_lesson_progress(
            user.id, course.id, lesson.id, watched_seconds=120
        )

        result = await progress.update_lesson_progress(
            user.id, course.id, lesson.id, watched_seconds=0, completed=True
        )

        assert result.lessons[0].watched_seconds == 120
        assert result.lessons[0].completed is True

    @pytest.mark.asyncio
    async def test_explicit_false_uncompletes(self, progress, user, course) -> None:
        lesson = course.lessons[0]
        await progress.enroll(user.id, course.id)
        await progress.update_lesson_progress(user.id, course.id, lesson.id, completed=True)

        result = await progress.update_lesson_progress(
            user.id, course.id, lesson.id, completed=False
        )

        assert result.overall_progress == 0

    @pytest.mark.asyncio
    async def test_started_at_is_stable(self, progress, user, course) -> None:
        await progress.enroll(user.id, course.id)
        first = await progress.update_lesson_progress(
            user.id, course.id, course.lessons[0].id, watched_seconds=5
        )
        second = await progress.update_lesson_progress(
            user.id, course.id, course.lessons[1].id, watched_seconds=5
        )

        assert second.started_at == first.started_at
        assert second.last_accessed_at >= first.last_accessed_at

    @pytest.mark.asyncio
    async def test_zero_state(self, progress, user, course) -> None:
        result = await progress.get_progress(user.id, course.id)

        assert result.overall_progress == 0
        assert result.lessons == []
        assert result.started_at is None

    @pytest.mark.asyncio
    async def test_list_user_progress_most_recent_first(
        self, progress, course_service, user, course, cassandra_session
    ) -> None:
        other = await course_service.create_course(
            CourseCreateRequest(
                title="Cooking 101",
                category="Food",
                instructor="Julia",
                price="5",
                description="Eggs",
                lessons=[{"name": "Eggs", "learning_outcomes": "Boil"}],
            ),
            uuid4(),
        )
        for target in (course, other):
            await progress.enroll(user.id, target.id)
            await progress.update_lesson_progress(
                user.id, target.id, target.lessons[0].id, completed=True
            )

        summary = cassandra_session.tables["course_progress"].rows[(user.id, other.id)]
        summary["last_accessed_at"] += timedelta(minutes=1)

        records = await progress.list_user_progress(user.id)

        assert [r.course_id for r in records] == [other.id, course.id]
        assert all(r.overall_progress == 100 for r in records)
