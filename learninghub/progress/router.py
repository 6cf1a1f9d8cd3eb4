"""Enrollment and progress API endpoints.

Provides routes for:
- Enrolling the current user and listing their enrollments
- Reporting lesson watch state
- Reading course progress (own, or any user's for admins)
"""

from uuid import UUID

from fastapi import APIRouter

from learninghub.auth.dependencies import AdminUser, CurrentUser
from learninghub.core.responses import SuccessResponse
from learninghub.progress.dependencies import ProgressServiceDep, handle_progress_error
from learninghub.progress.schemas import (
    CourseProgressResponse,
    EnrollmentListResponse,
    EnrollmentResponse,
    EnrollRequest,
    LessonProgressUpdateRequest,
)
from learninghub.progress.service import ProgressError


router = APIRouter(prefix="/v1/progress", tags=["progress"])


# ==============================================================================
# Enrollment
# ==============================================================================


@router.post("/enroll", response_model=SuccessResponse[EnrollmentResponse])
async def enroll(
    data: EnrollRequest,
    user: CurrentUser,
    service: ProgressServiceDep,
) -> SuccessResponse[EnrollmentResponse]:
    try:
        already = await service.enroll(user.id, data.course_id)
    except ProgressError as e:
        raise handle_progress_error(e) from e

    return SuccessResponse(
        data=EnrollmentResponse(course_id=data.course_id, already_enrolled=already),
        message="Already enrolled" if already else "Enrolled successfully",
    )


@router.get("/enrollments", response_model=SuccessResponse[EnrollmentListResponse])
async def list_enrollments(
    user: CurrentUser,
    service: ProgressServiceDep,
) -> SuccessResponse[EnrollmentListResponse]:
    try:
        course_ids = await service.list_enrollments(user.id)
    except ProgressError as e:
        raise handle_progress_error(e) from e
    return SuccessResponse(data=EnrollmentListResponse(course_ids=course_ids))


# ==============================================================================
# Progress
# ==============================================================================


@router.get("", response_model=SuccessResponse[list[CourseProgressResponse]])
async def list_my_progress(
    user: CurrentUser,
    service: ProgressServiceDep,
) -> SuccessResponse[list[CourseProgressResponse]]:
    records = await service.list_user_progress(user.id)
    return SuccessResponse(data=[CourseProgressResponse.from_progress(p) for p in records])


@router.get(
    "/courses/{course_id}", response_model=SuccessResponse[CourseProgressResponse]
)
async def get_course_progress(
    course_id: UUID,
    user: CurrentUser,
    service: ProgressServiceDep,
) -> SuccessResponse[CourseProgressResponse]:
    """Progress for a course; the zero state when nothing was recorded yet."""
    progress = await service.get_progress(user.id, course_id)
    return SuccessResponse(data=CourseProgressResponse.from_progress(progress))


@router.put(
    "/courses/{course_id}/lessons/{lesson_id}",
    response_model=SuccessResponse[CourseProgressResponse],
)
async def update_lesson_progress(
    course_id: UUID,
    lesson_id: UUID,
    data: LessonProgressUpdateRequest,
    user: CurrentUser,
    service: ProgressServiceDep,
) -> SuccessResponse[CourseProgressResponse]:
    try:
        progress = await service.update_lesson_progress(
            user.id,
            course_id,
            lesson_id,
            watched_seconds=data.watched_seconds,
            completed=data.completed,
        )
    except ProgressError as e:
        raise handle_progress_error(e) from e

    return SuccessResponse(
        data=CourseProgressResponse.from_progress(progress),
        message="Progress updated",
    )


@router.get(
    "/users/{user_id}", response_model=SuccessResponse[list[CourseProgressResponse]]
)
async def list_user_progress(
    user_id: UUID,
    _admin: AdminUser,
    service: ProgressServiceDep,
) -> SuccessResponse[list[CourseProgressResponse]]:
    records = await service.list_user_progress(user_id)
    return SuccessResponse(data=[CourseProgressResponse.from_progress(p) for p in records])
