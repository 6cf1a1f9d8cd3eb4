"""Course catalog API endpoints.

Provides routes for:
- Public catalog: list and detail
- Admin: create, update (multipart with media) and delete
"""

from typing import Annotated, Any, TypeVar
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError

from learninghub.auth.dependencies import AdminUser, OptionalUser
from learninghub.core.responses import MessageResponse, SuccessResponse
from learninghub.courses.dependencies import CourseServiceDep, handle_course_error
from learninghub.courses.models import CourseStatus
from learninghub.courses.schemas import (
    CourseCreateRequest,
    CourseListResponse,
    CourseResponse,
    CourseUpdateRequest,
    Pagination,
)
from learninghub.courses.service import CourseError, CourseNotFoundError, MediaFile


router = APIRouter(prefix="/v1/courses", tags=["courses"])

M = TypeVar("M", bound=BaseModel)


# ==============================================================================
# Multipart helpers
# ==============================================================================

FormField = Annotated[str | None, Form()]


def course_form(
    title: FormField = None,
    category: FormField = None,
    instructor: FormField = None,
    price: FormField = None,
    discount_percentage: FormField = None,
    tax_percentage: FormField = None,
    course_level: FormField = None,
    description: FormField = None,
    skills: FormField = None,
    keywords: FormField = None,
    resources: FormField = None,
    faqs: FormField = None,
    lessons: FormField = None,
    status: FormField = None,
) -> dict[str, Any]:
    """Collect the submitted form fields, dropping the ones not sent."""
    fields = {
        "title": title,
        "category": category,
        "instructor": instructor,
        "price": price,
        "discount_percentage": discount_percentage,
        "tax_percentage": tax_percentage,
        "course_level": course_level,
        "description": description,
        "skills": skills,
        "keywords": keywords,
        "resources": resources,
        "faqs": faqs,
        "lessons": lessons,
        "status": status,
    }
    return {k: v for k, v in fields.items() if v is not None and v != ""}


def _parse(model: type[M], fields: dict[str, Any]) -> M:
    try:
        return model.model_validate(fields)
    except ValidationError as e:
        raise RequestValidationError(e.errors()) from e


async def _read_media(upload: UploadFile | None) -> MediaFile | None:
    if upload is None or not upload.filename:
        return None
    return MediaFile(
        content=await upload.read(),
        filename=upload.filename,
        content_type=upload.content_type or "application/octet-stream",
    )


async def _read_videos(uploads: list[UploadFile] | None) -> list[MediaFile]:
    videos = []
    for upload in uploads or []:
        media = await _read_media(upload)
        if media is not None:
            videos.append(media)
    return videos


CourseForm = Annotated[dict[str, Any], Depends(course_form)]
ThumbnailFile = Annotated[UploadFile | None, File(description="Course thumbnail")]
LessonVideoFiles = Annotated[
    list[UploadFile] | None,
    File(description="Lesson videos; the i-th file belongs to the i-th lesson"),
]


# ==============================================================================
# Public
# ==============================================================================


@router.get("", response_model=SuccessResponse[CourseListResponse])
async def list_courses(
    service: CourseServiceDep,
    user: OptionalUser,
    status_filter: Annotated[CourseStatus | None, Query(alias="status")] = None,
    category: str | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> SuccessResponse[CourseListResponse]:
    """List courses; non-admins only ever see published ones."""
    if user is None or not user.is_admin:
        status_filter = CourseStatus.PUBLISHED

    items, total = await service.list_courses(
        status=status_filter, category=category, page=page, limit=limit
    )
    return SuccessResponse(
        data=CourseListResponse(
            items=[CourseResponse.from_course(c, enrolled) for c, enrolled in items],
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                pages=service.page_count(total, limit),
            ),
        )
    )


@router.get("/{course_id}", response_model=SuccessResponse[CourseResponse])
async def get_course(
    course_id: UUID,
    service: CourseServiceDep,
    user: OptionalUser,
) -> SuccessResponse[CourseResponse]:
    course = await service.get_course(course_id)
    if course is None or (
        not course.is_published and (user is None or not user.is_admin)
    ):
        raise handle_course_error(CourseNotFoundError())

    enrolled = await service.enrolled_count(course_id)
    return SuccessResponse(data=CourseResponse.from_course(course, enrolled))


# ==============================================================================
# Admin
# ==============================================================================


@router.post(
    "",
    response_model=SuccessResponse[CourseResponse],
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid course data or media"},
        502: {"description": "Media upload failed"},
    },
)
async def create_course(
    service: CourseServiceDep,
    admin: AdminUser,
    fields: CourseForm,
    thumbnail: ThumbnailFile = None,
    lesson_videos: LessonVideoFiles = None,
) -> SuccessResponse[CourseResponse]:
    data = _parse(CourseCreateRequest, fields)
    try:
        course = await service.create_course(
            data,
            created_by=admin.id,
            thumbnail=await _read_media(thumbnail),
            lesson_videos=await _read_videos(lesson_videos),
        )
    except CourseError as e:
        raise handle_course_error(e) from e

    return SuccessResponse(
        data=CourseResponse.from_course(course),
        message="Course created successfully",
    )


@router.put("/{course_id}", response_model=SuccessResponse[CourseResponse])
async def update_course(
    course_id: UUID,
    service: CourseServiceDep,
    _admin: AdminUser,
    fields: CourseForm,
    thumbnail: ThumbnailFile = None,
    lesson_videos: LessonVideoFiles = None,
) -> SuccessResponse[CourseResponse]:
    data = _parse(CourseUpdateRequest, fields)
    try:
        course = await service.update_course(
            course_id,
            data,
            thumbnail=await _read_media(thumbnail),
            lesson_videos=await _read_videos(lesson_videos),
        )
    except CourseError as e:
        raise handle_course_error(e) from e

    enrolled = await service.enrolled_count(course_id)
    return SuccessResponse(
        data=CourseResponse.from_course(course, enrolled),
        message="Course updated successfully",
    )


@router.delete("/{course_id}", response_model=MessageResponse)
async def delete_course(
    course_id: UUID,
    service: CourseServiceDep,
    _admin: AdminUser,
) -> MessageResponse:
    try:
        await service.delete_course(course_id)
    except CourseError as e:
        raise handle_course_error(e) from e
    return MessageResponse(message="Course deleted successfully")
