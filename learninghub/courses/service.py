"""Course catalog service layer.

Business logic for:
- Course create/update with thumbnail and lesson-video uploads
- Listing with status/category filters and enrolled-student counts
- Deletion with best-effort media cleanup

Uploads go to the media store before the database write. If anything fails
after the first upload, every artifact uploaded by the request is deleted
again (failures there are only logged).
"""

import math
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from cassandra.query import BatchStatement, BatchType

from learninghub.courses.models import Course, CourseStatus, Lesson
from learninghub.courses.schemas import (
    CourseCreateRequest,
    CourseUpdateRequest,
    LessonInput,
)
from learninghub.storage.service import (
    FileTooLargeError,
    InvalidContentTypeError,
    MediaStorageService,
    StorageError,
    StorageValidationError,
    UploadedMedia,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CourseError(Exception):
    """Base course error."""

    def __init__(self, message: str, code: str = "course_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CourseNotFoundError(CourseError):
    def __init__(self, message: str = "Course not found"):
        super().__init__(message, "course_not_found")


class CourseValidationError(CourseError):
    def __init__(self, message: str):
        super().__init__(message, "validation_error")


class CourseMediaError(CourseError):
    """Media upload or the write that follows it failed."""

    def __init__(self, message: str = "Could not store course media"):
        super().__init__(message, "upstream_failure")


@dataclass
class MediaFile:
    """An uploaded file as received by the router."""

    content: bytes
    filename: str | None
    content_type: str


# ==============================================================================
# Course Service
# ==============================================================================


class CourseService:
    """Service for the course catalog."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        storage: MediaStorageService | None = None,
    ):
        self.session = session
        self.keyspace = keyspace
        self.storage = storage
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        self._get_course = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.courses WHERE id = ?"
        )
        self._list_courses = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.courses"
        )
        self._insert_course = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.courses
            (id, title, category, instructor, price, discount_percentage,
             tax_percentage, course_level, skills, keywords, description, faqs,
             resources, thumbnail_url, thumbnail_id, status, created_by,
             created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._delete_course = self.session.prepare(
            f"DELETE FROM {self.keyspace}.courses WHERE id = ?"
        )

        self._get_lessons = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.course_lessons WHERE course_id = ?"
        )
        self._insert_lesson = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.course_lessons
            (course_id, position, lesson_id, name, skills, learning_outcomes,
             video_url, video_id, duration_seconds)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._delete_lessons = self.session.prepare(
            f"DELETE FROM {self.keyspace}.course_lessons WHERE course_id = ?"
        )
        self._trim_lessons = self.session.prepare(
            f"DELETE FROM {self.keyspace}.course_lessons"
            " WHERE course_id = ? AND position >= ?"
        )

        self._get_enrollments = self.session.prepare(
            f"SELECT user_id FROM {self.keyspace}.course_enrollments WHERE course_id = ?"
        )

    # --------------------------------------------------------------------------
    # Reads
    # --------------------------------------------------------------------------

    async def _load_lessons(self, course_id: UUID) -> list[Lesson]:
        result = await self.session.aexecute(self._get_lessons, [course_id])
        return sorted((Lesson.from_row(row) for row in result), key=lambda x: x.position)

    async def get_course(self, course_id: UUID) -> Course | None:
        result = await self.session.aexecute(self._get_course, [course_id])
        row = result.one()
        if not row:
            return None
        return Course.from_row(row, await self._load_lessons(course_id))

    async def require_course(self, course_id: UUID) -> Course:
        course = await self.get_course(course_id)
        if course is None:
            raise CourseNotFoundError
        return course

    async def enrolled_count(self, course_id: UUID) -> int:
        result = await self.session.aexecute(self._get_enrollments, [course_id])
        return len(list(result))

    async def list_courses(
        self,
        status: CourseStatus | None = None,
        category: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[tuple[Course, int]], int]:
        """List courses newest first.

        Returns:
            ``([(course, enrolled_count), ...], total)`` where ``total`` counts
            every course matching the filters.
        """
        result = await self.session.aexecute(self._list_courses)
        rows = [
            row
            for row in result
            if (status is None or row.status == status.value)
            and (category is None or (row.category or "").lower() == category.lower())
        ]
        courses = sorted(
            (Course.from_row(row) for row in rows),
            key=lambda c: c.created_at,
            reverse=True,
        )
        total = len(courses)

        start = (page - 1) * limit
        items = []
        for course in courses[start : start + limit]:
            course.lessons = await self._load_lessons(course.id)
            items.append((course, await self.enrolled_count(course.id)))
        return items, total

    @staticmethod
    def page_count(total: int, limit: int) -> int:
        return math.ceil(total / limit) if limit else 0

    # --------------------------------------------------------------------------
    # Media
    # --------------------------------------------------------------------------

    def _require_storage(self) -> MediaStorageService:
        if self.storage is None:
            raise CourseMediaError("Media storage is not configured")
        return self.storage

    async def _discard_media(self, media_ids: list[str]) -> None:
        """Best-effort delete of stored media; failures are only logged."""
        if not media_ids or self.storage is None:
            return
        for media_id in media_ids:
            try:
                await self.storage.delete(media_id)
            except StorageError as e:
                logger.warning(
                    "media_cleanup_failed", media_id=media_id, error=e.message
                )

    async def _upload_thumbnail(
        self, thumbnail: MediaFile, uploaded: list[str]
    ) -> UploadedMedia:
        media = await self._require_storage().upload_image(
            thumbnail.content, thumbnail.filename, thumbnail.content_type
        )
        uploaded.append(media.id)
        return media

    async def _build_lessons(
        self,
        inputs: list[LessonInput],
        videos: list[MediaFile],
        uploaded: list[str],
        existing: dict[UUID, Lesson] | None = None,
    ) -> list[Lesson]:
        """Build the lesson list, uploading the video for each lesson that has one."""
        existing = existing or {}
        lessons = []
        for position, data in enumerate(inputs):
            previous = existing.get(data.id) if data.id else None
            lesson = Lesson(
                id=previous.id if previous else None,
                position=position,
                name=data.name,
                skills=data.skills,
                learning_outcomes=data.learning_outcomes,
                video_url=previous.video_url if previous else None,
                video_id=previous.video_id if previous else None,
                duration_seconds=(
                    data.duration_seconds
                    if data.duration_seconds is not None
                    else (previous.duration_seconds if previous else 0)
                ),
            )
            video = videos[position] if position < len(videos) else None
            if video is not None:
                media = await self._require_storage().upload_video(
                    video.content,
                    video.filename,
                    video.content_type,
                    duration_seconds=data.duration_seconds,
                )
                uploaded.append(media.id)
                lesson.video_url = media.url
                lesson.video_id = media.id
            lessons.append(lesson)
        return lessons

    # --------------------------------------------------------------------------
    # Writes
    # --------------------------------------------------------------------------

    async def _write_course(self, course: Course, with_lessons: bool) -> None:
        """Write the course row, and optionally its lessons, in one logged batch.

        Lesson positions are overwritten in place and the rows past the new
        end are range-deleted, so the batch never deletes a row it also
        writes. A failed batch leaves the stored course untouched.
        """
        batch = BatchStatement(batch_type=BatchType.LOGGED)
        batch.add(
            self._insert_course,
            [
                course.id,
                course.title,
                course.category,
                course.instructor,
                course.price,
                course.discount_percentage,
                course.tax_percentage,
                course.course_level,
                course.skills,
                course.keywords,
                course.description,
                course.encoded_faqs,
                course.resources,
                course.thumbnail_url,
                course.thumbnail_id,
                course.status,
                course.created_by,
                course.created_at,
                course.updated_at,
            ],
        )
        if with_lessons:
            self._add_lessons(batch, course)
        await self.session.aexecute(batch)

    def _add_lessons(self, batch: BatchStatement, course: Course) -> None:
        for lesson in course.lessons:
            batch.add(
                self._insert_lesson,
                [
                    course.id,
                    lesson.position,
                    lesson.id,
                    lesson.name,
                    lesson.skills,
                    lesson.learning_outcomes,
                    lesson.video_url,
                    lesson.video_id,
                    lesson.duration_seconds,
                ],
            )
        batch.add(self._trim_lessons, [course.id, len(course.lessons)])

    async def _fail(self, error: Exception, uploaded: list[str], event: str) -> CourseError:
        """Clean up the request's uploads and map ``error`` to a CourseError."""
        await self._discard_media(uploaded)
        if isinstance(
            error, (StorageValidationError, FileTooLargeError, InvalidContentTypeError)
        ):
            return CourseValidationError(error.message)
        if isinstance(error, CourseError):
            return error
        logger.exception(event, uploaded=len(uploaded))
        return CourseMediaError()

    async def create_course(
        self,
        data: CourseCreateRequest,
        created_by: UUID,
        thumbnail: MediaFile | None = None,
        lesson_videos: list[MediaFile] | None = None,
    ) -> Course:
        """Create a course, uploading its thumbnail and lesson videos first.

        Raises:
            CourseValidationError: If an uploaded file is rejected
            CourseMediaError: If an upload or the database write fails
        """
        uploaded: list[str] = []
        now = datetime.now(UTC)
        try:
            thumb = await self._upload_thumbnail(thumbnail, uploaded) if thumbnail else None
            lessons = await self._build_lessons(
                data.lessons, lesson_videos or [], uploaded
            )
            course = Course(
                title=data.title,
                category=data.category,
                instructor=data.instructor,
                price=data.price,
                discount_percentage=data.discount_percentage,
                tax_percentage=data.tax_percentage,
                course_level=data.course_level.value if data.course_level else None,
                skills=data.skills,
                keywords=data.keywords,
                description=data.description,
                faqs=[faq.model_dump() for faq in data.faqs],
                resources=data.resources,
                thumbnail_url=thumb.url if thumb else None,
                thumbnail_id=thumb.id if thumb else None,
                status=data.status.value,
                created_by=created_by,
                lessons=lessons,
                created_at=now,
                updated_at=now,
            )
            await self._write_course(course, with_lessons=True)
        except Exception as e:
            raise await self._fail(e, uploaded, "course_create_failed") from e

        logger.info(
            "course_created",
            course_id=str(course.id),
            lessons=len(course.lessons),
            media=len(uploaded),
        )
        return course

    async def update_course(
        self,
        course_id: UUID,
        data: CourseUpdateRequest,
        thumbnail: MediaFile | None = None,
        lesson_videos: list[MediaFile] | None = None,
    ) -> Course:
        """Apply a partial update.

        Media replaced or dropped by the update is deleted only after the new
        state has been written.
        """
        course = await self.require_course(course_id)
        old_media = set(course.media_ids)
        uploaded: list[str] = []

        try:
            if thumbnail:
                thumb = await self._upload_thumbnail(thumbnail, uploaded)
                course.thumbnail_url = thumb.url
                course.thumbnail_id = thumb.id

            if data.lessons is not None:
                course.lessons = await self._build_lessons(
                    data.lessons,
                    lesson_videos or [],
                    uploaded,
                    existing={lesson.id: lesson for lesson in course.lessons},
                )
            elif lesson_videos:
                raise CourseValidationError("Lesson videos require a lessons list")

            fields = data.model_dump(
                exclude_unset=True, exclude={"lessons", "faqs", "course_level", "status"}
            )
            for name, value in fields.items():
                if value is not None:
                    setattr(course, name, value)
            if data.faqs is not None:
                course.faqs = [faq.model_dump() for faq in data.faqs]
            if data.course_level is not None:
                course.course_level = data.course_level.value
            if data.status is not None:
                course.status = data.status.value
            course.updated_at = datetime.now(UTC)

            await self._write_course(course, with_lessons=data.lessons is not None)
        except Exception as e:
            raise await self._fail(e, uploaded, "course_update_failed") from e

        await self._discard_media(sorted(old_media - set(course.media_ids)))
        logger.info("course_updated", course_id=str(course_id), media=len(uploaded))
        return course

    async def delete_course(self, course_id: UUID) -> None:
        course = await self.require_course(course_id)
        await self.session.aexecute(self._delete_lessons, [course_id])
        await self.session.aexecute(self._delete_course, [course_id])
        await self._discard_media(course.media_ids)
        logger.info("course_deleted", course_id=str(course_id))
