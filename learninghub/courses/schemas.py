"""Pydantic schemas for the course catalog.

Course create/update arrive as multipart forms, so list-valued fields
(skills, keywords, resources, faqs, lessons) may be JSON-encoded strings.
They are decoded here, before field validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

import orjson
from pydantic import BaseModel, Field, field_validator

from learninghub.courses.models import CourseLevel, CourseStatus


if TYPE_CHECKING:
    from learninghub.courses.models import Course, Lesson


LIST_FIELDS = ("skills", "keywords", "resources", "faqs", "lessons")


def decode_json_list(value: Any) -> Any:
    """Decode a JSON string into a list; pass lists (and None) through."""
    if value is None or isinstance(value, list):
        return value
    if isinstance(value, (str, bytes)):
        if not value.strip():
            return None
        try:
            decoded = orjson.loads(value)
        except orjson.JSONDecodeError as e:
            msg = "Must be a JSON array"
            raise ValueError(msg) from e
        if not isinstance(decoded, list):
            msg = "Must be a JSON array"
            raise ValueError(msg)
        return decoded
    return value


def _clean_strings(values: list[str] | None) -> list[str] | None:
    if values is None:
        return None
    return [v.strip() for v in values if v and v.strip()]


# ==============================================================================
# Request Schemas
# ==============================================================================


class FaqItem(BaseModel):
    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)


class LessonInput(BaseModel):
    """A lesson as submitted by an admin.

    ``id`` identifies an existing lesson on update; omit it for a new one.
    The i-th uploaded lesson video belongs to the i-th lesson.
    """

    id: UUID | None = None
    name: str = Field(..., min_length=1, max_length=200)
    skills: list[str] = Field(default_factory=list)
    learning_outcomes: str = Field(..., min_length=1)
    duration_seconds: int | None = Field(None, ge=0)

    @field_validator("skills", mode="before")
    @classmethod
    def decode_skills(cls, v: Any) -> Any:
        return decode_json_list(v) or []


class CourseCreateRequest(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    category: str = Field(..., min_length=1, max_length=100)
    instructor: str = Field(..., min_length=1, max_length=100)
    price: Decimal = Field(..., ge=0, decimal_places=2)
    discount_percentage: Decimal = Field(Decimal(0), ge=0, le=100)
    tax_percentage: Decimal | None = Field(None, ge=0, le=70)
    course_level: CourseLevel | None = None
    description: str = Field(..., min_length=1, max_length=10000)
    skills: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    resources: list[str] = Field(default_factory=list)
    faqs: list[FaqItem] = Field(default_factory=list)
    lessons: list[LessonInput] = Field(default_factory=list)
    status: CourseStatus = CourseStatus.DRAFT

    @field_validator(*LIST_FIELDS, mode="before")
    @classmethod
    def decode_lists(cls, v: Any) -> Any:
        return decode_json_list(v) or []

    @field_validator("skills", "keywords", "resources")
    @classmethod
    def strip_items(cls, v: list[str]) -> list[str]:
        return _clean_strings(v) or []


class CourseUpdateRequest(BaseModel):
    """Partial course update; omitted fields are left unchanged.

    When ``lessons`` is given it replaces the lesson list. Lessons whose
    ``id`` matches an existing lesson keep their id and video.
    """

    title: str | None = Field(None, min_length=3, max_length=200)
    category: str | None = Field(None, min_length=1, max_length=100)
    instructor: str | None = Field(None, min_length=1, max_length=100)
    price: Decimal | None = Field(None, ge=0, decimal_places=2)
    discount_percentage: Decimal | None = Field(None, ge=0, le=100)
    tax_percentage: Decimal | None = Field(None, ge=0, le=70)
    course_level: CourseLevel | None = None
    description: str | None = Field(None, min_length=1, max_length=10000)
    skills: list[str] | None = None
    keywords: list[str] | None = None
    resources: list[str] | None = None
    faqs: list[FaqItem] | None = None
    lessons: list[LessonInput] | None = None
    status: CourseStatus | None = None

    @field_validator(*LIST_FIELDS, mode="before")
    @classmethod
    def decode_lists(cls, v: Any) -> Any:
        return decode_json_list(v)

    @field_validator("skills", "keywords", "resources")
    @classmethod
    def strip_items(cls, v: list[str] | None) -> list[str] | None:
        return _clean_strings(v)


# ==============================================================================
# Response Schemas
# ==============================================================================


class LessonResponse(BaseModel):
    id: UUID
    position: int
    name: str
    skills: list[str]
    learning_outcomes: str
    video_url: str | None = None
    duration_seconds: int = 0

    @classmethod
    def from_lesson(cls, lesson: "Lesson") -> "LessonResponse":
        return cls(
            id=lesson.id,
            position=lesson.position,
            name=lesson.name,
            skills=lesson.skills,
            learning_outcomes=lesson.learning_outcomes,
            video_url=lesson.video_url,
            duration_seconds=lesson.duration_seconds,
        )


class CourseResponse(BaseModel):
    id: UUID
    title: str
    category: str
    instructor: str
    price: Decimal
    discount_percentage: Decimal
    tax_percentage: Decimal | None = None
    course_level: str | None = None
    description: str
    skills: list[str]
    keywords: list[str]
    resources: list[str]
    faqs: list[FaqItem]
    thumbnail_url: str | None = None
    status: CourseStatus
    created_by: UUID | None = None
    lessons: list[LessonResponse]
    enrolled: int = 0
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_course(cls, course: "Course", enrolled: int = 0) -> "CourseResponse":
        return cls(
            id=course.id,
            title=course.title,
            category=course.category,
            instructor=course.instructor,
            price=course.price,
            discount_percentage=course.discount_percentage,
            tax_percentage=course.tax_percentage,
            course_level=course.course_level,
            description=course.description,
            skills=course.skills,
            keywords=course.keywords,
            resources=course.resources,
            faqs=[FaqItem(**faq) for faq in course.faqs],
            thumbnail_url=course.thumbnail_url,
            status=CourseStatus(course.status),
            created_by=course.created_by,
            lessons=[LessonResponse.from_lesson(lesson) for lesson in course.lessons],
            enrolled=enrolled,
            created_at=course.created_at,
            updated_at=course.updated_at,
        )


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class CourseListResponse(BaseModel):
    items: list[CourseResponse]
    pagination: Pagination
