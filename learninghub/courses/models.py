"""Database models for the course catalog.

Cassandra table definitions for:
- courses: one row per course
- course_lessons: the ordered lessons of a course, clustered by position

FAQs are small and always read with their course, so they are stored as a
JSON document on the course row.
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

import orjson

from learninghub.auth.models import ensure_utc_aware


class CourseStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class CourseLevel(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    EXPERT = "Expert"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    id UUID PRIMARY KEY,
    title TEXT,
    category TEXT,
    instructor TEXT,
    price DECIMAL,
    discount_percentage DECIMAL,
    tax_percentage DECIMAL,
    course_level TEXT,
    skills LIST<TEXT>,
    keywords LIST<TEXT>,
    description TEXT,
    faqs TEXT,
    resources LIST<TEXT>,
    thumbnail_url TEXT,
    thumbnail_id TEXT,
    status TEXT,
    created_by UUID,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

COURSE_LESSONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_lessons (
    course_id UUID,
    position INT,
    lesson_id UUID,
    name TEXT,
    skills LIST<TEXT>,
    learning_outcomes TEXT,
    video_url TEXT,
    video_id TEXT,
    duration_seconds INT,
    PRIMARY KEY (course_id, position)
) WITH CLUSTERING ORDER BY (position ASC)
"""

COURSES_TABLES_CQL = [
    COURSE_TABLE_CQL,
    COURSE_LESSONS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Lesson:
    """A lesson inside a course.

    Attributes:
        id: Stable lesson id, kept across course updates
        position: Zero-based order within the course
        name: Lesson title
        skills: Skills covered
        learning_outcomes: Required outcome text
        video_url: Public URL of the lesson video
        video_id: Media store id of the video (for deletion)
        duration_seconds: Video length
    """

    def __init__(
        self,
        id: UUID | None = None,
        position: int = 0,
        name: str = "",
        skills: list[str] | None = None,
        learning_outcomes: str = "",
        video_url: str | None = None,
        video_id: str | None = None,
        duration_seconds: int = 0,
    ):
        self.id = id or uuid4()
        self.position = position
        self.name = name.strip()
        self.skills = list(skills or [])
        self.learning_outcomes = learning_outcomes.strip()
        self.video_url = video_url
        self.video_id = video_id
        self.duration_seconds = duration_seconds or 0

    @classmethod
    def from_row(cls, row: Any) -> "Lesson":
        return cls(
            id=row.lesson_id,
            position=row.position,
            name=row.name or "",
            skills=row.skills,
            learning_outcomes=row.learning_outcomes or "",
            video_url=row.video_url,
            video_id=row.video_id,
            duration_seconds=row.duration_seconds,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "position": self.position,
            "name": self.name,
            "skills": self.skills,
            "learning_outcomes": self.learning_outcomes,
            "video_url": self.video_url,
            "duration_seconds": self.duration_seconds,
        }

    def __repr__(self) -> str:
        return f"<Lesson {self.position}: {self.name}>"


class Course:
    """A course in the catalog.

    Prices and percentages are ``Decimal``; ``tax_percentage`` is None when
    the course does not set one and the default tax applies.
    """

    def __init__(
        self,
        id: UUID | None = None,
        title: str = "",
        category: str = "",
        instructor: str = "",
        price: Decimal = Decimal(0),
        discount_percentage: Decimal = Decimal(0),
        tax_percentage: Decimal | None = None,
        course_level: str | None = None,
        skills: list[str] | None = None,
        keywords: list[str] | None = None,
        description: str = "",
        faqs: list[dict[str, str]] | None = None,
        resources: list[str] | None = None,
        thumbnail_url: str | None = None,
        thumbnail_id: str | None = None,
        status: str = CourseStatus.DRAFT.value,
        created_by: UUID | None = None,
        lessons: list[Lesson] | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.title = title.strip()
        self.category = category.strip()
        self.instructor = instructor.strip()
        self.price = Decimal(price)
        self.discount_percentage = Decimal(discount_percentage or 0)
        self.tax_percentage = tax_percentage
        self.course_level = course_level
        self.skills = list(skills or [])
        self.keywords = list(keywords or [])
        self.description = description
        self.faqs = list(faqs or [])
        self.resources = list(resources or [])
        self.thumbnail_url = thumbnail_url
        self.thumbnail_id = thumbnail_id
        self.status = status
        self.created_by = created_by
        self.lessons = list(lessons or [])
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any, lessons: list[Lesson] | None = None) -> "Course":
        return cls(
            id=row.id,
            title=row.title or "",
            category=row.category or "",
            instructor=row.instructor or "",
            price=row.price if row.price is not None else Decimal(0),
            discount_percentage=row.discount_percentage,
            tax_percentage=row.tax_percentage,
            course_level=row.course_level,
            skills=row.skills,
            keywords=row.keywords,
            description=row.description or "",
            faqs=orjson.loads(row.faqs) if row.faqs else [],
            resources=row.resources,
            thumbnail_url=row.thumbnail_url,
            thumbnail_id=row.thumbnail_id,
            status=row.status or CourseStatus.DRAFT.value,
            created_by=row.created_by,
            lessons=lessons,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @property
    def is_published(self) -> bool:
        return self.status == CourseStatus.PUBLISHED.value

    @property
    def encoded_faqs(self) -> str:
        return orjson.dumps(self.faqs).decode()

    @property
    def media_ids(self) -> list[str]:
        """Media store ids referenced by this course."""
        ids = [self.thumbnail_id] if self.thumbnail_id else []
        ids.extend(lesson.video_id for lesson in self.lessons if lesson.video_id)
        return ids

    def lesson_ids(self) -> set[UUID]:
        return {lesson.id for lesson in self.lessons}

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "category": self.category,
            "instructor": self.instructor,
            "price": self.price,
            "discount_percentage": self.discount_percentage,
            "tax_percentage": self.tax_percentage,
            "course_level": self.course_level,
            "skills": self.skills,
            "keywords": self.keywords,
            "description": self.description,
            "faqs": self.faqs,
            "resources": self.resources,
            "thumbnail_url": self.thumbnail_url,
            "status": self.status,
            "created_by": self.created_by,
            "lessons": [lesson.to_dict() for lesson in self.lessons],
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<Course {self.title} ({self.status})>"
