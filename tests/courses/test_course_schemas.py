"""Tests for course request schemas."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from learninghub.courses.models import CourseLevel, CourseStatus
from learninghub.courses.schemas import (
    CourseCreateRequest,
    CourseUpdateRequest,
    decode_json_list,
)


def _create(**overrides) -> CourseCreateRequest:
    data = {
        "title": "Intro to Python",
        "category": "Programming",
        "instructor": "Grace",
        "price": "49.99",
        "description": "Learn the basics.",
    }
    data.update(overrides)
    return CourseCreateRequest(**data)


class TestDecodeJsonList:
    def test_passes_lists_through(self) -> None:
        assert decode_json_list(["a"]) == ["a"]
        assert decode_json_list(None) is None

    def test_decodes_json_string(self) -> None:
        assert decode_json_list('["a", "b"]') == ["a", "b"]

    def test_blank_string_is_none(self) -> None:
        assert decode_json_list("  ") is None

    @pytest.mark.parametrize("value", ["not json", '{"a": 1}', "3"])
    def test_rejects_non_arrays(self, value: str) -> None:
        with pytest.raises(ValueError, match="JSON array"):
            decode_json_list(value)


class TestCourseCreateRequest:
    def test_defaults(self) -> None:
        course = _create()
        assert course.price == Decimal("49.99")
        assert course.discount_percentage == 0
        assert course.tax_percentage is None
        assert course.status == CourseStatus.DRAFT
        assert course.lessons == []

    def test_form_encoded_lists(self) -> None:
        course = _create(
            skills='[" python ", "", "testing"]',
            faqs='[{"question": "Level?", "answer": "Beginner"}]',
            lessons='[{"name": "Setup", "learning_outcomes": "Install", "skills": "[\\"cli\\"]"}]',
            course_level="Beginner",
        )
        assert course.skills == ["python", "testing"]
        assert course.faqs[0].question == "Level?"
        assert course.lessons[0].name == "Setup"
        assert course.lessons[0].skills == ["cli"]
        assert course.course_level == CourseLevel.BEGINNER

    @pytest.mark.parametrize(
        "overrides",
        [
            {"price": "-1"},
            {"price": "10.001"},
            {"discount_percentage": "101"},
            {"tax_percentage": "71"},
            {"title": "ab"},
            {"skills": "not json"},
        ],
    )
    def test_invalid_values(self, overrides: dict) -> None:
        with pytest.raises(ValidationError):
            _create(**overrides)


class TestCourseUpdateRequest:
    def test_everything_optional(self) -> None:
        update = CourseUpdateRequest()
        assert update.model_dump(exclude_unset=True) == {}

    def test_lessons_none_means_unchanged(self) -> None:
        assert CourseUpdateRequest(title="New title").lessons is None
        assert CourseUpdateRequest(lessons="[]").lessons == []
