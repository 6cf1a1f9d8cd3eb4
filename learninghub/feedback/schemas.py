"""Pydantic schemas for course feedback."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from pydantic import BaseModel, Field


if TYPE_CHECKING:
    from learninghub.feedback.models import Feedback


class SubmitFeedbackRequest(BaseModel):
    course_id: UUID
    rating: int = Field(..., ge=1, le=5)
    feedback: str = Field(..., min_length=1, max_length=5000)
    full_name: str = Field(..., min_length=1, max_length=100)
    remember_top: bool = False
    remember_bottom: bool = False


class FeedbackResponse(BaseModel):
    id: UUID
    course_id: UUID
    user_id: UUID
    rating: int
    feedback: str
    full_name: str
    remember_top: bool
    remember_bottom: bool
    created_at: datetime

    @classmethod
    def from_feedback(cls, item: "Feedback") -> "FeedbackResponse":
        return cls(
            id=item.id,
            course_id=item.course_id,
            user_id=item.user_id,
            rating=item.rating,
            feedback=item.feedback,
            full_name=item.full_name,
            remember_top=item.remember_top,
            remember_bottom=item.remember_bottom,
            created_at=item.created_at,
        )


class CourseFeedbackResponse(BaseModel):
    items: list[FeedbackResponse]
    total: int
    average_rating: float | None = None
