"""Course feedback API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status

from learninghub.auth.dependencies import CurrentUser
from learninghub.core.responses import APIError, SuccessResponse
from learninghub.feedback.schemas import (
    CourseFeedbackResponse,
    FeedbackResponse,
    SubmitFeedbackRequest,
)
from learninghub.feedback.service import FeedbackError, FeedbackService


router = APIRouter(prefix="/v1/feedback", tags=["feedback"])


async def get_feedback_service(request: Request) -> FeedbackService:
    service = getattr(request.app.state, "feedback_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Feedback service unavailable",
        )
    return service


FeedbackServiceDep = Annotated[FeedbackService, Depends(get_feedback_service)]


def handle_feedback_error(error: FeedbackError) -> HTTPException:
    status_map = {
        "feedback_exists": status.HTTP_409_CONFLICT,
        "not_enrolled": status.HTTP_403_FORBIDDEN,
        "not_found": status.HTTP_404_NOT_FOUND,
    }
    return APIError(
        status_code=status_map.get(error.code, status.HTTP_400_BAD_REQUEST),
        message=error.message,
        code=error.code,
    )


@router.post(
    "",
    response_model=SuccessResponse[FeedbackResponse],
    status_code=status.HTTP_201_CREATED,
)
async def submit_feedback(
    data: SubmitFeedbackRequest,
    user: CurrentUser,
    service: FeedbackServiceDep,
) -> SuccessResponse[FeedbackResponse]:
    try:
        item = await service.submit(user.id, data)
    except FeedbackError as e:
        raise handle_feedback_error(e) from e
    return SuccessResponse(
        data=FeedbackResponse.from_feedback(item),
        message="Feedback submitted successfully",
    )


@router.get("/me", response_model=SuccessResponse[list[FeedbackResponse]])
async def list_my_feedback(
    user: CurrentUser,
    service: FeedbackServiceDep,
) -> SuccessResponse[list[FeedbackResponse]]:
    items = await service.list_for_user(user.id)
    return SuccessResponse(data=[FeedbackResponse.from_feedback(f) for f in items])


@router.get(
    "/courses/{course_id}", response_model=SuccessResponse[CourseFeedbackResponse]
)
async def list_course_feedback(
    course_id: UUID,
    service: FeedbackServiceDep,
) -> SuccessResponse[CourseFeedbackResponse]:
    items = await service.list_for_course(course_id)
    average = round(sum(f.rating for f in items) / len(items), 2) if items else None
    return SuccessResponse(
        data=CourseFeedbackResponse(
            items=[FeedbackResponse.from_feedback(f) for f in items],
            total=len(items),
            average_rating=average,
        )
    )
