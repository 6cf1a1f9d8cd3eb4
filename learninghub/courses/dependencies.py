"""FastAPI dependencies for the course catalog."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from learninghub.core.responses import APIError
from learninghub.courses.service import CourseError, CourseService


async def get_course_service(request: Request) -> CourseService:
    service = getattr(request.app.state, "course_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Course service unavailable",
        )
    return service


CourseServiceDep = Annotated[CourseService, Depends(get_course_service)]


def handle_course_error(error: CourseError) -> HTTPException:
    """Convert course errors to HTTPException."""
    status_map = {
        "course_not_found": status.HTTP_404_NOT_FOUND,
        "validation_error": status.HTTP_400_BAD_REQUEST,
        "upstream_failure": status.HTTP_502_BAD_GATEWAY,
    }
    return APIError(
        status_code=status_map.get(error.code, status.HTTP_400_BAD_REQUEST),
        message=error.message,
        code=error.code,
    )
