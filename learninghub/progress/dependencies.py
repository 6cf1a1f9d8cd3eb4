"""FastAPI dependencies for enrollment and progress."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from learninghub.core.responses import APIError
from learninghub.progress.service import ProgressError, ProgressService


async def get_progress_service(request: Request) -> ProgressService:
    service = getattr(request.app.state, "progress_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Progress service unavailable",
        )
    return service


ProgressServiceDep = Annotated[ProgressService, Depends(get_progress_service)]


def handle_progress_error(error: ProgressError) -> HTTPException:
    status_map = {
        "not_enrolled": status.HTTP_403_FORBIDDEN,
        "user_not_found": status.HTTP_404_NOT_FOUND,
        "course_not_found": status.HTTP_404_NOT_FOUND,
    }
    return APIError(
        status_code=status_map.get(error.code, status.HTTP_400_BAD_REQUEST),
        message=error.message,
        code=error.code,
    )
