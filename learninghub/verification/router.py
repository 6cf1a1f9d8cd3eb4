"""Verification API endpoints.

Provides routes for:
- Signup, email verification and resend
- Password reset (forgot, reset)
- Email change (request, confirm)
- Sign-in codes (request, verify)
"""

from collections.abc import Callable
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from learninghub.auth.dependencies import CurrentUser
from learninghub.auth.router import handle_auth_error
from learninghub.auth.schemas import TokenResponse, UserResponse
from learninghub.auth.service import AuthError
from learninghub.core.rate_limit import RateLimitExceededError
from learninghub.core.responses import APIError, MessageResponse, SuccessResponse
from learninghub.email.service import EmailDeliveryError

from .schemas import (
    ConfirmEmailChangeRequest,
    ForgotPasswordRequest,
    LoginCodeRequest,
    RequestEmailChangeRequest,
    ResendVerificationRequest,
    ResetPasswordRequest,
    SignupRequest,
    SignupResponse,
    VerifiedUserResponse,
    VerifyEmailRequest,
    VerifyLoginCodeRequest,
)
from .service import AccountVerificationService
from .tokens import VerificationError


router = APIRouter(prefix="/v1/auth", tags=["verification"])


# ==============================================================================
# Dependency for AccountVerificationService
# ==============================================================================

_verification_service_getter: Callable[[], AccountVerificationService | None] | None = None


def set_verification_service_getter(
    getter: Callable[[], AccountVerificationService | None],
) -> None:
    """Set the verification service getter function (called by main.py)."""
    global _verification_service_getter  # noqa: PLW0603 - Required for DI pattern
    _verification_service_getter = getter


def get_verification_service() -> AccountVerificationService:
    service = _verification_service_getter() if _verification_service_getter else None
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Verification service unavailable",
        )
    return service


VerificationServiceDep = Annotated[
    AccountVerificationService, Depends(get_verification_service)
]


# ==============================================================================
# Error Handling
# ==============================================================================


def handle_verification_error(
    error: VerificationError | AuthError | RateLimitExceededError | EmailDeliveryError,
) -> HTTPException:
    """Convert flow errors to HTTP exceptions."""
    if isinstance(error, AuthError):
        return handle_auth_error(error)

    if isinstance(error, RateLimitExceededError):
        return APIError(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            message=error.message,
            code=error.code,
            headers={"Retry-After": str(error.retry_after)},
        )

    status_map = {
        "invalid_token": status.HTTP_400_BAD_REQUEST,
        "token_expired": status.HTTP_400_BAD_REQUEST,
        "validation_error": status.HTTP_400_BAD_REQUEST,
        "no_pending_verification": status.HTTP_404_NOT_FOUND,
        "already_verified": status.HTTP_409_CONFLICT,
        "upstream_failure": status.HTTP_500_INTERNAL_SERVER_ERROR,
    }
    return APIError(
        status_code=status_map.get(error.code, status.HTTP_400_BAD_REQUEST),
        message=error.message,
        code=error.code,
    )


FlowErrors = (VerificationError, AuthError, RateLimitExceededError, EmailDeliveryError)


# ==============================================================================
# Signup
# ==============================================================================


@router.post(
    "/signup",
    response_model=SuccessResponse[SignupResponse],
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"description": "Email already registered"},
        429: {"description": "Too many signup attempts"},
        500: {"description": "Verification email could not be sent"},
    },
)
async def signup(
    data: SignupRequest,
    service: VerificationServiceDep,
) -> SuccessResponse[SignupResponse]:
    """Start a signup; the account is created when the emailed link is used."""
    try:
        email = await service.signup(
            full_name=data.full_name,
            email=data.email,
            phone=data.phone,
            password=data.password,
        )
    except FlowErrors as e:
        raise handle_verification_error(e) from e

    return SuccessResponse(
        data=SignupResponse(email=email),
        message="Signup successful. Check your email to verify your account.",
    )


@router.post("/verify-email", response_model=SuccessResponse[VerifiedUserResponse])
async def verify_email(
    data: VerifyEmailRequest,
    service: VerificationServiceDep,
) -> SuccessResponse[VerifiedUserResponse]:
    try:
        user, created = await service.verify_email(data.email, data.token)
    except FlowErrors as e:
        raise handle_verification_error(e) from e

    return SuccessResponse(
        data=VerifiedUserResponse(user_id=user.id, email=user.email, created=created),
        message="Email verified successfully. You can now log in.",
    )


@router.post("/resend-verification", response_model=MessageResponse)
async def resend_verification(
    data: ResendVerificationRequest,
    service: VerificationServiceDep,
) -> MessageResponse:
    try:
        await service.resend_verification(data.email)
    except FlowErrors as e:
        raise handle_verification_error(e) from e

    return MessageResponse(message="A new verification link has been sent.")


# ==============================================================================
# Password reset
# ==============================================================================


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    data: ForgotPasswordRequest,
    service: VerificationServiceDep,
) -> MessageResponse:
    try:
        await service.request_password_reset(data.email)
    except FlowErrors as e:
        raise handle_verification_error(e) from e

    return MessageResponse(
        message="If an account exists for this email, a reset link has been sent."
    )


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    data: ResetPasswordRequest,
    service: VerificationServiceDep,
) -> MessageResponse:
    try:
        await service.reset_password(data.email, data.token, data.new_password)
    except FlowErrors as e:
        raise handle_verification_error(e) from e

    return MessageResponse(message="Password has been reset. You can now log in.")


# ==============================================================================
# Email change (authenticated)
# ==============================================================================


@router.post("/email/change", response_model=MessageResponse)
async def request_email_change(
    data: RequestEmailChangeRequest,
    current_user: CurrentUser,
    service: VerificationServiceDep,
) -> MessageResponse:
    try:
        await service.request_email_change(
            current_user.id, data.new_email, data.password
        )
    except FlowErrors as e:
        raise handle_verification_error(e) from e

    return MessageResponse(message="Check your new inbox to confirm the change.")


@router.post("/email/confirm", response_model=SuccessResponse[UserResponse])
async def confirm_email_change(
    data: ConfirmEmailChangeRequest,
    current_user: CurrentUser,
    service: VerificationServiceDep,
) -> SuccessResponse[UserResponse]:
    try:
        user = await service.confirm_email_change(current_user.id, data.token)
    except FlowErrors as e:
        raise handle_verification_error(e) from e

    return SuccessResponse(data=UserResponse.from_user(user), message="Email updated")


# ==============================================================================
# Sign-in codes
# ==============================================================================


@router.post(
    "/login/code",
    response_model=MessageResponse,
    responses={
        401: {"description": "Invalid credentials"},
        403: {"description": "Email not verified or account disabled"},
        429: {"description": "Too many code requests"},
    },
)
async def request_login_code(
    data: LoginCodeRequest,
    service: VerificationServiceDep,
) -> MessageResponse:
    try:
        await service.request_login_code(data.email, data.password)
    except FlowErrors as e:
        raise handle_verification_error(e) from e

    return MessageResponse(message="A sign-in code has been sent to your email.")


@router.post("/login/verify-code", response_model=SuccessResponse[TokenResponse])
async def verify_login_code(
    data: VerifyLoginCodeRequest,
    service: VerificationServiceDep,
) -> SuccessResponse[TokenResponse]:
    try:
        user = await service.verify_login_code(data.email, data.code)
    except FlowErrors as e:
        raise handle_verification_error(e) from e

    token, expires_in = service.auth_service.issue_access_token(user)
    return SuccessResponse(
        data=TokenResponse(
            access_token=token,
            expires_in=expires_in,
            user=UserResponse.from_user(user),
        ),
        message="Login successful",
    )
