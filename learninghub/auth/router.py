"""Account API endpoints.

Provides routes for:
- Login
- Current user profile
- Admin user management
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from learninghub.auth.dependencies import AdminUser, AuthServiceDep, CurrentUser
from learninghub.auth.models import UserStatus
from learninghub.auth.schemas import (
    AdminCreateUserRequest,
    LoginRequest,
    TokenResponse,
    UpdateProfileRequest,
    UpdateUserStatusRequest,
    UserListResponse,
    UserResponse,
)
from learninghub.auth.security import hash_password
from learninghub.auth.service import AuthError
from learninghub.core.responses import APIError, MessageResponse, SuccessResponse


router = APIRouter(prefix="/v1/auth", tags=["auth"])
users_router = APIRouter(prefix="/v1/users", tags=["users"])
admin_router = APIRouter(prefix="/v1/admin/users", tags=["admin"])


def handle_auth_error(error: AuthError) -> HTTPException:
    """Convert AuthError to HTTPException."""
    status_map = {
        "invalid_credentials": status.HTTP_401_UNAUTHORIZED,
        "email_not_verified": status.HTTP_403_FORBIDDEN,
        "account_disabled": status.HTTP_403_FORBIDDEN,
        "permission_denied": status.HTTP_403_FORBIDDEN,
        "user_not_found": status.HTTP_404_NOT_FOUND,
        "user_exists": status.HTTP_409_CONFLICT,
    }
    return APIError(
        status_code=status_map.get(error.code, status.HTTP_400_BAD_REQUEST),
        message=error.message,
        code=error.code,
    )


# ==============================================================================
# Login
# ==============================================================================


@router.post(
    "/login",
    response_model=SuccessResponse[TokenResponse],
    summary="User login",
    responses={
        401: {"description": "Invalid credentials"},
        403: {"description": "Email not verified or account disabled"},
    },
)
async def login(
    data: LoginRequest,
    auth_service: AuthServiceDep,
) -> SuccessResponse[TokenResponse]:
    try:
        user = await auth_service.authenticate_user(data.email, data.password)
    except AuthError as e:
        raise handle_auth_error(e) from e

    token, expires_in = auth_service.issue_access_token(user)
    return SuccessResponse(
        data=TokenResponse(
            access_token=token,
            expires_in=expires_in,
            user=UserResponse.from_user(user),
        ),
        message="Login successful",
    )


# ==============================================================================
# Current user
# ==============================================================================


@users_router.get("/me", response_model=SuccessResponse[UserResponse])
async def get_me(
    current_user: CurrentUser,
    auth_service: AuthServiceDep,
) -> SuccessResponse[UserResponse]:
    try:
        user = await auth_service.require_user(current_user.id)
    except AuthError as e:
        raise handle_auth_error(e) from e
    return SuccessResponse(data=UserResponse.from_user(user))


@users_router.put("/me", response_model=SuccessResponse[UserResponse])
async def update_me(
    data: UpdateProfileRequest,
    current_user: CurrentUser,
    auth_service: AuthServiceDep,
) -> SuccessResponse[UserResponse]:
    try:
        user = await auth_service.update_profile(
            current_user.id,
            full_name=data.full_name,
            phone=data.phone,
        )
    except AuthError as e:
        raise handle_auth_error(e) from e
    return SuccessResponse(
        data=UserResponse.from_user(user), message="Profile updated"
    )


# ==============================================================================
# Admin
# ==============================================================================


@admin_router.get("", response_model=SuccessResponse[UserListResponse])
async def list_users(
    _admin: AdminUser,
    auth_service: AuthServiceDep,
    status_filter: UserStatus | None = Query(None, alias="status"),
) -> SuccessResponse[UserListResponse]:
    users = await auth_service.list_users(status_filter)
    return SuccessResponse(
        data=UserListResponse(
            items=[UserResponse.from_user(u) for u in users],
            total=len(users),
        )
    )


@admin_router.post(
    "",
    response_model=SuccessResponse[UserResponse],
    status_code=status.HTTP_201_CREATED,
)
async def admin_create_user(
    data: AdminCreateUserRequest,
    _admin: AdminUser,
    auth_service: AuthServiceDep,
) -> SuccessResponse[UserResponse]:
    try:
        user = await auth_service.admin_create_user(
            email=data.email,
            full_name=data.full_name,
            phone=data.phone,
            password_hash=hash_password(data.password),
            role=data.role,
        )
    except AuthError as e:
        raise handle_auth_error(e) from e
    return SuccessResponse(data=UserResponse.from_user(user), message="User created")


@admin_router.patch("/{user_id}/status", response_model=SuccessResponse[UserResponse])
async def update_user_status(
    user_id: UUID,
    data: UpdateUserStatusRequest,
    admin: AdminUser,
    auth_service: AuthServiceDep,
) -> SuccessResponse[UserResponse]:
    if user_id == admin.id:
        raise APIError(
            status_code=status.HTTP_400_BAD_REQUEST,
            message="Administrators cannot change their own status",
            code="validation_error",
        )
    try:
        user = await auth_service.set_status(user_id, data.status)
    except AuthError as e:
        raise handle_auth_error(e) from e
    return SuccessResponse(data=UserResponse.from_user(user))


@admin_router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: UUID,
    admin: AdminUser,
    auth_service: AuthServiceDep,
) -> MessageResponse:
    if user_id == admin.id:
        raise APIError(
            status_code=status.HTTP_400_BAD_REQUEST,
            message="Administrators cannot delete their own account",
            code="validation_error",
        )
    try:
        await auth_service.delete_user(user_id)
    except AuthError as e:
        raise handle_auth_error(e) from e
    return MessageResponse(message="User deleted")
