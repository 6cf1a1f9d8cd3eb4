"""Pydantic schemas for accounts, login and admin user management."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from learninghub.auth.models import UserStatus
from learninghub.auth.permissions import UserRole
from learninghub.auth.validators import validate_password, validate_phone


if TYPE_CHECKING:
    from learninghub.auth.models import User


def _check_phone(v: str) -> str:
    result = validate_phone(v)
    if not result.valid:
        raise ValueError(result.message or "Invalid phone number")
    return result.formatted or v


def _check_password(v: str) -> str:
    result = validate_password(v)
    if not result.valid:
        raise ValueError(result.message or "Invalid password")
    return v


# ==============================================================================
# Request Schemas
# ==============================================================================


class LoginRequest(BaseModel):
    email: EmailStr = Field(..., description="Email address")
    password: str = Field(..., min_length=1, description="Password")


class UpdateProfileRequest(BaseModel):
    """Profile update; omitted fields are left unchanged."""

    full_name: str | None = Field(None, min_length=2, max_length=100)
    phone: str | None = Field(None)

    @field_validator("phone")
    @classmethod
    def validate_phone_format(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return _check_phone(v)

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if not v:
            msg = "Full name is required"
            raise ValueError(msg)
        return v


class AdminCreateUserRequest(BaseModel):
    """Account created by an administrator (already verified)."""

    full_name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    phone: str = Field(...)
    password: str = Field(...)
    role: UserRole = Field(default=UserRole.USER)

    @field_validator("phone")
    @classmethod
    def validate_phone_format(cls, v: str) -> str:
        return _check_phone(v)

    @field_validator("password")
    @classmethod
    def validate_password_strength(cls, v: str) -> str:
        return _check_password(v)

    @field_validator("full_name")
    @classmethod
    def strip_full_name(cls, v: str) -> str:
        return v.strip()


class UpdateUserStatusRequest(BaseModel):
    status: UserStatus


# ==============================================================================
# Response Schemas
# ==============================================================================


class UserResponse(BaseModel):
    """Public view of an account."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    full_name: str
    phone: str | None = None
    role: str
    status: str
    email_verified: bool
    enrolled_courses: list[UUID] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_user(cls, user: "User") -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            phone=user.phone or None,
            role=user.role,
            status=user.status,
            email_verified=user.email_verified,
            enrolled_courses=sorted(user.enrolled_courses, key=str),
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class CurrentUserClaims(BaseModel):
    """Identity carried by a validated access token."""

    id: UUID
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int = Field(..., description="Token lifetime in seconds")
    user: UserResponse


class UserListResponse(BaseModel):
    items: list[UserResponse]
    total: int
