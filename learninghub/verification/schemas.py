"""Pydantic schemas for signup verification, password reset and email change."""

from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from learninghub.auth.validators import validate_password, validate_phone


class SignupRequest(BaseModel):
    full_name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    phone: str
    password: str

    @field_validator("full_name")
    @classmethod
    def strip_full_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            msg = "Full name is required"
            raise ValueError(msg)
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone_format(cls, v: str) -> str:
        result = validate_phone(v)
        if not result.valid:
            raise ValueError(result.message or "Invalid phone number")
        return result.formatted or v

    @field_validator("password")
    @classmethod
    def validate_password_strength(cls, v: str) -> str:
        result = validate_password(v)
        if not result.valid:
            raise ValueError(result.message or "Invalid password")
        return v


class VerifyEmailRequest(BaseModel):
    email: EmailStr
    token: str = Field(..., min_length=1, max_length=256)

    @field_validator("token")
    @classmethod
    def strip_token(cls, v: str) -> str:
        return v.strip()


class ResendVerificationRequest(BaseModel):
    email: EmailStr


class ForgotPasswordRequest(BaseModel):
    """Always answered with the same message, whether or not the email exists."""

    email: EmailStr


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    token: str = Field(..., min_length=1, max_length=256)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def validate_password_strength(cls, v: str) -> str:
        result = validate_password(v)
        if not result.valid:
            raise ValueError(result.message or "Invalid password")
        return v


class RequestEmailChangeRequest(BaseModel):
    new_email: EmailStr
    password: str = Field(..., min_length=1)


class ConfirmEmailChangeRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=256)


class LoginCodeRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class VerifyLoginCodeRequest(BaseModel):
    email: EmailStr
    code: str = Field(..., pattern=r"^\s*\d{6}\s*$")

    @field_validator("code")
    @classmethod
    def strip_code(cls, v: str) -> str:
        return v.strip()


class SignupResponse(BaseModel):
    email: str = Field(..., description="Address the verification link was sent to")


class VerifiedUserResponse(BaseModel):
    user_id: UUID
    email: str
    created: bool = Field(..., description="False when the account already existed")
