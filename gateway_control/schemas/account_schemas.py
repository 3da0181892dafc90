"""
Pydantic schemas for tenant accounts, registration and login.
"""

import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..constants import Limits
from ..enums import SubscriptionPlan, SubscriptionStatus, UserRole
from ..exceptions import ErrorCode, ValidationError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _check_email(value: str, field: str = "email") -> str:
    value = value.strip().lower()
    if not EMAIL_PATTERN.match(value):
        raise ValidationError(
            "Invalid email address",
            error_code=ErrorCode.INVALID_FORMAT,
            field=field,
            value=value,
        )
    return value


def _check_password(value: str, field: str = "password") -> str:
    if len(value) < Limits.MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {Limits.MIN_PASSWORD_LENGTH} characters",
            error_code=ErrorCode.VALIDATION_FAILED,
            field=field,
        )
    return value


class RegisterRequest(BaseModel):
    """
    Self-service registration payload.
    """

    email: str = Field(min_length=1, max_length=255)
    handle: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1)
    confirm_password: str = Field(min_length=1)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    @field_validator("email")
    def validate_email(cls, v: str) -> str:
        return _check_email(v)

    @field_validator("handle")
    def validate_handle(cls, v: str) -> str:
        if not Limits.MIN_HANDLE_LENGTH <= len(v) <= Limits.MAX_HANDLE_LENGTH:
            raise ValidationError(
                f"Handle must be between {Limits.MIN_HANDLE_LENGTH} and "
                f"{Limits.MAX_HANDLE_LENGTH} characters",
                error_code=ErrorCode.VALIDATION_FAILED,
                field="handle",
                value=v,
            )
        return v

    @field_validator("password")
    def validate_password(cls, v: str) -> str:
        return _check_password(v)

    @model_validator(mode="after")
    def passwords_match(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValidationError(
                "Passwords do not match",
                error_code=ErrorCode.VALIDATION_FAILED,
                field="confirm_password",
            )
        return self


class LoginRequest(BaseModel):
    """Login by email or handle."""

    identifier: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1)

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class EmailRequest(BaseModel):
    """Payload carrying only an email address (resend, forgot password)."""

    email: str = Field(min_length=1, max_length=255)

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    @field_validator("email")
    def validate_email(cls, v: str) -> str:
        return _check_email(v)


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=1)
    confirm_password: str = Field(min_length=1)

    model_config = ConfigDict(extra="ignore")

    @field_validator("password")
    def validate_password(cls, v: str) -> str:
        return _check_password(v)

    @model_validator(mode="after")
    def passwords_match(self) -> "ResetPasswordRequest":
        if self.password != self.confirm_password:
            raise ValidationError(
                "Passwords do not match",
                error_code=ErrorCode.VALIDATION_FAILED,
                field="confirm_password",
            )
        return self


class RoleUpdateRequest(BaseModel):
    role: UserRole


class ExternalIdentityClaims(BaseModel):
    """Claims yielded by the third-party identity provider."""

    sub: str = Field(min_length=1)
    email: str = Field(min_length=1)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("email")
    def validate_email(cls, v: str) -> str:
        return _check_email(v)


class AccountRead(BaseModel):
    """Account as shown to administrators. Never carries secrets."""

    id: str
    email: str
    handle: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    role: UserRole
    email_verified: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SubscriptionSummary(BaseModel):
    plan: SubscriptionPlan
    status: SubscriptionStatus
    expires_at: Optional[datetime] = None


class SessionUser(BaseModel):
    """The live account behind a session, as returned to its owner."""

    id: str
    email: str
    handle: Optional[str] = None
    role: UserRole
    api_secret: Optional[str] = None
    subscription: Optional[SubscriptionSummary] = None


class LoginResult(BaseModel):
    token: str
    user: SessionUser


class RegistrationResult(BaseModel):
    id: str
    email: str
    handle: str
    email_sent: bool
