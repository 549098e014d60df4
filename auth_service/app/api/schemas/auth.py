from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from common.types.datetime import UtcDateTime

from ...models.user import UserProfile, normalize_email
from ...services.passwords import MAX_PASSWORD_BYTES


MIN_PASSWORD_LENGTH = 6


def _normalize_email(value: Any) -> Any:
    # 형식 검사는 EmailStr 이 한다. 여기서는 trim + 소문자만 맞춘다.
    if isinstance(value, str):
        return normalize_email(value)
    return value


def _validate_optional_name(value: str | None, label: str) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    if not stripped:
        raise ValueError(f"{label} cannot be empty")
    return stripped


class SignupRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr
    password: str
    first_name: str | None = Field(default=None, alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")
    # 받기만 하고 사용하지 않는다. "admin" 이면 403 으로 거절한다.
    role: str | None = None

    @field_validator("email", mode="before")
    @classmethod
    def _email(cls, value: Any) -> Any:
        return _normalize_email(value)

    @field_validator("password")
    @classmethod
    def _password(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        return value

    @field_validator("first_name")
    @classmethod
    def _first_name(cls, value: str | None) -> str | None:
        return _validate_optional_name(value, "First name")

    @field_validator("last_name")
    @classmethod
    def _last_name(cls, value: str | None) -> str | None:
        return _validate_optional_name(value, "Last name")


class LoginRequest(BaseModel):
    email: EmailStr
    password: str

    @field_validator("email", mode="before")
    @classmethod
    def _email(cls, value: Any) -> Any:
        return _normalize_email(value)

    @field_validator("password")
    @classmethod
    def _password(cls, value: str) -> str:
        if not value:
            raise ValueError("Password is required")
        return value


class UserResponse(BaseModel):
    """credential 해시를 제외한 유저 응답. 프론트엔드 호환을 위해 camelCase 로 직렬화한다."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    email: str
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    role: str
    is_active: bool = Field(alias="isActive")
    created_at: UtcDateTime = Field(alias="createdAt")
    updated_at: UtcDateTime = Field(alias="updatedAt")

    @classmethod
    def from_domain(cls, user: UserProfile) -> "UserResponse":
        return cls(
            id=user.user_code,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role.value,
            is_active=user.is_active,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class AuthUserResponse(BaseModel):
    success: bool = True
    message: str
    user: UserResponse


class CurrentUserResponse(BaseModel):
    success: bool = True
    user: UserResponse


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class AuthStatusResponse(BaseModel):
    authenticated: bool
    user: UserResponse | None = None


class ListUsersResponse(BaseModel):
    success: bool = True
    count: int
    users: list[UserResponse]


class SessionCookieInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    http_only: bool = Field(alias="httpOnly")
    secure: bool
    same_site: str = Field(alias="sameSite")
    path: str
    max_age: int = Field(alias="maxAge")
    expires: UtcDateTime


class SessionPrincipalInfo(BaseModel):
    id: str
    email: str
    role: str


class SessionCheckInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    namespace: str
    cookie_name: str = Field(alias="cookieName")
    session_id: str = Field(alias="sessionId")
    is_new: bool = Field(alias="isNew")
    is_authenticated: bool = Field(alias="isAuthenticated")
    degraded: bool
    user: SessionPrincipalInfo | None = None
    cookie_options: SessionCookieInfo = Field(alias="cookieOptions")
    received_cookies: list[str] = Field(alias="receivedCookies")
    production: bool
    timestamp: UtcDateTime


class SessionCheckResponse(BaseModel):
    success: bool = True
    message: str = "Session check completed"
    session: SessionCheckInfo
