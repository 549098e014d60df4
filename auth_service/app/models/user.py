from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


def normalize_email(value: str) -> str:
    """이메일은 대소문자를 구분하지 않으므로 trim + 소문자로 정규화해 저장/조회한다."""

    return value.strip().lower()


class User(BaseModel):
    """유저(Principal) 도메인 모델.

    - Mongo users 컬렉션과 1:1로 매핑된다.
    - 내부 식별자는 user_code("local:<uuid>")로 관리하며, 세션에는 이 값만 저장한다.
    - password_hash 는 bcrypt 해시이며 응답/세션 어디에도 노출하지 않는다.
    """

    user_code: str
    email: str
    password_hash: str
    first_name: str = ""
    last_name: str = ""
    role: Role = Role.USER
    is_active: bool = True
    created_at: datetime
    updated_at: datetime

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return normalize_email(value)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class UserProfile(BaseModel):
    """credential 해시를 제외한 유저 조회 모델."""

    user_code: str
    email: str
    first_name: str
    last_name: str
    role: Role
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserProfile":
        return cls(
            user_code=user.user_code,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role,
            is_active=user.is_active,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class SignupInput(BaseModel):
    """회원가입 입력 모델. role 은 받지 않으며 항상 user 로 생성된다."""

    email: str
    password: str = Field(repr=False)
    first_name: str = ""
    last_name: str = ""
