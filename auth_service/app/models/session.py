"""세션 도메인 모델.

세션은 namespace(user/admin) 별로 완전히 독립된 트랙이다. namespace 는 레코드가
저장된 컬렉션으로만 구분되며 레코드 필드로는 저장하지 않는다.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from common.mongo.types import MongoDateTime


class Namespace(str, Enum):
    USER = "user"
    ADMIN = "admin"

    def __str__(self) -> str:
        return self.value


class SessionCookie(BaseModel):
    """세션 레코드에 함께 저장되는 쿠키 descriptor.

    expires 가 없거나 datetime 이 아닌 레코드는 손상된 것으로 간주한다.
    """

    original_max_age: int  # seconds
    expires: MongoDateTime
    http_only: bool = True
    secure: bool = False
    same_site: str = "lax"
    path: str = "/"


class AuthIdentity(BaseModel):
    """로그인에 성공한 principal 의 식별자. 없으면 anonymous 세션이다."""

    user_code: str
    authenticated_at: MongoDateTime


class SessionPayload(BaseModel):
    """세션 저장소에 저장되는 payload."""

    cookie: SessionCookie
    auth_identity: AuthIdentity | None = None
    last_access: MongoDateTime | None = None
    data: dict[str, Any] = Field(default_factory=dict)


@dataclass
class Session:
    """요청 처리 동안 request.state.session 에 붙는 mutable 세션.

    - is_new: 이번 요청에서 새로 발급된 세션
    - destroyed: logout 등으로 저장소에서 삭제됨. 응답에서 쿠키를 지운다.
    - degraded: 저장소 장애로 로드하지 못해 임시로 만든 세션. 저장/쿠키 발급을 하지 않는다.
    """

    session_id: str
    namespace: Namespace
    cookie: SessionCookie
    auth_identity: AuthIdentity | None = None
    last_access: datetime | None = None
    data: dict[str, Any] = field(default_factory=dict)
    is_new: bool = False
    destroyed: bool = False
    degraded: bool = False

    @classmethod
    def from_payload(
        cls, session_id: str, namespace: Namespace, payload: SessionPayload
    ) -> "Session":
        return cls(
            session_id=session_id,
            namespace=namespace,
            cookie=payload.cookie,
            auth_identity=payload.auth_identity,
            last_access=payload.last_access,
            data=dict(payload.data),
        )

    @property
    def is_authenticated(self) -> bool:
        return self.auth_identity is not None

    @property
    def principal_id(self) -> str | None:
        if self.auth_identity is None:
            return None
        return self.auth_identity.user_code

    @property
    def expires(self) -> datetime:
        return self.cookie.expires

    def authenticate(self, user_code: str, now: datetime) -> None:
        self.auth_identity = AuthIdentity(user_code=user_code, authenticated_at=now)

    def clear_identity(self) -> None:
        self.auth_identity = None

    def touch(self, now: datetime, max_age: timedelta) -> None:
        """rolling 만료: 발급 시점이 아니라 now 기준으로 만료를 연장한다."""

        self.last_access = now
        self.cookie = self.cookie.model_copy(
            update={
                "expires": now + max_age,
                "original_max_age": int(max_age.total_seconds()),
            }
        )

    def to_payload(self) -> SessionPayload:
        return SessionPayload(
            cookie=self.cookie,
            auth_identity=self.auth_identity,
            last_access=self.last_access,
            data=dict(self.data),
        )
