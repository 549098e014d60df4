from __future__ import annotations

from collections.abc import Iterator
from datetime import timedelta
from typing import Any, Protocol

from ..models.user import Role, User


class UserRepositoryInterface(Protocol):
    """UserRepository가 따라야 할 최소한의 계약.

    Service 레이어는 이 인터페이스에만 의존하고, 구체 구현(Mongo 등)은 몰라도 된다.
    email 인자는 항상 정규화(소문자)된 값이 넘어온다.
    """

    def find_by_email(self, email: str) -> User | None:  # pragma: no cover - Protocol
        ...

    def find_by_user_code(
        self, user_code: str
    ) -> User | None:  # pragma: no cover - Protocol
        ...

    def insert(self, user: User) -> User:  # pragma: no cover - Protocol
        """새 유저를 저장한다. 같은 email 이 이미 있으면 ConflictError 를 던진다."""
        ...

    def update_role(
        self, user_code: str, role: Role
    ) -> User:  # pragma: no cover - Protocol
        ...

    def list_by_role(self, role: Role) -> list[User]:  # pragma: no cover - Protocol
        """role 이 일치하는 유저를 최신 가입 순으로 반환한다."""
        ...


class SessionStoreInterface(Protocol):
    """namespace 하나에 대응하는 세션 저장소 계약.

    - get 은 저장된 payload 를 가공 없이 그대로 돌려준다(구조 검증은 sanitizer 책임).
    - 드라이버 오류는 StoreUnavailableError 로 변환해 던진다.
    """

    def get(self, session_id: str) -> Any | None:  # pragma: no cover - Protocol
        ...

    def set(
        self, session_id: str, payload: dict[str, Any], ttl: timedelta
    ) -> None:  # pragma: no cover - Protocol
        ...

    def destroy(self, session_id: str) -> None:  # pragma: no cover - Protocol
        ...

    def iter_records(
        self,
    ) -> Iterator[tuple[str, Any]]:  # pragma: no cover - Protocol
        """(session_id, raw payload) 를 순회한다. 운영 점검 CLI 전용."""
        ...
