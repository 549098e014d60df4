"""인증 상태 머신 (anonymous ↔ authenticated).

세션 namespace(user/admin) 마다 독립된 상태 머신이 돌며, 상태는 세션 payload 의
auth_identity 유무로만 표현된다. 로그인/회원가입은 success 응답 전에 세션 저장을
끝내야 한다. 그렇지 않으면 바로 다음 요청에서 쿠키가 인증 세션으로 풀리지 않는다.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import uuid4

from fastapi import Depends, Request
from pymongo.database import Database

from common.logger import short_session_id
from common.mongo.client import get_database
from common.types.datetime import utcnow

from ..exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StoreUnavailableError,
    UnauthorizedError,
)
from ..models.session import Namespace, Session
from ..models.user import Role, SignupInput, User, UserProfile, normalize_email
from ..repositories.interfaces import UserRepositoryInterface
from ..repositories.user_repository import UserRepository
from ..sessions.manager import SessionManager
from .passwords import PasswordHasher


logger = logging.getLogger(__name__)


INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"


@dataclass(slots=True)
class AuthStatus:
    authenticated: bool
    user: UserProfile | None = None


def new_user_code() -> str:
    return f"local:{uuid4()}"


class AuthService:
    """회원가입/로그인/로그아웃/현재 principal 조회를 담당하는 서비스.

    - UserRepositoryInterface 와 SessionManager 에만 의존한다.
    - session 인자는 SessionMiddleware 가 request.state 에 붙인 세션이다.
    """

    def __init__(
        self,
        user_repo: UserRepositoryInterface,
        session_manager: SessionManager,
        hasher: PasswordHasher,
    ) -> None:
        self._user_repo = user_repo
        self._sessions = session_manager
        self._hasher = hasher

    # -------- transitions --------

    def signup(
        self,
        session: Session,
        input_model: SignupInput,
        requested_role: str | None = None,
    ) -> UserProfile:
        self._ensure_usable(session)

        # 이 엔드포인트로는 admin 계정을 만들 수 없다. role 은 항상 user 로 강제한다.
        if requested_role is not None and requested_role.strip().lower() == Role.ADMIN.value:
            raise ForbiddenError("Cannot create admin accounts through this endpoint")

        email = normalize_email(input_model.email)
        if self._user_repo.find_by_email(email) is not None:
            raise ConflictError("User with this email already exists")

        now = utcnow()
        user = User(
            user_code=new_user_code(),
            email=email,
            password_hash=self._hasher.hash(input_model.password),
            first_name=input_model.first_name,
            last_name=input_model.last_name,
            role=Role.USER,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        created = self._user_repo.insert(user)

        self._establish(session, created)
        return UserProfile.from_user(created)

    def login(
        self,
        session: Session,
        email: str,
        password: str,
        namespace: Namespace,
    ) -> UserProfile:
        """namespace 는 호출된 엔드포인트 기준이다. 세션은 요청이 분류된 쪽에 그대로 쓴다."""

        self._ensure_usable(session)

        user = self._verify_credentials(email, password)

        if namespace is Namespace.USER and user.is_admin:
            self._terminate(session)
            raise ForbiddenError(
                "Admin accounts cannot login through this endpoint. Please use the admin panel."
            )
        if namespace is Namespace.ADMIN and not user.is_admin:
            self._terminate(session)
            raise ForbiddenError("Access denied. Admin privileges required.")

        self._establish(session, user)
        return UserProfile.from_user(user)

    def logout(self, session: Session) -> None:
        """해당 namespace 세션만 삭제한다. 다른 namespace 세션에는 영향을 주지 않는다."""

        self._ensure_usable(session)
        self._sessions.destroy(session)
        logger.info(
            "principal logged out",
            extra={
                "namespace": str(session.namespace),
                "session_id": short_session_id(session.session_id),
            },
        )

    # -------- queries --------

    def current_principal(self, session: Session) -> UserProfile:
        """세션의 principal 을 저장소에서 다시 조회한다(세션에 캐시된 스냅샷은 믿지 않는다)."""

        if session.degraded:
            raise StoreUnavailableError()
        if session.principal_id is None:
            raise UnauthorizedError("Not authenticated")

        user = self._user_repo.find_by_user_code(session.principal_id)
        if user is None:
            raise NotFoundError("User not found")
        return UserProfile.from_user(user)

    def status(self, session: Session, namespace: Namespace) -> AuthStatus:
        """엔드포인트 namespace 기준 인증 상태. 요청이 어느 세션으로 분류됐는지는 보지 않는다.

        - user: admin principal 은 항상 인증되지 않은 것으로 보고한다.
        - admin: admin principal 일 때만 인증으로 본다.
        """

        if session.degraded or session.principal_id is None:
            return AuthStatus(authenticated=False)

        user = self._user_repo.find_by_user_code(session.principal_id)
        if user is None:
            return AuthStatus(authenticated=False)

        if namespace is Namespace.USER and user.is_admin:
            return AuthStatus(authenticated=False)
        if namespace is Namespace.ADMIN and not user.is_admin:
            return AuthStatus(authenticated=False)

        return AuthStatus(authenticated=True, user=UserProfile.from_user(user))

    def require_admin(self, session: Session) -> UserProfile:
        """admin namespace 세션이면서 principal 이 admin 이어야 통과한다."""

        profile = self.current_principal(session)
        if session.namespace is not Namespace.ADMIN or not profile.is_admin:
            raise ForbiddenError("Admin access required")
        return profile

    def require_admin_or_owner(self, session: Session, user_code: str) -> UserProfile:
        profile = self.current_principal(session)
        if session.namespace is Namespace.ADMIN and profile.is_admin:
            return profile
        if profile.user_code == user_code:
            return profile
        raise ForbiddenError("Access denied")

    # -------- helpers --------

    def _verify_credentials(self, email: str, password: str) -> User:
        # "없는 유저" 와 "비밀번호 불일치" 를 응답에서 구분하지 않는다.
        user = self._user_repo.find_by_email(normalize_email(email))
        if user is None:
            raise UnauthorizedError(INVALID_CREDENTIALS_MESSAGE)
        if not self._hasher.verify(password, user.password_hash):
            raise UnauthorizedError(INVALID_CREDENTIALS_MESSAGE)
        if not user.is_active:
            raise UnauthorizedError(INVALID_CREDENTIALS_MESSAGE)
        return user

    def _establish(self, session: Session, user: User) -> None:
        self._sessions.regenerate(session)
        session.authenticate(user.user_code, self._sessions.now())
        # success 응답 전에 저장을 끝낸다.
        self._sessions.save(session)
        logger.info(
            "principal authenticated",
            extra={
                "namespace": str(session.namespace),
                "session_id": short_session_id(session.session_id),
            },
        )

    def _terminate(self, session: Session) -> None:
        self._sessions.destroy(session)

    @staticmethod
    def _ensure_usable(session: Session) -> None:
        if session.degraded:
            raise StoreUnavailableError()


def get_user_repository(
    db: Database = Depends(get_database),
) -> UserRepositoryInterface:
    """FastAPI DI용 UserRepository 팩토리."""

    return UserRepository(db)


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def get_password_hasher(request: Request) -> PasswordHasher:
    return request.app.state.password_hasher


def get_auth_service(
    user_repo: UserRepositoryInterface = Depends(get_user_repository),
    session_manager: SessionManager = Depends(get_session_manager),
    hasher: PasswordHasher = Depends(get_password_hasher),
) -> AuthService:
    """FastAPI DI용 AuthService 팩토리."""

    return AuthService(user_repo=user_repo, session_manager=session_manager, hasher=hasher)
