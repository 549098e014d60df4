from __future__ import annotations

import logging

from fastapi import Depends

from common.types.datetime import utcnow

from ..exceptions import NotFoundError
from ..models.user import Role, User, UserProfile, normalize_email
from ..repositories.interfaces import UserRepositoryInterface
from .auth_service import get_password_hasher, get_user_repository, new_user_code
from .passwords import PasswordHasher


logger = logging.getLogger(__name__)


class UsersService:
    """유저 조회 및 admin 프로비저닝 비즈니스 로직.

    - Repository(UserRepositoryInterface)에만 의존하고, Mongo 세부 구현은 알지 않는다.
    """

    def __init__(self, user_repo: UserRepositoryInterface, hasher: PasswordHasher) -> None:
        self._user_repo = user_repo
        self._hasher = hasher

    def list_regular_users(self) -> list[UserProfile]:
        """role=user 인 유저만 최신 가입 순으로 반환한다(admin 은 제외)."""

        users = self._user_repo.list_by_role(Role.USER)
        return [UserProfile.from_user(u) for u in users]

    def get_profile(self, user_code: str) -> UserProfile:
        user = self._user_repo.find_by_user_code(user_code)
        if user is None:
            raise NotFoundError("User not found")
        return UserProfile.from_user(user)

    def provision_admin(
        self,
        email: str,
        password: str,
        first_name: str = "Admin",
        last_name: str = "User",
    ) -> tuple[UserProfile, bool]:
        """admin 계정을 만들거나, 같은 이메일의 기존 유저를 admin 으로 승격한다.

        Returns:
            (프로필, 새로 생성했는지 여부)
        """

        normalized = normalize_email(email)
        existing = self._user_repo.find_by_email(normalized)
        if existing is not None:
            if existing.is_admin:
                logger.info("admin user already exists (email=%s)", normalized)
                return UserProfile.from_user(existing), False
            promoted = self._user_repo.update_role(existing.user_code, Role.ADMIN)
            logger.info("promoted existing user to admin (email=%s)", normalized)
            return UserProfile.from_user(promoted), False

        now = utcnow()
        user = User(
            user_code=new_user_code(),
            email=normalized,
            password_hash=self._hasher.hash(password),
            first_name=first_name,
            last_name=last_name,
            role=Role.ADMIN,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        created = self._user_repo.insert(user)
        logger.info("created admin user (email=%s)", normalized)
        return UserProfile.from_user(created), True


def get_users_service(
    user_repo: UserRepositoryInterface = Depends(get_user_repository),
    hasher: PasswordHasher = Depends(get_password_hasher),
) -> UsersService:
    """FastAPI DI용 UsersService 팩토리."""

    return UsersService(user_repo=user_repo, hasher=hasher)
