from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from auth_service.app.main import create_app
from auth_service.app.models.session import Namespace
from auth_service.app.models.user import Role, User
from auth_service.app.services.auth_service import get_user_repository, new_user_code
from auth_service.app.services.passwords import PasswordHasher
from auth_service.app.sessions.manager import SessionManager
from auth_service.tests.fakes import (
    InMemorySessionStore,
    InMemoryUserRepository,
    build_app_config,
)


@dataclass
class AuthHarness:
    client: TestClient
    users: InMemoryUserRepository
    stores: dict[Namespace, InMemorySessionStore]
    manager: SessionManager
    hasher: PasswordHasher

    def add_user(
        self,
        email: str,
        password: str = "secret123",
        role: Role = Role.USER,
        is_active: bool = True,
    ) -> User:
        now = datetime.now(timezone.utc)
        return self.users.insert(
            User(
                user_code=new_user_code(),
                email=email,
                password_hash=self.hasher.hash(password),
                first_name="Test",
                last_name=role.value.title(),
                role=role,
                is_active=is_active,
                created_at=now,
                updated_at=now,
            )
        )

    def session_id_from_cookie(self, name: str) -> str:
        signed = self.client.cookies.get(name)
        assert signed, f"cookie {name} is not set"
        return signed.rsplit(".", 1)[0]


@pytest.fixture()
def harness() -> AuthHarness:
    config = build_app_config()
    stores = {Namespace.USER: InMemorySessionStore(), Namespace.ADMIN: InMemorySessionStore()}
    manager = SessionManager(config.session, stores)
    hasher = PasswordHasher(rounds=4)
    users = InMemoryUserRepository()

    app = create_app(config, session_manager=manager, password_hasher=hasher)
    app.dependency_overrides[get_user_repository] = lambda: users

    return AuthHarness(
        client=TestClient(app),
        users=users,
        stores=stores,
        manager=manager,
        hasher=hasher,
    )
