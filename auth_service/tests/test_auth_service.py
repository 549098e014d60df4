from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from auth_service.app.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StoreUnavailableError,
    UnauthorizedError,
)
from auth_service.app.models.session import Namespace
from auth_service.app.models.user import Role, SignupInput, User
from auth_service.app.services.auth_service import AuthService, new_user_code
from auth_service.app.services.passwords import PasswordHasher
from auth_service.app.sessions.manager import SessionManager
from auth_service.tests.fakes import (
    FakeClock,
    InMemorySessionStore,
    InMemoryUserRepository,
    build_session_config,
)


HASHER = PasswordHasher(rounds=4)


def _add_user(
    repo: InMemoryUserRepository,
    email: str,
    password: str = "secret123",
    role: Role = Role.USER,
    is_active: bool = True,
) -> User:
    now = datetime.now(timezone.utc)
    user = User(
        user_code=new_user_code(),
        email=email,
        password_hash=HASHER.hash(password),
        first_name="Test",
        last_name="User",
        role=role,
        is_active=is_active,
        created_at=now,
        updated_at=now,
    )
    return repo.insert(user)


@pytest.fixture()
def stores() -> dict[Namespace, InMemorySessionStore]:
    return {Namespace.USER: InMemorySessionStore(), Namespace.ADMIN: InMemorySessionStore()}


@pytest.fixture()
def manager(stores) -> SessionManager:
    return SessionManager(build_session_config(), stores, clock=FakeClock())


@pytest.fixture()
def repo() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture()
def service(repo, manager) -> AuthService:
    return AuthService(user_repo=repo, session_manager=manager, hasher=HASHER)


def test_signup_creates_user_and_persists_authenticated_session(
    service, manager, stores, repo
) -> None:
    session = manager.create(Namespace.USER)

    profile = service.signup(
        session,
        SignupInput(email="  New@Example.COM ", password="secret123", first_name="Kim"),
    )

    assert profile.email == "new@example.com"
    assert profile.role is Role.USER
    assert session.principal_id == profile.user_code
    # 응답 전에 이미 저장되어 있어야 한다.
    stored = stores[Namespace.USER].records[session.session_id]
    assert stored["auth_identity"]["user_code"] == profile.user_code
    assert repo.users[profile.user_code].password_hash != "secret123"


def test_signup_duplicate_email_conflicts(service, manager, repo) -> None:
    _add_user(repo, "dup@example.com")
    with pytest.raises(ConflictError):
        service.signup(
            manager.create(Namespace.USER),
            SignupInput(email="DUP@example.com", password="secret123"),
        )


def test_signup_rejects_admin_role_request(service, manager, repo) -> None:
    with pytest.raises(ForbiddenError):
        service.signup(
            manager.create(Namespace.USER),
            SignupInput(email="x@example.com", password="secret123"),
            requested_role="admin",
        )
    assert repo.users == {}


def test_signup_ignores_user_role_request(service, manager) -> None:
    profile = service.signup(
        manager.create(Namespace.USER),
        SignupInput(email="x@example.com", password="secret123"),
        requested_role="user",
    )
    assert profile.role is Role.USER


def test_signup_from_admin_namespace_is_forbidden(service, manager) -> None:
    with pytest.raises(ForbiddenError):
        service.signup(
            manager.create(Namespace.ADMIN),
            SignupInput(email="x@example.com", password="secret123"),
        )


@pytest.mark.parametrize(
    "email,password",
    [("nobody@example.com", "secret123"), ("user@example.com", "wrong-password")],
)
def test_login_failures_are_indistinguishable(
    service, manager, repo, email, password
) -> None:
    _add_user(repo, "user@example.com")
    with pytest.raises(UnauthorizedError) as excinfo:
        service.login(manager.create(Namespace.USER), email, password, Namespace.USER)
    assert excinfo.value.message == "Invalid email or password"


def test_inactive_user_cannot_login(service, manager, repo) -> None:
    _add_user(repo, "sleepy@example.com", is_active=False)
    with pytest.raises(UnauthorizedError):
        service.login(
            manager.create(Namespace.USER),
            "sleepy@example.com",
            "secret123",
            Namespace.USER,
        )


def test_login_regenerates_session_id(service, manager, stores, repo) -> None:
    _add_user(repo, "user@example.com")
    session = manager.create(Namespace.USER)
    manager.save(session)
    pre_login_id = session.session_id
    session.is_new = False

    service.login(session, "user@example.com", "secret123", Namespace.USER)

    assert session.session_id != pre_login_id
    assert pre_login_id not in stores[Namespace.USER].records
    assert session.session_id in stores[Namespace.USER].records


def test_admin_cannot_login_through_user_namespace(service, manager, repo) -> None:
    _add_user(repo, "admin@example.com", role=Role.ADMIN)
    session = manager.create(Namespace.USER)

    with pytest.raises(ForbiddenError):
        service.login(session, "admin@example.com", "secret123", Namespace.USER)

    assert session.is_authenticated is False
    assert session.destroyed is True


def test_user_cannot_login_through_admin_namespace(service, manager, repo) -> None:
    _add_user(repo, "user@example.com")
    session = manager.create(Namespace.ADMIN)

    with pytest.raises(ForbiddenError):
        service.login(session, "user@example.com", "secret123", Namespace.ADMIN)

    assert session.is_authenticated is False


def test_login_authenticates_into_resolved_session(service, manager, repo) -> None:
    # admin 쿠키만 가진 브라우저는 admin 으로 분류된다. 스토어프론트 로그인도 그 세션에 기록한다.
    _add_user(repo, "user@example.com")
    session = manager.create(Namespace.ADMIN)

    profile = service.login(session, "user@example.com", "secret123", Namespace.USER)

    assert session.namespace is Namespace.ADMIN
    assert session.principal_id == profile.user_code


def test_user_status_hides_admin_in_any_session(service, manager, repo) -> None:
    admin = _add_user(repo, "admin@example.com", role=Role.ADMIN)
    user_session = manager.create(Namespace.USER)
    user_session.authenticate(admin.user_code, manager.now())
    admin_session = manager.create(Namespace.ADMIN)
    admin_session.authenticate(admin.user_code, manager.now())

    assert service.status(user_session, Namespace.USER).authenticated is False
    assert service.status(admin_session, Namespace.USER).authenticated is False
    result = service.status(admin_session, Namespace.ADMIN)
    assert result.authenticated is True
    assert result.user is not None and result.user.email == "admin@example.com"


def test_admin_status_ignores_regular_principal(service, manager, repo) -> None:
    user = _add_user(repo, "user@example.com")
    session = manager.create(Namespace.ADMIN)
    session.authenticate(user.user_code, manager.now())

    assert service.status(session, Namespace.ADMIN).authenticated is False
    assert service.status(session, Namespace.USER).authenticated is True


def test_current_principal_refetches_user(service, manager, repo) -> None:
    user = _add_user(repo, "user@example.com")
    session = manager.create(Namespace.USER)
    session.authenticate(user.user_code, manager.now())

    repo.users[user.user_code] = repo.users[user.user_code].model_copy(
        update={"first_name": "Renamed"}
    )
    assert service.current_principal(session).first_name == "Renamed"

    del repo.users[user.user_code]
    with pytest.raises(NotFoundError):
        service.current_principal(session)


def test_current_principal_requires_identity(service, manager) -> None:
    with pytest.raises(UnauthorizedError):
        service.current_principal(manager.create(Namespace.USER))


def test_degraded_session_fails_closed(service, manager) -> None:
    session = manager.degraded(Namespace.USER)
    with pytest.raises(StoreUnavailableError):
        service.current_principal(session)
    assert service.status(session, Namespace.USER).authenticated is False


def test_logout_only_touches_own_namespace(service, manager, stores, repo) -> None:
    admin = _add_user(repo, "admin@example.com", role=Role.ADMIN)
    user = _add_user(repo, "user@example.com")

    user_session = manager.create(Namespace.USER)
    service.login(user_session, "user@example.com", "secret123", Namespace.USER)
    admin_session = manager.create(Namespace.ADMIN)
    service.login(admin_session, "admin@example.com", "secret123", Namespace.ADMIN)

    service.logout(admin_session)

    assert stores[Namespace.ADMIN].records == {}
    assert user_session.session_id in stores[Namespace.USER].records
    assert service.current_principal(user_session).user_code == user.user_code
    assert admin.user_code != user.user_code


def test_require_admin_needs_admin_namespace(service, manager, repo) -> None:
    admin = _add_user(repo, "admin@example.com", role=Role.ADMIN)
    session = manager.create(Namespace.USER)
    session.authenticate(admin.user_code, manager.now())

    with pytest.raises(ForbiddenError):
        service.require_admin(session)


def test_require_admin_or_owner(service, manager, repo) -> None:
    owner = _add_user(repo, "owner@example.com")
    other = _add_user(repo, "other@example.com")
    session = manager.create(Namespace.USER)
    session.authenticate(owner.user_code, manager.now())

    assert service.require_admin_or_owner(session, owner.user_code).email == "owner@example.com"
    with pytest.raises(ForbiddenError):
        service.require_admin_or_owner(session, other.user_code)


def test_password_hasher_round_trip_and_limits() -> None:
    hashed = HASHER.hash("secret123")
    assert HASHER.verify("secret123", hashed) is True
    assert HASHER.verify("secret124", hashed) is False
    assert HASHER.verify("secret123", "") is False
    assert HASHER.verify("secret123", "not-a-bcrypt-hash") is False
    with pytest.raises(ValueError):
        HASHER.hash("x" * 73)


def test_session_expiry_is_rolling_from_save(manager) -> None:
    session = manager.create(Namespace.USER)
    manager.save(session)
    assert session.expires == manager.now() + timedelta(days=7)
