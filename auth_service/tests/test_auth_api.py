from __future__ import annotations

import pytest

from auth_service.app.models.session import Namespace
from auth_service.app.models.user import Role
from auth_service.tests.fakes import FRONTEND_URL


ADMIN_HEADERS = {"X-Client-Type": "admin"}
USER_COOKIE = "connect.sid"
ADMIN_COOKIE = "admin.connect.sid"


def _signup(harness, email: str = "shopper@example.com", **extra):
    body = {"email": email, "password": "secret123", **extra}
    return harness.client.post("/api/v1/auth/signup", json=body)


def test_health_does_not_issue_session(harness) -> None:
    res = harness.client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}
    assert "set-cookie" not in res.headers


def test_signup_then_me(harness) -> None:
    res = _signup(harness, "Shopper@Example.com", firstName=" Jane ", lastName="Doe")

    assert res.status_code == 201
    body = res.json()
    assert body["success"] is True
    assert body["message"] == "User registered successfully"
    user = body["user"]
    assert user["email"] == "shopper@example.com"
    assert user["firstName"] == "Jane"
    assert user["role"] == "user"
    assert user["isActive"] is True
    assert "password_hash" not in user and "passwordHash" not in user
    assert USER_COOKIE in res.cookies

    me = harness.client.get("/api/v1/auth/me")
    assert me.status_code == 200
    assert me.json()["user"]["id"] == user["id"]

    status = harness.client.get("/api/v1/auth/status")
    assert status.json()["authenticated"] is True


def test_signup_validation_errors(harness) -> None:
    res = harness.client.post(
        "/api/v1/auth/signup",
        json={"email": "not-an-email", "password": "123", "firstName": "   "},
    )

    assert res.status_code == 400
    body = res.json()
    assert body["success"] is False
    assert body["message"] == "Validation failed"
    fields = {error["field"] for error in body["errors"]}
    assert {"email", "password", "firstName"} <= fields


def test_signup_duplicate_email(harness) -> None:
    harness.add_user("taken@example.com")

    res = _signup(harness, "TAKEN@example.com")

    assert res.status_code == 400
    assert res.json()["message"] == "User with this email already exists"


def test_signup_with_admin_role_is_forbidden(harness) -> None:
    res = _signup(harness, role="admin")

    assert res.status_code == 403
    assert harness.users.users == {}


def test_login_and_wrong_password(harness) -> None:
    harness.add_user("user@example.com")

    bad = harness.client.post(
        "/api/v1/auth/login",
        json={"email": "user@example.com", "password": "nope-nope"},
    )
    assert bad.status_code == 401
    assert bad.json()["message"] == "Invalid email or password"

    ok = harness.client.post(
        "/api/v1/auth/login",
        json={"email": "USER@example.com", "password": "secret123"},
    )
    assert ok.status_code == 200
    assert ok.json()["message"] == "Login successful"
    assert harness.client.get("/api/v1/auth/me").status_code == 200


def test_login_requires_password(harness) -> None:
    res = harness.client.post(
        "/api/v1/auth/login", json={"email": "user@example.com", "password": ""}
    )
    assert res.status_code == 400
    assert res.json()["errors"][0]["field"] == "password"


@pytest.mark.parametrize("email", ["a@b..com", "a@-b.com", "a(b)@x.com", "user@"])
def test_login_rejects_malformed_email(harness, email: str) -> None:
    res = harness.client.post(
        "/api/v1/auth/login", json={"email": email, "password": "secret123"}
    )

    assert res.status_code == 400
    assert [error["field"] for error in res.json()["errors"]] == ["email"]


def test_admin_via_user_login_is_forbidden(harness) -> None:
    harness.add_user("admin@example.com", role=Role.ADMIN)

    res = harness.client.post(
        "/api/v1/auth/login",
        json={"email": "admin@example.com", "password": "secret123"},
    )

    assert res.status_code == 403
    assert harness.stores[Namespace.USER].records == {}
    status = harness.client.get("/api/v1/auth/status")
    assert status.json() == {"authenticated": False, "user": None}


def test_user_via_admin_login_is_forbidden(harness) -> None:
    harness.add_user("user@example.com")

    res = harness.client.post(
        "/api/v1/auth/admin/login",
        json={"email": "user@example.com", "password": "secret123"},
    )

    assert res.status_code == 403
    assert res.json()["message"] == "Access denied. Admin privileges required."
    assert harness.stores[Namespace.ADMIN].records == {}


def test_admin_login_sets_admin_cookie_only(harness) -> None:
    harness.add_user("admin@example.com", role=Role.ADMIN)

    res = harness.client.post(
        "/api/v1/auth/admin/login",
        json={"email": "admin@example.com", "password": "secret123"},
    )

    assert res.status_code == 200
    assert ADMIN_COOKIE in res.cookies
    assert USER_COOKIE not in res.cookies
    admin_id = harness.session_id_from_cookie(ADMIN_COOKIE)
    assert admin_id in harness.stores[Namespace.ADMIN].records
    assert harness.stores[Namespace.USER].records == {}

    status = harness.client.get("/api/v1/auth/admin/status")
    assert status.json()["authenticated"] is True
    assert status.json()["user"]["role"] == "admin"


def test_admin_path_with_only_user_cookie_stays_anonymous(harness) -> None:
    harness.add_user("user@example.com")
    harness.client.post(
        "/api/v1/auth/login",
        json={"email": "user@example.com", "password": "secret123"},
    )

    status = harness.client.get("/api/v1/auth/admin/status")

    assert status.status_code == 200
    assert status.json() == {"authenticated": False, "user": None}
    # user 세션은 건드리지 않는다.
    assert harness.client.get("/api/v1/auth/me").status_code == 200


def test_logout_is_namespace_isolated(harness) -> None:
    harness.add_user("user@example.com")
    harness.add_user("admin@example.com", role=Role.ADMIN)
    harness.client.post(
        "/api/v1/auth/login",
        json={"email": "user@example.com", "password": "secret123"},
    )
    harness.client.post(
        "/api/v1/auth/admin/login",
        json={"email": "admin@example.com", "password": "secret123"},
    )

    res = harness.client.post("/api/v1/auth/logout", headers=ADMIN_HEADERS)

    assert res.status_code == 200
    assert res.json() == {"success": True, "message": "Logout successful"}
    assert ADMIN_COOKIE not in harness.client.cookies
    assert harness.stores[Namespace.ADMIN].records == {}

    me = harness.client.get("/api/v1/auth/me")
    assert me.status_code == 200
    assert me.json()["user"]["email"] == "user@example.com"


def test_logout_without_session_is_unauthorized(harness) -> None:
    res = harness.client.post("/api/v1/auth/logout")
    assert res.status_code == 401


def test_me_without_session_is_unauthorized(harness) -> None:
    res = harness.client.get("/api/v1/auth/me")

    assert res.status_code == 401
    assert res.json()["success"] is False
    # 익명 요청에도 세션 쿠키는 발급된다.
    assert USER_COOKIE in res.cookies


def test_status_suppresses_admin_in_user_namespace(harness) -> None:
    admin = harness.add_user("admin@example.com", role=Role.ADMIN)
    harness.add_user("user@example.com")
    harness.client.post(
        "/api/v1/auth/login",
        json={"email": "user@example.com", "password": "secret123"},
    )
    # user 네임스페이스 세션의 principal 을 admin 으로 바꿔치기한다.
    session_id = harness.session_id_from_cookie(USER_COOKIE)
    record = harness.stores[Namespace.USER].records[session_id]
    record["auth_identity"]["user_code"] = admin.user_code

    status = harness.client.get("/api/v1/auth/status")

    assert status.json() == {"authenticated": False, "user": None}


def test_user_status_hides_admin_for_admin_classified_requests(harness) -> None:
    harness.add_user("admin@example.com", role=Role.ADMIN)
    harness.client.post(
        "/api/v1/auth/admin/login",
        json={"email": "admin@example.com", "password": "secret123"},
    )
    assert USER_COOKIE not in harness.client.cookies

    anonymous = {"authenticated": False, "user": None}
    # 스토어프론트 Origin 이어도 admin 쿠키만 있으면 admin 세션으로 분류된다.
    assert harness.client.get("/api/v1/auth/status").json() == anonymous
    storefront = harness.client.get(
        "/api/v1/auth/status", headers={"Origin": FRONTEND_URL}
    )
    assert storefront.json() == anonymous
    tagged = harness.client.get("/api/v1/auth/status", headers=ADMIN_HEADERS)
    assert tagged.json() == anonymous

    admin_status = harness.client.get("/api/v1/auth/admin/status")
    assert admin_status.json()["authenticated"] is True


def test_storefront_signup_and_login_after_admin_session(harness) -> None:
    harness.add_user("admin@example.com", role=Role.ADMIN)
    harness.add_user("returning@example.com")
    harness.client.post(
        "/api/v1/auth/admin/login",
        json={"email": "admin@example.com", "password": "secret123"},
    )
    storefront = {"Origin": FRONTEND_URL}

    signup = harness.client.post(
        "/api/v1/auth/signup",
        json={"email": "fresh@example.com", "password": "secret123"},
        headers=storefront,
    )
    assert signup.status_code == 201
    status = harness.client.get("/api/v1/auth/status", headers=storefront)
    assert status.json()["authenticated"] is True
    assert status.json()["user"]["email"] == "fresh@example.com"

    login = harness.client.post(
        "/api/v1/auth/login",
        json={"email": "returning@example.com", "password": "secret123"},
        headers=storefront,
    )
    assert login.status_code == 200
    me = harness.client.get("/api/v1/auth/me", headers=storefront)
    assert me.json()["user"]["email"] == "returning@example.com"


def test_corrupted_session_degrades_to_anonymous(harness) -> None:
    harness.add_user("user@example.com")
    harness.client.post(
        "/api/v1/auth/login",
        json={"email": "user@example.com", "password": "secret123"},
    )
    old_id = harness.session_id_from_cookie(USER_COOKIE)
    harness.stores[Namespace.USER].records[old_id]["cookie"].pop("expires")

    me = harness.client.get("/api/v1/auth/me")

    assert me.status_code == 401
    assert old_id not in harness.stores[Namespace.USER].records
    new_id = harness.session_id_from_cookie(USER_COOKIE)
    assert new_id != old_id
    assert new_id in harness.stores[Namespace.USER].records

    # 다시 로그인하면 정상 동작한다.
    again = harness.client.post(
        "/api/v1/auth/login",
        json={"email": "user@example.com", "password": "secret123"},
    )
    assert again.status_code == 200
    assert harness.client.get("/api/v1/auth/me").status_code == 200


def test_store_outage_fails_closed(harness) -> None:
    harness.add_user("user@example.com")
    harness.client.post(
        "/api/v1/auth/login",
        json={"email": "user@example.com", "password": "secret123"},
    )
    harness.stores[Namespace.USER].fail = True

    me = harness.client.get("/api/v1/auth/me")
    assert me.status_code == 500
    assert me.json()["message"] == "Session store unavailable"

    status = harness.client.get("/api/v1/auth/status")
    assert status.status_code == 200
    assert status.json()["authenticated"] is False


def test_every_response_refreshes_cookie(harness) -> None:
    _signup(harness)
    first_id = harness.session_id_from_cookie(USER_COOKIE)

    for _ in range(3):
        res = harness.client.get("/api/v1/auth/status")
        assert USER_COOKIE in res.cookies
        assert "Max-Age=604800" in res.headers["set-cookie"]

    assert harness.session_id_from_cookie(USER_COOKIE) == first_id
    assert list(harness.stores[Namespace.USER].records) == [first_id]


def test_list_users_requires_admin(harness) -> None:
    harness.add_user("user@example.com")
    harness.client.post(
        "/api/v1/auth/login",
        json={"email": "user@example.com", "password": "secret123"},
    )

    res = harness.client.get("/api/v1/auth/users")

    assert res.status_code == 403


def test_list_users_returns_only_regular_users(harness) -> None:
    harness.add_user("admin@example.com", role=Role.ADMIN)
    harness.add_user("first@example.com")
    harness.add_user("second@example.com")
    harness.client.post(
        "/api/v1/auth/admin/login",
        json={"email": "admin@example.com", "password": "secret123"},
    )

    res = harness.client.get("/api/v1/auth/users", headers=ADMIN_HEADERS)

    assert res.status_code == 200
    body = res.json()
    assert body["count"] == 2
    emails = [u["email"] for u in body["users"]]
    assert "admin@example.com" not in emails
    assert set(emails) == {"first@example.com", "second@example.com"}


def test_user_profile_owner_or_admin(harness) -> None:
    owner = harness.add_user("owner@example.com")
    other = harness.add_user("other@example.com")
    harness.client.post(
        "/api/v1/auth/login",
        json={"email": "owner@example.com", "password": "secret123"},
    )

    own = harness.client.get(f"/api/v1/auth/users/{owner.user_code}")
    assert own.status_code == 200
    assert own.json()["user"]["email"] == "owner@example.com"

    foreign = harness.client.get(f"/api/v1/auth/users/{other.user_code}")
    assert foreign.status_code == 403


def test_checksession_reports_cookie_names_only(harness) -> None:
    _signup(harness)
    signed = harness.client.cookies.get(USER_COOKIE)

    res = harness.client.get("/api/v1/auth/checksession")

    assert res.status_code == 200
    info = res.json()["session"]
    assert info["namespace"] == "user"
    assert info["cookieName"] == USER_COOKIE
    assert info["isAuthenticated"] is True
    assert info["user"]["email"] == "shopper@example.com"
    assert info["receivedCookies"] == [USER_COOKIE]
    assert info["cookieOptions"]["httpOnly"] is True
    assert info["cookieOptions"]["sameSite"] == "lax"
    assert len(info["sessionId"]) == 8
    assert signed not in res.text
    assert USER_COOKIE in res.cookies
