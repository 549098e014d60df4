from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta


logger = logging.getLogger(__name__)


APP_ENV = "APP_ENV"
RENDER = "RENDER"
SESSION_SECRET = "SESSION_SECRET"
SESSION_NAME = "SESSION_NAME"
ADMIN_SESSION_NAME = "ADMIN_SESSION_NAME"
SESSION_MAX_AGE = "SESSION_MAX_AGE"
FRONTEND_URL = "FRONTEND_URL"
ADMIN_URL = "ADMIN_URL"
BCRYPT_ROUNDS = "BCRYPT_ROUNDS"

DEFAULT_SESSION_NAME = "connect.sid"
DEFAULT_ADMIN_SESSION_NAME = "admin.connect.sid"
DEFAULT_SESSION_MAX_AGE_MS = 7 * 24 * 60 * 60 * 1000
DEFAULT_FRONTEND_URL = "http://localhost:8080"
DEFAULT_ADMIN_URL = "http://localhost:8081"
DEFAULT_BCRYPT_ROUNDS = 12

# 개발 환경 전용 서명 키. production 에서는 SESSION_SECRET 이 반드시 있어야 한다.
DEVELOPMENT_SESSION_SECRET = "storefront-development-session-secret"

USER_SESSION_COLLECTION = "sessions"
ADMIN_SESSION_COLLECTION = "admin_sessions"
DEFAULT_ADMIN_PATH_PREFIXES = ("/api/v1/auth/admin",)


@dataclass(slots=True)
class SessionConfig:
    """두 namespace(user/admin) 세션 라이프사이클이 공유하는 설정.

    - 쿠키 이름과 저장 컬렉션만 namespace 별로 다르고, TTL/rolling/쿠키 속성은 동일하다.
    - store TTL 은 쿠키 maxAge 의 2배로 잡아, 만료 직전 쿠키가 정리 작업과 경합하지 않게 한다.
    """

    secret: str
    user_cookie_name: str = DEFAULT_SESSION_NAME
    admin_cookie_name: str = DEFAULT_ADMIN_SESSION_NAME
    user_collection: str = USER_SESSION_COLLECTION
    admin_collection: str = ADMIN_SESSION_COLLECTION
    max_age: timedelta = timedelta(milliseconds=DEFAULT_SESSION_MAX_AGE_MS)
    production: bool = False
    rolling: bool = True
    frontend_url: str = DEFAULT_FRONTEND_URL
    admin_url: str = DEFAULT_ADMIN_URL
    admin_path_prefixes: tuple[str, ...] = DEFAULT_ADMIN_PATH_PREFIXES

    @property
    def store_ttl(self) -> timedelta:
        return self.max_age * 2

    @property
    def secure_cookie(self) -> bool:
        return self.production

    @property
    def same_site(self) -> str:
        # cross-site 로 쿠키를 보내려면 SameSite=None 이 필요하고, 이 경우 Secure 가 강제된다.
        return "none" if self.production else "lax"


@dataclass(slots=True)
class CorsConfig:
    allow_origins: list[str] = field(default_factory=list)


@dataclass(slots=True)
class AppConfig:
    """auth-service 전체 설정 루트."""

    production: bool
    session: SessionConfig
    cors: CorsConfig
    bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS


def is_production_env() -> bool:
    """APP_ENV=production 이거나 Render 같은 호스팅 환경이면 production 으로 본다."""

    if os.getenv(APP_ENV, "").strip().lower() == "production":
        return True
    return bool(os.getenv(RENDER))


def _read_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer (got {raw!r})") from exc
    if value <= 0:
        raise RuntimeError(f"{name} must be positive (got {value})")
    return value


def _read_url(name: str, default: str) -> str:
    value = os.getenv(name, "").strip() or default
    return value.rstrip("/")


def load_session_config(production: bool) -> SessionConfig:
    secret = os.getenv(SESSION_SECRET, "").strip()
    if not secret:
        if production:
            raise RuntimeError(
                f"{SESSION_SECRET} environment variable is required in production",
            )
        logger.warning(
            "%s is not set; using the development session secret", SESSION_SECRET
        )
        secret = DEVELOPMENT_SESSION_SECRET

    user_cookie_name = os.getenv(SESSION_NAME, "").strip() or DEFAULT_SESSION_NAME
    admin_cookie_name = (
        os.getenv(ADMIN_SESSION_NAME, "").strip() or DEFAULT_ADMIN_SESSION_NAME
    )
    if user_cookie_name == admin_cookie_name:
        raise RuntimeError(
            f"{SESSION_NAME} and {ADMIN_SESSION_NAME} must be different cookie names",
        )

    max_age_ms = _read_int(SESSION_MAX_AGE, DEFAULT_SESSION_MAX_AGE_MS)

    return SessionConfig(
        secret=secret,
        user_cookie_name=user_cookie_name,
        admin_cookie_name=admin_cookie_name,
        max_age=timedelta(milliseconds=max_age_ms),
        production=production,
        frontend_url=_read_url(FRONTEND_URL, DEFAULT_FRONTEND_URL),
        admin_url=_read_url(ADMIN_URL, DEFAULT_ADMIN_URL),
    )


def build_cors_config(session: SessionConfig) -> CorsConfig:
    origins: list[str] = []
    for origin in (
        session.frontend_url,
        session.admin_url,
        DEFAULT_FRONTEND_URL,
        DEFAULT_ADMIN_URL,
    ):
        if origin not in origins:
            origins.append(origin)
    return CorsConfig(allow_origins=origins)


def load_config() -> AppConfig:
    """auth-service 설정을 환경 변수에서 로드하여 AppConfig 로 반환한다."""

    production = is_production_env()
    session = load_session_config(production)
    return AppConfig(
        production=production,
        session=session,
        cors=build_cors_config(session),
        bcrypt_rounds=_read_int(BCRYPT_ROUNDS, DEFAULT_BCRYPT_ROUNDS),
    )
