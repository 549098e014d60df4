from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from common.logger import setup_logger
from common.middleware.request_trace import RequestTraceMiddleware
from common.mongo.client import close_client, get_database

from .api.errors import register_exception_handlers
from .api.health import router as health_router
from .api.v1 import api_router
from .config import AppConfig, load_config
from .repositories.session_store import build_session_stores
from .services.passwords import PasswordHasher
from .sessions.manager import SessionManager
from .sessions.middleware import SessionMiddleware


logger = logging.getLogger(__name__)

DEFAULT_PORT = 3000


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - framework hook
    config: AppConfig = app.state.config
    owns_store = app.state.session_manager is None
    if owns_store:
        database = get_database()
        app.state.session_manager = SessionManager(
            config.session,
            build_session_stores(database, config.session),
        )
        logger.info(
            "session stores ready (user=%s, admin=%s)",
            config.session.user_collection,
            config.session.admin_collection,
        )
    try:
        yield
    finally:
        if owns_store:
            close_client()


def create_app(
    config: AppConfig | None = None,
    *,
    session_manager: SessionManager | None = None,
    password_hasher: PasswordHasher | None = None,
) -> FastAPI:
    """auth-service FastAPI 앱을 만든다.

    session_manager 를 넘기지 않으면 startup 시 Mongo 세션 저장소로 생성한다.
    """

    setup_logger()
    if config is None:
        config = load_config()

    app = FastAPI(
        title="Storefront Auth Service",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.production = config.production
    app.state.session_manager = session_manager
    app.state.password_hasher = password_hasher or PasswordHasher(
        rounds=config.bcrypt_rounds
    )

    register_exception_handlers(app, production=config.production)

    # 나중에 추가한 미들웨어가 바깥쪽에서 실행된다: CORS → RequestTrace → Session
    app.add_middleware(SessionMiddleware)
    app.add_middleware(RequestTraceMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors.allow_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Client-Type"],
        expose_headers=["Set-Cookie"],
    )

    app.include_router(health_router, tags=["health"])
    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_app()


def main() -> None:
    import uvicorn

    port = int(os.getenv("AUTH_SERVICE_PORT", str(DEFAULT_PORT)))
    uvicorn.run(
        "auth_service.app.main:app",
        host="0.0.0.0",
        port=port,
        reload=False,
        access_log=False,
    )


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    main()
