from __future__ import annotations

import logging

from fastapi import Request
from fastapi.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from common.logger import short_session_id

from ..api.errors import error_response_for
from ..exceptions import StoreUnavailableError
from .manager import SessionManager


logger = logging.getLogger(__name__)

# 세션을 붙이지 않는 경로. 헬스 체크마다 세션 레코드가 쌓이지 않게 한다.
SESSIONLESS_PATHS: set[str] = {"/health"}


class SessionMiddleware(BaseHTTPMiddleware):
    """요청마다 세션 namespace 를 판별하고 세션을 붙인 뒤, 응답 직전에 저장/쿠키 발급을 한다.

    - request.state.session_namespace: 판별된 namespace
    - request.state.session: 로드되었거나 새로 만든 Session
    - SessionManager 는 app.state.session_manager 에서 꺼낸다(startup 시 설정).
    - 저장소 로드 실패 시 degraded 세션으로 계속 진행한다. 인증이 필요한 라우트는
      의존성에서 degraded 세션을 거부하므로 fail closed 가 된다.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in SESSIONLESS_PATHS:
            return await call_next(request)

        manager: SessionManager = request.app.state.session_manager
        production: bool = getattr(request.app.state, "production", True)

        namespace = manager.classify(request)
        request.state.session_namespace = namespace

        try:
            session = await run_in_threadpool(manager.resolve, request, namespace)
        except StoreUnavailableError:
            logger.error(
                "session store unavailable while loading session",
                exc_info=True,
                extra={"namespace": str(namespace), "path": request.url.path},
            )
            session = manager.degraded(namespace)

        request.state.session = session

        response = await call_next(request)

        try:
            await run_in_threadpool(manager.finalize, session, response)
        except StoreUnavailableError as exc:
            logger.error(
                "session store unavailable while saving session",
                exc_info=True,
                extra={
                    "namespace": str(namespace),
                    "session_id": short_session_id(session.session_id),
                },
            )
            if session.is_authenticated:
                return error_response_for(exc, production=production)

        return response
