"""라우트 가드 의존성.

SessionMiddleware 가 request.state.session 에 붙여 둔 세션을 꺼내 인증 여부를 검사한다.
degraded 세션(저장소 장애)은 인증이 필요한 라우트에서 항상 거부된다.
"""

from __future__ import annotations

from fastapi import Depends, Request

from ..exceptions import StoreUnavailableError, UnauthorizedError
from ..models.session import Session
from ..models.user import UserProfile
from ..services.auth_service import AuthService, get_auth_service


def get_session(request: Request) -> Session:
    session = getattr(request.state, "session", None)
    if session is None:
        raise StoreUnavailableError("Session is not available for this request")
    return session


def require_authenticated(session: Session = Depends(get_session)) -> Session:
    if session.degraded:
        raise StoreUnavailableError()
    if not session.is_authenticated:
        raise UnauthorizedError()
    return session


def require_admin(
    session: Session = Depends(require_authenticated),
    service: AuthService = Depends(get_auth_service),
) -> UserProfile:
    return service.require_admin(session)


def require_admin_or_owner(
    user_code: str,
    session: Session = Depends(require_authenticated),
    service: AuthService = Depends(get_auth_service),
) -> UserProfile:
    return service.require_admin_or_owner(session, user_code)
