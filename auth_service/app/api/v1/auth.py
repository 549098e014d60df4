from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status

from common.logger import short_session_id
from common.types.datetime import utcnow

from ...exceptions import NotFoundError
from ...models.session import Namespace, Session
from ...models.user import SignupInput, UserProfile
from ...services.auth_service import (
    AuthService,
    get_auth_service,
    get_session_manager,
)
from ...services.users_service import UsersService, get_users_service
from ...sessions.manager import SessionManager
from ..dependencies import (
    get_session,
    require_admin,
    require_admin_or_owner,
    require_authenticated,
)
from ..schemas.auth import (
    AuthStatusResponse,
    AuthUserResponse,
    CurrentUserResponse,
    ListUsersResponse,
    LoginRequest,
    MessageResponse,
    SessionCheckInfo,
    SessionCheckResponse,
    SessionCookieInfo,
    SessionPrincipalInfo,
    SignupRequest,
    UserResponse,
)

router = APIRouter()


@router.post(
    "/signup",
    response_model=AuthUserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="회원가입 (user namespace)",
)
def signup(
    body: SignupRequest,
    session: Session = Depends(get_session),
    service: AuthService = Depends(get_auth_service),
) -> AuthUserResponse:
    input_model = SignupInput(
        email=body.email,
        password=body.password,
        first_name=body.first_name or "",
        last_name=body.last_name or "",
    )
    profile = service.signup(session, input_model, requested_role=body.role)
    return AuthUserResponse(
        message="User registered successfully",
        user=UserResponse.from_domain(profile),
    )


@router.post("/login", response_model=AuthUserResponse, summary="유저 로그인")
def login(
    body: LoginRequest,
    session: Session = Depends(get_session),
    service: AuthService = Depends(get_auth_service),
) -> AuthUserResponse:
    profile = service.login(session, body.email, body.password, Namespace.USER)
    return AuthUserResponse(
        message="Login successful",
        user=UserResponse.from_domain(profile),
    )


@router.post("/admin/login", response_model=AuthUserResponse, summary="admin 로그인")
def admin_login(
    body: LoginRequest,
    session: Session = Depends(get_session),
    service: AuthService = Depends(get_auth_service),
) -> AuthUserResponse:
    profile = service.login(session, body.email, body.password, Namespace.ADMIN)
    return AuthUserResponse(
        message="Admin login successful",
        user=UserResponse.from_domain(profile),
    )


@router.post("/logout", response_model=MessageResponse, summary="현재 namespace 로그아웃")
def logout(
    session: Session = Depends(require_authenticated),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    service.logout(session)
    return MessageResponse(message="Logout successful")


@router.get("/me", response_model=CurrentUserResponse, summary="현재 principal 조회")
def me(
    session: Session = Depends(require_authenticated),
    service: AuthService = Depends(get_auth_service),
) -> CurrentUserResponse:
    profile = service.current_principal(session)
    return CurrentUserResponse(user=UserResponse.from_domain(profile))


def _status_response(
    service: AuthService, session: Session, namespace: Namespace
) -> AuthStatusResponse:
    result = service.status(session, namespace)
    return AuthStatusResponse(
        authenticated=result.authenticated,
        user=UserResponse.from_domain(result.user) if result.user else None,
    )


@router.get("/status", response_model=AuthStatusResponse, summary="유저 인증 상태")
def auth_status(
    session: Session = Depends(get_session),
    service: AuthService = Depends(get_auth_service),
) -> AuthStatusResponse:
    return _status_response(service, session, Namespace.USER)


@router.get(
    "/admin/status", response_model=AuthStatusResponse, summary="admin 인증 상태"
)
def admin_auth_status(
    session: Session = Depends(get_session),
    service: AuthService = Depends(get_auth_service),
) -> AuthStatusResponse:
    return _status_response(service, session, Namespace.ADMIN)


@router.get("/users", response_model=ListUsersResponse, summary="일반 유저 목록 (admin)")
def list_users(
    _admin: UserProfile = Depends(require_admin),
    service: UsersService = Depends(get_users_service),
) -> ListUsersResponse:
    users = service.list_regular_users()
    return ListUsersResponse(
        count=len(users),
        users=[UserResponse.from_domain(u) for u in users],
    )


@router.get(
    "/users/{user_code}",
    response_model=CurrentUserResponse,
    summary="유저 프로필 조회 (admin 또는 본인)",
)
def get_user(
    user_code: str,
    _principal: UserProfile = Depends(require_admin_or_owner),
    service: UsersService = Depends(get_users_service),
) -> CurrentUserResponse:
    profile = service.get_profile(user_code)
    return CurrentUserResponse(user=UserResponse.from_domain(profile))


@router.get(
    "/checksession", response_model=SessionCheckResponse, summary="세션 진단 정보"
)
def check_session(
    request: Request,
    session: Session = Depends(get_session),
    manager: SessionManager = Depends(get_session_manager),
    service: UsersService = Depends(get_users_service),
) -> SessionCheckResponse:
    # 쿠키 값은 절대 응답에 싣지 않는다. 이름만 보고한다.
    principal = None
    if session.principal_id is not None and not session.degraded:
        try:
            profile = service.get_profile(session.principal_id)
        except NotFoundError:
            profile = None
        if profile is not None:
            principal = SessionPrincipalInfo(
                id=profile.user_code,
                email=profile.email,
                role=profile.role.value,
            )

    cookie = session.cookie
    info = SessionCheckInfo(
        namespace=session.namespace.value,
        cookie_name=manager.cookie_name(session.namespace),
        session_id=short_session_id(session.session_id) or "",
        is_new=session.is_new,
        is_authenticated=session.is_authenticated,
        degraded=session.degraded,
        user=principal,
        cookie_options=SessionCookieInfo(
            http_only=cookie.http_only,
            secure=cookie.secure,
            same_site=cookie.same_site,
            path=cookie.path,
            max_age=cookie.original_max_age,
            expires=cookie.expires,
        ),
        received_cookies=sorted(request.cookies.keys()),
        production=manager.config.production,
        timestamp=utcnow(),
    )
    return SessionCheckResponse(session=info)
