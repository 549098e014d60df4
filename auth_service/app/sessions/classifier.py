"""요청을 user / admin 세션 namespace 중 하나로 분류한다.

판별 순서 (먼저 맞는 규칙이 이긴다):

1. X-Client-Type 헤더가 "admin"
2. admin 라우트 경로 (admin prefix 로 시작하거나 "/admin/" 세그먼트 포함)
3. 쿠키에 admin 세션 쿠키만 있고 user 세션 쿠키는 없음
4. Origin 의 host 가 admin UI host 와 같고 user UI host 와는 다름
5. Referer 의 host 가 같은 조건을 만족
6. 그 외는 모두 user

헤더는 신뢰할 수 있는 admin UI 가 항상 직접 선언하고, 경로가 그 다음으로 확실하다.
쿠키/Origin/Referer 는 브라우저가 헤더를 제한하는 cross-origin 요청을 위한 보조 신호다.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from urllib.parse import urlsplit

from fastapi import Request
from starlette.requests import cookie_parser

from ..config import SessionConfig
from ..models.session import Namespace


CLIENT_TYPE_HEADER = "x-client-type"
ADMIN_CLIENT_TYPE = "admin"
ADMIN_PATH_SEGMENT = "/admin/"


def extract_host(url: str | None) -> str | None:
    """URL 에서 host[:port] 를 소문자로 추출한다. 스킴이 없는 값도 허용한다."""

    if not url:
        return None
    value = url.strip()
    if not value:
        return None
    if "//" not in value:
        value = f"//{value}"
    try:
        netloc = urlsplit(value).netloc
    except ValueError:
        return None
    # userinfo 는 비교 대상이 아니다.
    netloc = netloc.rsplit("@", 1)[-1]
    return netloc.lower() or None


@dataclass(frozen=True, slots=True)
class RequestClassifier:
    user_cookie_name: str
    admin_cookie_name: str
    user_host: str | None
    admin_host: str | None
    admin_path_prefixes: tuple[str, ...]

    @classmethod
    def from_config(cls, config: SessionConfig) -> "RequestClassifier":
        return cls(
            user_cookie_name=config.user_cookie_name,
            admin_cookie_name=config.admin_cookie_name,
            user_host=extract_host(config.frontend_url),
            admin_host=extract_host(config.admin_url),
            admin_path_prefixes=tuple(config.admin_path_prefixes),
        )

    def classify(
        self,
        *,
        path: str,
        client_type: str | None = None,
        cookie_names: Iterable[str] = (),
        origin: str | None = None,
        referer: str | None = None,
    ) -> Namespace:
        if client_type is not None and client_type.strip().lower() == ADMIN_CLIENT_TYPE:
            return Namespace.ADMIN

        if self.is_admin_path(path):
            return Namespace.ADMIN

        names = set(cookie_names)
        if self.admin_cookie_name in names and self.user_cookie_name not in names:
            return Namespace.ADMIN

        if self._is_admin_host(extract_host(origin)):
            return Namespace.ADMIN

        if self._is_admin_host(extract_host(referer)):
            return Namespace.ADMIN

        return Namespace.USER

    def classify_request(self, request: Request) -> Namespace:
        headers = request.headers
        cookie_header = headers.get("cookie", "")
        return self.classify(
            path=request.url.path,
            client_type=headers.get(CLIENT_TYPE_HEADER),
            cookie_names=cookie_parser(cookie_header).keys() if cookie_header else (),
            origin=headers.get("origin"),
            referer=headers.get("referer"),
        )

    def is_admin_path(self, path: str) -> bool:
        if not path:
            return False
        if any(path.startswith(prefix) for prefix in self.admin_path_prefixes):
            return True
        return ADMIN_PATH_SEGMENT in path

    def _is_admin_host(self, host: str | None) -> bool:
        if host is None or self.admin_host is None:
            return False
        if host != self.admin_host:
            return False
        # admin/user UI 가 같은 host 로 설정된 경우 host 만으로는 판별하지 않는다.
        return host != self.user_host
