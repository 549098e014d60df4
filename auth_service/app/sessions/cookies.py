from __future__ import annotations

import re
from datetime import datetime

from itsdangerous import BadSignature, Signer
from starlette.responses import Response

from common.types.datetime import as_utc

from ..models.session import SessionCookie


SIGNER_SALT = "storefront.session-cookie"
SESSION_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")


class SessionIdSigner:
    """쿠키에 담는 세션 ID 를 HMAC 으로 서명/검증한다.

    클라이언트가 세션 ID 를 임의로 바꾸거나 만들어내지 못하게 하는 용도이며,
    만료는 세션 저장소와 쿠키 속성으로 관리하므로 timestamp 서명은 쓰지 않는다.
    """

    def __init__(self, secret: str) -> None:
        self._signer = Signer(secret, salt=SIGNER_SALT)

    def sign(self, session_id: str) -> str:
        return self._signer.sign(session_id).decode("utf-8")

    def unsign(self, value: str | None) -> str | None:
        if not value:
            return None
        try:
            session_id = self._signer.unsign(value).decode("utf-8")
        except BadSignature:
            return None
        if not SESSION_ID_PATTERN.match(session_id):
            return None
        return session_id


def set_session_cookie(
    response: Response,
    *,
    name: str,
    value: str,
    cookie: SessionCookie,
    now: datetime,
) -> None:
    max_age = max(round((cookie.expires - now).total_seconds()), 0)
    response.set_cookie(
        key=name,
        value=value,
        max_age=max_age,
        expires=as_utc(cookie.expires),
        path=cookie.path,
        domain=None,
        secure=cookie.secure,
        httponly=True,
        samesite=cookie.same_site,  # type: ignore[arg-type]
    )


def clear_session_cookie(
    response: Response,
    *,
    name: str,
    secure: bool,
    same_site: str,
) -> None:
    response.delete_cookie(
        key=name,
        path="/",
        domain=None,
        secure=secure,
        httponly=True,
        samesite=same_site,  # type: ignore[arg-type]
    )
