from __future__ import annotations

import logging
import secrets
from collections.abc import Callable, Mapping
from datetime import datetime

from fastapi import Request
from starlette.responses import Response

from common.logger import short_session_id
from common.types.datetime import utcnow

from ..config import SessionConfig
from ..models.session import Namespace, Session, SessionCookie
from ..repositories.interfaces import SessionStoreInterface
from .classifier import RequestClassifier
from .cookies import SessionIdSigner, clear_session_cookie, set_session_cookie
from .sanitizer import SanitizedSessionStore


logger = logging.getLogger(__name__)


SESSION_ID_BYTES = 16


def generate_session_id() -> str:
    """암호학적으로 안전한 난수 16바이트를 hex(32자)로 인코딩한다."""

    return secrets.token_hex(SESSION_ID_BYTES)


class SessionManager:
    """user / admin 두 세션 라이프사이클을 소유하고, 요청마다 하나를 골라 적용한다.

    - namespace 마다 쿠키 이름과 저장소(컬렉션)가 다르고, TTL/rolling/쿠키 속성은 동일하다.
    - 저장소 접근은 모두 SanitizedSessionStore 를 거친다.
    - 메서드는 동기(blocking) 함수이며, 이벤트 루프에서는 threadpool 로 호출한다.
    """

    def __init__(
        self,
        config: SessionConfig,
        stores: Mapping[Namespace, SessionStoreInterface],
        *,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = generate_session_id,
    ) -> None:
        missing = [ns for ns in Namespace if ns not in stores]
        if missing:
            raise ValueError(f"session store missing for namespace(s): {missing}")

        self._config = config
        self._classifier = RequestClassifier.from_config(config)
        self._signer = SessionIdSigner(config.secret)
        self._stores = {
            namespace: SanitizedSessionStore(store, namespace)
            for namespace, store in stores.items()
        }
        self._clock = clock
        self._id_factory = id_factory

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def classifier(self) -> RequestClassifier:
        return self._classifier

    def now(self) -> datetime:
        return self._clock()

    def cookie_name(self, namespace: Namespace) -> str:
        if namespace is Namespace.ADMIN:
            return self._config.admin_cookie_name
        return self._config.user_cookie_name

    def classify(self, request: Request) -> Namespace:
        return self._classifier.classify_request(request)

    # -------- load / create --------

    def resolve(self, request: Request, namespace: Namespace) -> Session:
        """요청 쿠키에서 namespace 의 세션을 로드하고, 없으면 새 anonymous 세션을 만든다.

        다른 namespace 의 쿠키는 보지 않는다.
        """

        signed = request.cookies.get(self.cookie_name(namespace))
        return self.load(namespace, signed)

    def load(self, namespace: Namespace, signed_value: str | None) -> Session:
        session_id = self._signer.unsign(signed_value)
        if session_id is None:
            if signed_value:
                logger.info(
                    "ignoring session cookie with invalid signature",
                    extra={"namespace": str(namespace)},
                )
            return self.create(namespace)

        store = self._stores[namespace]
        payload = store.get(session_id)
        if payload is None:
            return self.create(namespace)

        session = Session.from_payload(session_id, namespace, payload)
        # 저장소 TTL 은 maxAge 보다 길다. 쿠키 만료가 지난 레코드는 없는 것으로 본다.
        if session.expires <= self.now():
            logger.info(
                "discarding expired session record",
                extra={
                    "namespace": str(namespace),
                    "session_id": short_session_id(session_id),
                },
            )
            store.discard(session_id)
            return self.create(namespace)

        return session

    def create(self, namespace: Namespace) -> Session:
        now = self.now()
        session = Session(
            session_id=self._id_factory(),
            namespace=namespace,
            cookie=self._new_cookie(now),
            is_new=True,
        )
        logger.debug(
            "created new session",
            extra={
                "namespace": str(namespace),
                "session_id": short_session_id(session.session_id),
            },
        )
        return session

    def degraded(self, namespace: Namespace) -> Session:
        """저장소 장애 시 요청을 계속 처리하기 위한 임시 세션. 저장/쿠키 발급을 하지 않는다."""

        session = self.create(namespace)
        session.degraded = True
        return session

    def _new_cookie(self, now: datetime) -> SessionCookie:
        max_age = self._config.max_age
        return SessionCookie(
            original_max_age=int(max_age.total_seconds()),
            expires=now + max_age,
            http_only=True,
            secure=self._config.secure_cookie,
            same_site=self._config.same_site,
            path="/",
        )

    # -------- mutate / persist --------

    def save(self, session: Session) -> None:
        """세션을 저장소에 기록한다. rolling 이면 now 기준으로 만료를 연장한다."""

        now = self.now()
        if self._config.rolling or session.is_new:
            session.touch(now, self._config.max_age)
        else:
            session.last_access = now
        # 배포 모드 변경이 기존 세션에도 반영되도록 쿠키 속성을 매번 다시 맞춘다.
        session.cookie = session.cookie.model_copy(
            update={
                "secure": self._config.secure_cookie,
                "same_site": self._config.same_site,
                "path": "/",
                "http_only": True,
            }
        )
        self._stores[session.namespace].set(
            session.session_id,
            session.to_payload(),
            self._config.store_ttl,
        )

    def regenerate(self, session: Session) -> None:
        """세션 ID 를 새로 발급한다(로그인 시 session fixation 방지). 기존 레코드는 삭제한다."""

        old_session_id = session.session_id
        if not session.is_new:
            self._stores[session.namespace].destroy(old_session_id)

        now = self.now()
        session.session_id = self._id_factory()
        session.cookie = self._new_cookie(now)
        session.auth_identity = None
        session.data = {}
        session.is_new = True
        session.destroyed = False
        logger.debug(
            "regenerated session",
            extra={
                "namespace": str(session.namespace),
                "session_id": short_session_id(session.session_id),
            },
        )

    def destroy(self, session: Session) -> None:
        """저장소에서 세션을 삭제하고, 응답에서 쿠키를 지우도록 표시한다."""

        self._stores[session.namespace].destroy(session.session_id)
        session.auth_identity = None
        session.data = {}
        session.destroyed = True

    # -------- response finalization --------

    def finalize(self, session: Session, response: Response) -> None:
        """응답 직전 단계. 세션을 저장하고 Set-Cookie 를 항상 내려보낸다.

        rolling 만료는 클라이언트 쿠키의 만료도 매번 갱신해야 하므로 payload 가
        바뀌지 않았어도 저장과 Set-Cookie 를 생략하지 않는다.
        """

        if session.destroyed:
            self.clear_cookie(response, session.namespace)
            return

        if session.degraded:
            return

        self.save(session)
        self.apply_cookie(response, session)

    def apply_cookie(self, response: Response, session: Session) -> None:
        set_session_cookie(
            response,
            name=self.cookie_name(session.namespace),
            value=self._signer.sign(session.session_id),
            cookie=session.cookie,
            now=self.now(),
        )

    def clear_cookie(self, response: Response, namespace: Namespace) -> None:
        clear_session_cookie(
            response,
            name=self.cookie_name(namespace),
            secure=self._config.secure_cookie,
            same_site=self._config.same_site,
        )

    def sign(self, session_id: str) -> str:
        return self._signer.sign(session_id)
