from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timedelta
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from common.logger import short_session_id

from ..exceptions import CorruptedSessionError, StoreUnavailableError
from ..models.session import Namespace, SessionPayload
from ..repositories.interfaces import SessionStoreInterface


logger = logging.getLogger(__name__)


def find_corruption(raw: Any) -> str | None:
    """저장된 세션 payload 의 구조 결함을 찾는다. 정상이면 None.

    쿠키 descriptor 와 그 만료 시각(datetime)이 반드시 있어야 한다. 배포/재시작을 거치며
    예전 스키마로 저장된 레코드는 이 조건을 만족하지 못한다.
    """

    if not isinstance(raw, Mapping):
        return f"payload is {type(raw).__name__}, not a mapping"

    cookie = raw.get("cookie")
    if not isinstance(cookie, Mapping):
        return "missing cookie descriptor"

    expires = cookie.get("expires")
    if expires is None:
        return "missing cookie.expires"
    if not isinstance(expires, datetime):
        return f"cookie.expires is {type(expires).__name__}, not a datetime"

    return None


def parse_payload(session_id: str, raw: Any) -> SessionPayload:
    """raw payload 를 SessionPayload 로 변환한다. 결함이 있으면 CorruptedSessionError."""

    reason = find_corruption(raw)
    if reason is not None:
        raise CorruptedSessionError(session_id, reason)
    try:
        return SessionPayload.model_validate(raw)
    except PydanticValidationError as exc:
        raise CorruptedSessionError(
            session_id, f"invalid payload ({exc.error_count()} errors)"
        ) from exc


class SanitizedSessionStore:
    """세션 저장소 래퍼. 손상된 레코드를 상위 레이어에 절대 넘기지 않는다.

    - get: "정상 레코드" 또는 "없음" 두 가지 결과만 돌려준다. 손상 레코드는 삭제를 시도하고
      없음으로 보고한다(삭제 실패는 로그만 남긴다).
    - set/destroy: 그대로 위임한다. 기록하는 쪽은 이 시스템 자신이므로 검증하지 않는다.
    - 저장소 I/O 오류(StoreUnavailableError)는 그대로 전파한다.
    """

    def __init__(self, store: SessionStoreInterface, namespace: Namespace) -> None:
        self._store = store
        self._namespace = namespace

    @property
    def namespace(self) -> Namespace:
        return self._namespace

    def get(self, session_id: str) -> SessionPayload | None:
        raw = self._store.get(session_id)
        if raw is None:
            logger.debug(
                "session not found in store",
                extra=self._log_extra(session_id),
            )
            return None

        try:
            return parse_payload(session_id, raw)
        except CorruptedSessionError as exc:
            logger.warning(
                "discarding corrupted session record: %s",
                exc.reason,
                extra=self._log_extra(session_id),
            )
            self.discard(session_id)
            return None

    def set(self, session_id: str, payload: SessionPayload, ttl: timedelta) -> None:
        self._store.set(session_id, payload.model_dump(mode="python"), ttl)

    def destroy(self, session_id: str) -> None:
        self._store.destroy(session_id)

    def discard(self, session_id: str) -> None:
        try:
            self._store.destroy(session_id)
        except StoreUnavailableError:
            logger.error(
                "failed to delete unusable session record",
                exc_info=True,
                extra=self._log_extra(session_id),
            )

    def _log_extra(self, session_id: str) -> dict[str, object]:
        return {
            "namespace": str(self._namespace),
            "session_id": short_session_id(session_id),
        }
