from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import timedelta
from typing import Any

from pymongo import ASCENDING, IndexModel
from pymongo.database import Database
from pymongo.errors import PyMongoError

from common.mongo.types import is_expired
from common.types.datetime import utcnow

from ..config import SessionConfig
from ..exceptions import StoreUnavailableError
from ..models.session import Namespace
from .documents.session_document import SessionDocument
from .interfaces import SessionStoreInterface


logger = logging.getLogger(__name__)


class MongoSessionStore(SessionStoreInterface):
    """세션 컬렉션 하나(sessions 또는 admin_sessions)에 대한 MongoDB 접근 레이어.

    - expires 필드에 TTL 인덱스(expireAfterSeconds=0)를 걸어 Mongo 가 만료 레코드를 정리한다.
    - TTL 정리는 지연될 수 있으므로 get 에서 애플리케이션 레벨로 한 번 더 만료를 확인한다.
    - pymongo 오류는 모두 StoreUnavailableError 로 변환한다.
    """

    def __init__(self, database: Database, collection_name: str) -> None:
        self._db = database
        self._col = database[collection_name]
        self._collection_name = collection_name
        self._guard("ensure_indexes", self._ensure_indexes)

    @property
    def collection_name(self) -> str:
        return self._collection_name

    def _ensure_indexes(self) -> None:
        self._col.create_indexes(
            [
                IndexModel(
                    [("expires", ASCENDING)],
                    name="ttl_expires",
                    expireAfterSeconds=0,
                ),
            ]
        )

    def get(self, session_id: str) -> Any | None:
        raw = self._guard("get", lambda: self._col.find_one({"_id": session_id}))
        if not raw:
            return None

        if is_expired(raw.get("expires")):
            return None

        return raw.get("session")

    def set(self, session_id: str, payload: dict[str, Any], ttl: timedelta) -> None:
        now = utcnow()
        document = SessionDocument(
            session_id=session_id,
            expires=now + ttl,
            session=payload,
            updated_at=now,
        )
        record = document.to_mongo_record()
        self._guard(
            "set",
            lambda: self._col.replace_one({"_id": session_id}, record, upsert=True),
        )

    def destroy(self, session_id: str) -> None:
        self._guard("destroy", lambda: self._col.delete_one({"_id": session_id}))

    def iter_records(self) -> Iterator[tuple[str, Any]]:
        cursor = self._guard("iter_records", lambda: self._col.find({}))
        try:
            for raw in cursor:
                yield str(raw.get("_id")), raw.get("session")
        except PyMongoError as exc:
            raise StoreUnavailableError(
                f"session store iteration failed ({self._collection_name})",
                operation="iter_records",
            ) from exc

    def _guard(self, operation: str, func):  # type: ignore[no-untyped-def]
        try:
            return func()
        except PyMongoError as exc:
            logger.error(
                "session store %s failed (collection=%s): %s",
                operation,
                self._collection_name,
                exc,
            )
            raise StoreUnavailableError(
                f"session store {operation} failed ({self._collection_name})",
                operation=operation,
            ) from exc


def build_session_stores(
    database: Database, config: SessionConfig
) -> dict[Namespace, MongoSessionStore]:
    """namespace 별 세션 컬렉션 저장소를 만든다(user → sessions, admin → admin_sessions)."""

    return {
        Namespace.USER: MongoSessionStore(database, config.user_collection),
        Namespace.ADMIN: MongoSessionStore(database, config.admin_collection),
    }
