from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from common.mongo.types import MongoDateTime


class SessionDocument(BaseModel):
    """MongoDB sessions / admin_sessions 컬렉션 도큐먼트 모델.

    - _id 는 세션 ID(32자리 hex) 문자열이다.
    - expires 는 store TTL 기준 만료 시각이며 TTL 인덱스 대상 필드다.
    - session 은 SessionPayload 를 dump 한 dict 로, 로드 시 구조 검증은 sanitizer 가 한다.
    """

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="_id")
    expires: MongoDateTime
    session: dict[str, Any]
    updated_at: MongoDateTime

    def to_mongo_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
