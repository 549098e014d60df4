from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated

from common.types.datetime import as_utc, utcnow


def _coerce_utc(value: Any) -> Any:
    # datetime 이 아닌 값은 그대로 두어 pydantic 이 타입 에러를 내게 한다.
    if isinstance(value, datetime):
        return as_utc(value)
    return value


MongoDateTime = Annotated[datetime, BeforeValidator(_coerce_utc)]


def is_expired(expires: Any, now: datetime | None = None) -> bool:
    """TTL 모니터가 아직 지우지 않은 만료 도큐먼트를 애플리케이션에서 걸러낸다.

    TTL 인덱스 정리는 최대 1분 정도 늦을 수 있다. datetime 이 아니면 만료로 보지 않는다.
    """

    if not isinstance(expires, datetime):
        return False
    return as_utc(expires) <= (now or utcnow())


class BaseDocument(BaseModel):
    """ObjectId _id 와 생성/수정 시각을 갖는 Mongo 도큐먼트 베이스.

    _id 가 비어 있으면 저장 시 제외해 Mongo 가 ObjectId 를 발급하게 한다.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True)

    id: Optional[ObjectId] = Field(default=None, alias="_id")
    created_at: MongoDateTime
    updated_at: MongoDateTime

    def to_mongo_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
