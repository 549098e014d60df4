"""UTC datetime 헬퍼.

Mongo(tz_aware), 쿠키 만료, 응답 직렬화가 모두 같은 기준(UTC)을 쓰도록 한 곳에 모은다.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from pydantic.functional_serializers import PlainSerializer


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """naive 값은 UTC 로 간주하고, aware 값은 datetime.timezone.utc 기준으로 변환한다.

    bson 이 붙여 주는 tzinfo 는 timezone.utc 와 다른 객체라 http 날짜 포맷에서 거부된다.
    """

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso8601(value: datetime) -> str:
    return as_utc(value).isoformat()


# 응답(JSON)으로 나갈 때만 "+00:00" 이 붙은 ISO8601 문자열로 바꾼다.
UtcDateTime = Annotated[
    datetime,
    PlainSerializer(to_iso8601, return_type=str, when_used="json"),
]
