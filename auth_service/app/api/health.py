from __future__ import annotations

from fastapi import APIRouter


router = APIRouter()


@router.get("/health", summary="헬스 체크 (세션 미들웨어를 거치지 않는다)")
def health() -> dict[str, str]:
    return {"status": "ok"}
