"""공통 에러 응답 envelope 와 FastAPI exception handler 등록."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..exceptions import AuthServiceError


logger = logging.getLogger(__name__)


def build_error_response(
    status_code: int,
    message: str,
    *,
    errors: list[dict[str, Any]] | None = None,
    detail: str | None = None,
    production: bool = True,
) -> JSONResponse:
    body: dict[str, Any] = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    # 내부 오류 상세는 non-production 에서만 노출한다.
    if detail and not production:
        body["error"] = detail
    return JSONResponse(status_code=status_code, content=body)


def error_response_for(exc: AuthServiceError, *, production: bool) -> JSONResponse:
    detail = None
    if exc.__cause__ is not None:
        detail = str(exc.__cause__)
    return build_error_response(
        exc.status_code,
        exc.message,
        errors=exc.errors,
        detail=detail,
        production=production,
    )


def _format_validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    errors: list[dict[str, Any]] = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        message = str(error.get("msg", "invalid value"))
        # field_validator 에서 던진 ValueError 는 "Value error, ..." 접두사가 붙는다.
        if message.startswith("Value error, "):
            message = message[len("Value error, ") :]
        errors.append({"field": ".".join(location) or "body", "message": message})
    return errors


def register_exception_handlers(app: FastAPI, *, production: bool) -> None:
    async def handle_service_error(request: Request, exc: AuthServiceError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("request failed: %s", exc.message, exc_info=exc)
        return error_response_for(exc, production=production)

    async def handle_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return build_error_response(
            400,
            "Validation failed",
            errors=_format_validation_errors(exc),
        )

    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled error")
        return build_error_response(
            500,
            "Internal Server Error",
            detail=str(exc),
            production=production,
        )

    app.add_exception_handler(AuthServiceError, handle_service_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, handle_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, handle_unexpected_error)
