"""Translate service errors into JSON error responses."""
from __future__ import annotations

import logging
from typing import Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from api.schemas import ErrorResp
from services.errors import InterviewServiceError

logger = logging.getLogger(__name__)

STATUS_BY_CODE: Dict[str, int] = {
    "QuotaExhausted": 403,
    "InvalidToken": 401,
    "InterviewTerminal": 409,
    "StateConflict": 409,
    "NotFound": 404,
    "ValidationFailed": 422,
    "StorageFailure": 503,
    "CollaboratorUnavailable": 503,
}


def _error(status: int, code: str, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status, content=ErrorResp(error=code, detail=detail).model_dump())


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(InterviewServiceError)
    async def _service_error(request: Request, exc: InterviewServiceError) -> JSONResponse:
        status = STATUS_BY_CODE.get(exc.code, 500)
        if status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
        response = _error(status, exc.code, exc.detail)
        if exc.retryable:
            response.headers["Retry-After"] = "1"
        return response

    @app.exception_handler(RequestValidationError)
    async def _request_invalid(request: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        where = ".".join(str(part) for part in first.get("loc", ()))
        detail = f"{where}: {first.get('msg', 'invalid request')}" if where else "invalid request"
        return _error(422, "ValidationFailed", detail)


__all__ = ["STATUS_BY_CODE", "register_error_handlers"]
