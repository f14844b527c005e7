from __future__ import annotations

import logging
import traceback
import uuid
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from stagevn.core.documents import SceneEngineError

_log = logging.getLogger("stagevn.errors")


def _error_response(
    *,
    status: int,
    code: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    body = {"ok": False, "code": code, "message": message}
    if details is not None:
        body["details"] = jsonable_encoder(details)
    return JSONResponse(body, status_code=status)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def _http_exc(request: Request, exc: StarletteHTTPException):
        detail = exc.detail
        message = str(detail) if detail else "Request failed"
        details = detail if isinstance(detail, (dict, list)) else None
        return _error_response(
            status=exc.status_code,
            code=f"http_{exc.status_code}",
            message=message,
            details=details,
        )

    @app.exception_handler(RequestValidationError)
    async def _val_exc(request: Request, exc: RequestValidationError):
        _log.debug("validation error on %s: %s", request.url.path, exc)
        return _error_response(
            status=422,
            code="validation_error",
            message="Request validation failed",
            details=exc.errors(),
        )

    @app.exception_handler(SceneEngineError)
    async def _engine_exc(request: Request, exc: SceneEngineError):
        status = 404 if exc.code == "unknown_scene" else 422
        return _error_response(
            status=status, code=exc.code, message=str(exc), details=exc.details
        )

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        err_id = uuid.uuid4().hex
        _log.error(
            "Unhandled exception [%s]: %s",
            err_id,
            "".join(traceback.format_exception(exc)),
        )
        return _error_response(
            status=500,
            code="internal_error",
            message="Internal server error",
            details={"error_id": err_id},
        )
