"""
Response envelope helpers.

Success: {"success": true, "message": ..., "data": ..., "meta": ...}
Failure: {"success": false, "message": ..., "error": {"code", "message", "details"?}}
"""

from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from taskhub.core.results import ErrorCode, ServiceError, ServiceResult, http_status_for


def success(
    data: Any = None,
    message: str = "OK",
    meta: dict[str, Any] | None = None,
    status_code: int = 200,
) -> JSONResponse:
    body: dict[str, Any] = {"success": True, "message": message, "data": data}
    if meta:
        body["meta"] = meta
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def failure(error: ServiceError, status_code: int | None = None) -> JSONResponse:
    body = {"success": False, "message": error.message, "error": error.to_dict()}
    return JSONResponse(
        status_code=status_code or http_status_for(error.code),
        content=jsonable_encoder(body),
    )


def error_response(
    code: ErrorCode, message: str, details: Any = None, status_code: int | None = None
) -> JSONResponse:
    return failure(ServiceError(code=code, message=message, details=details), status_code)


def respond(result: ServiceResult[Any], message: str, status_code: int = 200) -> JSONResponse:
    """Turn a ServiceResult into the envelope, mapping failures to their status."""
    if not result.success:
        return failure(result.error)
    return success(result.data, message, meta=result.meta or None, status_code=status_code)


def get_services(request: Request):
    """The Services container built by create_app."""
    return request.app.state.services
