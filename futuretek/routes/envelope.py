"""Response envelope, API errors and query-parameter helpers shared by the routes.

Every JSON body is either ``{"success": true, "data": ..., "message": ...}`` or
``{"success": false, "error": {"code": ..., "message": ...}}``.
"""

import json
import logging
import re
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

logger = logging.getLogger(__name__)

UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


class ApiError(Exception):
    def __init__(self, message: str, code: str = "BAD_REQUEST", status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code


def success_response(data: Any = None, message: Optional[str] = None, status_code: int = 200) -> JSONResponse:
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return JSONResponse(status_code=status_code, content=body)


def error_response(message: str, code: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": {"code": code, "message": message}},
    )


async def read_body(request: Request, model):
    """Parse the JSON body into ``model``, raising VALIDATION_ERROR on bad input.

    Used where one endpoint accepts different bodies depending on query flags.
    """
    try:
        payload = await request.json()
    except json.JSONDecodeError:
        raise ApiError("Request body must be JSON", "VALIDATION_ERROR")
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = first.get("msg", "Invalid request")
        raise ApiError(f"{location}: {message}" if location else message, "VALIDATION_ERROR")


def parse_boolean(value: Optional[str]) -> bool:
    return value is not None and value.lower() in ("true", "1")


def validate_id(value: Optional[str], name: str = "ID") -> str:
    """Return ``value`` if it is a UUID string, otherwise raise a 400 ApiError."""
    if not value:
        raise ApiError(f"{name} is required", "VALIDATION_ERROR")
    if not UUID_RE.match(value):
        raise ApiError("Invalid ID format", "VALIDATION_ERROR")
    return value


def validate_optional_id(value: Optional[str], name: str = "ID") -> Optional[str]:
    return validate_id(value, name) if value else None


# ── Exception handlers ───────────────────────────────────────────────

async def _api_error_handler(request: Request, exc: ApiError):
    return error_response(exc.message, exc.code, exc.status_code)


async def _validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if location:
        message = f"{location}: {message}"
    return error_response(message, "VALIDATION_ERROR", 400)


async def _unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_response("Internal server error", "INTERNAL_ERROR", 500)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
