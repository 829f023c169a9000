# backend/lesson_engine/errors.py
"""
RFC 7807 problem responses for every error the API returns.

Domain errors carry {"message", "code", "details"} (see
DomainException.to_http_exception); the problem body exposes them as
detail, code and errors.
"""

from http import HTTPStatus
import logging
from typing import Any, Dict, Mapping, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.exceptions import DomainException

logger = logging.getLogger(__name__)

PROBLEM_MEDIA_TYPE = "application/problem+json"
VALIDATION_ERROR_CODE = "validation_error"


def status_title(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def problem_body(
    status_code: int,
    instance: str,
    detail: Optional[str] = None,
    code: Optional[str] = None,
    errors: Any = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "type": "about:blank",
        "title": status_title(status_code),
        "status": status_code,
        "detail": detail or "",
        "instance": instance,
    }
    if code:
        body["code"] = code
    if errors:
        body["errors"] = jsonable_encoder(errors)
    return body


def _problem_response(
    request: Request,
    status_code: int,
    detail: Any,
    headers: Optional[Mapping[str, str]] = None,
) -> JSONResponse:
    if isinstance(detail, dict):
        message = detail.get("message")
        body = problem_body(
            status_code,
            request.url.path,
            detail=message if isinstance(message, str) else None,
            code=detail.get("code"),
            errors=detail.get("details"),
        )
    else:
        body = problem_body(
            status_code, request.url.path, detail=str(detail) if detail is not None else None
        )

    if status_code >= 500:
        logger.error(
            f"{request.method} {request.url.path} failed with {status_code}",
            extra={"code": body.get("code"), "detail": body["detail"]},
        )
    return JSONResponse(
        body,
        status_code=status_code,
        media_type=PROBLEM_MEDIA_TYPE,
        headers=dict(headers) if headers else None,
    )


def register_error_handlers(app: FastAPI) -> None:
    """Install problem+json handlers for HTTP, domain and validation errors."""

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _problem_response(request, exc.status_code, exc.detail, exc.headers)

    @app.exception_handler(HTTPException)
    async def fastapi_http_error(request: Request, exc: HTTPException) -> JSONResponse:
        return _problem_response(request, exc.status_code, exc.detail, exc.headers)

    @app.exception_handler(DomainException)
    async def domain_error(request: Request, exc: DomainException) -> JSONResponse:
        # Raised outside a route's try/except (dependencies, background setup)
        translated = exc.to_http_exception()
        return _problem_response(request, translated.status_code, translated.detail)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        body = problem_body(
            422,
            request.url.path,
            detail="Request validation failed",
            code=VALIDATION_ERROR_CODE,
            errors=exc.errors(),
        )
        return JSONResponse(body, status_code=422, media_type=PROBLEM_MEDIA_TYPE)
