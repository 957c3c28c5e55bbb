"""Common exception handlers for API responses."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from labeler.core.exceptions import (
    EmbeddingUnavailableError,
    LabelerException,
    ProviderError,
    ProviderUnavailableError,
    RateLimitedError,
    RecordNotFoundError,
    RetrievalUnavailableError,
    StoreError,
    ValidationError,
)
from labeler.core.logging import get_logger
from labeler.api.response_utils import build_meta
from labeler.schemas.response import ResponseError, ResponseEnvelope

logger = get_logger(__name__)

# Most specific classes first; lookup walks the exception's MRO
EXCEPTION_RESPONSE_MAP: dict[type[Exception], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    RecordNotFoundError: status.HTTP_404_NOT_FOUND,
    RateLimitedError: status.HTTP_429_TOO_MANY_REQUESTS,
    EmbeddingUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
    ProviderUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
    ProviderError: status.HTTP_503_SERVICE_UNAVAILABLE,
    RetrievalUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
    StoreError: status.HTTP_503_SERVICE_UNAVAILABLE,
}
ERROR_HINTS: dict[type[Exception], str] = {
    RateLimitedError: "Retry after a short delay.",
    EmbeddingUnavailableError: "The embedding provider is unavailable; retry later.",
    RetrievalUnavailableError: "The vector store is unavailable; retry later.",
}
DEFAULT_ERROR_CODE = "INTERNAL.UNEXPECTED"


def status_for_exception(exc: LabelerException) -> int:
    for klass in type(exc).__mro__:
        if klass in EXCEPTION_RESPONSE_MAP:
            return EXCEPTION_RESPONSE_MAP[klass]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def register_exception_handlers(app: FastAPI) -> None:
    """Register handlers that wrap exceptions in the common envelope."""

    app.add_exception_handler(LabelerException, _labeler_exception_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_error_handler)
    app.add_exception_handler(HTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)


def _error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: Any | None = None,
    hint: str | None = None,
) -> JSONResponse:
    envelope = ResponseEnvelope[None](
        success=False,
        data=None,
        error=ResponseError(code=code, message=message, details=details, hint=hint),
        meta=build_meta(request),
    )
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(envelope, by_alias=True),
    )


def _compress_detail(detail: Any) -> tuple[str, Any | None]:
    if isinstance(detail, dict):
        message = detail.get("message", str(detail))
        return message, detail.get("details") or detail

    return str(detail), None


def _format_validation_message(errors: list[dict[str, Any]]) -> str:
    if not errors:
        return "Validation error"

    parts: list[str] = []
    for error in errors:
        loc = error.get("loc", [])
        msg = error.get("msg", "Validation error")
        loc_path = ".".join(str(item) for item in loc) if loc else None
        parts.append(f"{loc_path}: {msg}" if loc_path else msg)

    return "; ".join(parts)


async def _labeler_exception_handler(request: Request, exc: LabelerException) -> JSONResponse:
    status_code = status_for_exception(exc)
    hint = next(
        (ERROR_HINTS[klass] for klass in type(exc).__mro__ if klass in ERROR_HINTS), None
    )
    logger.info(
        "api_error_response",
        path=request.url.path,
        status_code=status_code,
        code=exc.code,
    )
    return _error_response(
        request,
        status_code=status_code,
        code=exc.code,
        message=exc.message,
        hint=hint,
    )


async def _request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors() or []
    return _error_response(
        request,
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        code="ValidationError",
        message=_format_validation_message(errors),
        details={"errors": jsonable_encoder(errors)},
    )


async def _http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    message, details = _compress_detail(exc.detail)
    code = getattr(exc, "code", None) or f"HTTP.{exc.status_code}"
    return _error_response(
        request,
        status_code=exc.status_code,
        code=code,
        message=message,
        details=details,
    )


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("api_unhandled_exception", path=request.url.path)
    return _error_response(
        request,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        code=DEFAULT_ERROR_CODE,
        message="Unexpected server error.",
    )
