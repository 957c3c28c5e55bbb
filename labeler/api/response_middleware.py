"""Middleware to ensure successful responses use the shared envelope."""

from __future__ import annotations

import json
from typing import Any

import structlog
from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

from labeler.api.response_utils import REQUEST_ID_HEADER, build_meta, get_request_id
from labeler.schemas.response import ResponseEnvelope


class SuccessEnvelopeMiddleware(BaseHTTPMiddleware):
    """Wrap successful JSON responses in the envelope and echo the request id."""

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        request_id = get_request_id(request)
        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        if not self._is_json(response) or response.status_code >= 400:
            response.headers[REQUEST_ID_HEADER] = request_id
            return response

        body = await self._read_body(response)
        headers = {
            key: value
            for key, value in response.headers.items()
            if key.lower() not in ("content-length", "content-type")
        }
        headers[REQUEST_ID_HEADER] = request_id

        try:
            payload = json.loads(body) if body else None
        except ValueError:
            return Response(
                content=body,
                status_code=response.status_code,
                headers=headers,
                media_type=response.media_type,
            )

        if isinstance(payload, dict) and "success" in payload and "meta" in payload:
            return JSONResponse(status_code=response.status_code, content=payload, headers=headers)

        envelope = ResponseEnvelope(
            success=True,
            data=payload,
            error=None,
            meta=build_meta(request),
        )
        return JSONResponse(
            status_code=response.status_code,
            content=jsonable_encoder(envelope, by_alias=True),
            headers=headers,
        )

    @staticmethod
    async def _read_body(response: Response) -> bytes:
        body = getattr(response, "body", None)
        if body:
            return body

        chunks: list[bytes] = []
        async for chunk in response.body_iterator:
            chunks.append(chunk)
        return b"".join(chunks)

    @staticmethod
    def _is_json(response: Response) -> bool:
        if response.status_code in (204, 304):
            return False
        return "application/json" in response.headers.get("content-type", "")
