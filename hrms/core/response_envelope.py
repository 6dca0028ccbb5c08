from __future__ import annotations

import json
from http import HTTPStatus
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

# Paths served verbatim (OpenAPI schema and docs UI)
_PASSTHROUGH_PREFIXES = ("/openapi.json", "/docs", "/redoc")


def _success_code(status_code: int) -> str:
    return {200: "ok", 201: "created", 202: "accepted"}.get(status_code, "ok")


def _success_message(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Success"


def build_success_envelope(data: Any, status_code: int = 200) -> dict[str, Any]:
    return {
        "code": _success_code(status_code),
        "message": _success_message(status_code),
        "data": data,
        "details": {},
    }


def _is_enveloped(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    return "code" in payload and "message" in payload and ("data" in payload or "details" in payload)


def _rewrap(original: Response, content: dict[str, Any], status_code: int) -> JSONResponse:
    wrapped = JSONResponse(status_code=status_code, content=content)
    for key, value in original.headers.items():
        if key.lower() in {"content-length", "content-type"}:
            continue
        wrapped.headers[key] = value
    return wrapped


class ResponseEnvelopeMiddleware(BaseHTTPMiddleware):
    """Wrap successful JSON bodies as ``{"code", "message", "data", "details"}``.

    Error responses are already enveloped by the exception handlers and are
    passed through untouched. A 204 becomes a 200 with ``data: null`` so
    clients can always parse the body.
    """

    async def dispatch(self, request, call_next) -> Response:
        response = await call_next(request)

        if not 200 <= response.status_code < 300:
            return response
        if request.url.path.startswith(_PASSTHROUGH_PREFIXES):
            return response

        if response.status_code == 204:
            return _rewrap(response, build_success_envelope(None, 200), 200)

        if response.headers.get("content-type", "").split(";")[0] != "application/json":
            return response

        body = b""
        async for chunk in response.body_iterator:
            body += chunk if isinstance(chunk, bytes) else chunk.encode("utf-8")
        try:
            payload = json.loads(body) if body else None
        except ValueError:
            return Response(
                content=body,
                status_code=response.status_code,
                headers=dict(response.headers),
                media_type=response.media_type,
            )

        if _is_enveloped(payload):
            normalized = dict(payload)
            normalized.setdefault("data", None)
            normalized.setdefault("details", {})
            return _rewrap(response, normalized, response.status_code)

        return _rewrap(
            response,
            build_success_envelope(payload, response.status_code),
            response.status_code,
        )


def register_response_envelope(app) -> None:
    app.add_middleware(ResponseEnvelopeMiddleware)
