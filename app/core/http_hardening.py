from __future__ import annotations

import logging
import re
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request

REQUEST_ID_HEADER = "X-Request-ID"
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,128}$")
_LOG = logging.getLogger("app.http")

BASE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
}
# JSON-only API surface
API_HEADERS = {
    "Cross-Origin-Resource-Policy": "same-origin",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}

DOCS_PATHS = ("/docs", "/redoc")
AUTH_PATHS = ("/api/auth/", "/api/users/")
AUTH_FAILURE_STATUSES = {401, 403, 429}
VARY_ON = ("Authorization", "X-API-Key")


def request_id_from_header(raw: str | None) -> str:
    value = str(raw or "").strip()
    if not value or not _REQUEST_ID_RE.fullmatch(value):
        return uuid4().hex
    return value


def security_headers_for(path: str) -> dict[str, str]:
    headers = dict(BASE_HEADERS)
    # Swagger UI loads inline assets from its CDN
    if not path.startswith(DOCS_PATHS):
        headers.update(API_HEADERS)
    return headers


def credential_kind(request: Request) -> str:
    """Name the credential a request presented without ever exposing it."""
    authorization = str(request.headers.get("authorization") or "")
    if authorization.lower().startswith("bearer "):
        return "bearer"
    if request.headers.get("x-api-key"):
        return "api_key"
    return "none"


def merge_vary(existing: str | None, extra: tuple[str, ...]) -> str:
    values = [v.strip() for v in str(existing or "").split(",") if v.strip()]
    seen = {v.lower() for v in values}
    values.extend(v for v in extra if v.lower() not in seen)
    return ", ".join(values)


def access_log_level(path: str, status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code in AUTH_FAILURE_STATUSES and path.startswith(AUTH_PATHS):
        return logging.WARNING
    return logging.INFO


def install_http_hardening(app: FastAPI) -> None:
    @app.middleware("http")
    async def _http_hardening_middleware(request: Request, call_next):
        request_id = request_id_from_header(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        started_at = perf_counter()
        path = request.url.path

        response = await call_next(request)

        response.headers.update(security_headers_for(path))
        # bearer tokens and OTP challenges are per-caller
        response.headers["Cache-Control"] = "no-store"
        response.headers["Pragma"] = "no-cache"
        response.headers["Vary"] = merge_vary(response.headers.get("Vary"), VARY_ON)
        response.headers[REQUEST_ID_HEADER] = request_id

        _LOG.log(
            access_log_level(path, response.status_code),
            "%s %s status=%s credentials=%s duration_ms=%.2f request_id=%s",
            request.method,
            path,
            response.status_code,
            credential_kind(request),
            (perf_counter() - started_at) * 1000.0,
            request_id,
        )
        return response
