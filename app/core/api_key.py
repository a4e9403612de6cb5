from __future__ import annotations

import logging
import secrets

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.config import settings

API_KEY_HEADER = "X-API-Key"
PUBLIC_PATH_PREFIXES = ("/api/auth/", "/health", "/docs", "/redoc", "/openapi.json")
_LOG = logging.getLogger("app.api_key")


def is_public_path(path: str) -> bool:
    if path == "/":
        return True
    return any(path.startswith(prefix) for prefix in PUBLIC_PATH_PREFIXES)


def api_key_allowed(raw: str | None, allowed: list[str]) -> bool:
    candidate = str(raw or "").strip()
    if not candidate:
        return False
    return any(secrets.compare_digest(candidate, key) for key in allowed)


def install_api_key_gate(app: FastAPI) -> None:
    @app.middleware("http")
    async def _api_key_gate_middleware(request: Request, call_next):
        allowed = settings.api_keys_list
        if not allowed or request.method == "OPTIONS" or is_public_path(request.url.path):
            return await call_next(request)

        if not api_key_allowed(request.headers.get(API_KEY_HEADER), allowed):
            _LOG.warning("Rejected request without valid API key path=%s", request.url.path)
            return JSONResponse(status_code=401, content={"detail": "Unauthorized - Invalid or missing API Key"})
        return await call_next(request)
