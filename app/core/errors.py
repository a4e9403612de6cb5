from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

_LOG = logging.getLogger("app.errors")


class ServiceError(Exception):
    status_code = 500
    detail = "Internal server error"
    headers: dict[str, str] | None = None

    def __init__(self, detail: str | None = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)

    def body(self) -> dict[str, Any]:
        return {"detail": self.detail}


class ValidationError(ServiceError):
    status_code = 400
    detail = "Validation failed"

    def __init__(self, errors: dict[str, str] | None = None, detail: str | None = None):
        self.errors = dict(errors or {})
        super().__init__(detail)

    def body(self) -> dict[str, Any]:
        return {"detail": self.detail, "errors": self.errors}


class AuthenticationFailed(ServiceError):
    status_code = 401
    detail = "Authentication failed"


class OtpInvalidOrExpired(AuthenticationFailed):
    detail = "Invalid or expired OTP"


class UserNotRegistered(AuthenticationFailed):
    status_code = 403
    detail = "No user is registered for this phone number"


class TokenInvalid(ServiceError):
    status_code = 401
    detail = "Invalid or missing bearer token"
    headers = {"WWW-Authenticate": "Bearer"}


class RateLimited(ServiceError):
    status_code = 429
    detail = "Too many OTP requests"

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = max(int(retry_after_seconds), 1)
        self.headers = {"Retry-After": str(self.retry_after_seconds)}
        super().__init__(f"Too many OTP requests. Retry in {self.retry_after_seconds} s.")


def _field_name(loc: tuple | list) -> str:
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header")]
    return ".".join(parts) or "body"


def _request_id(request: Request) -> str:
    return str(getattr(request.state, "request_id", "-"))


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ServiceError)
    async def _service_error_handler(request: Request, exc: ServiceError):
        if exc.status_code >= 500:
            _LOG.error("%s %s failed: %s request_id=%s", request.method, request.url.path, exc, _request_id(request))
        return JSONResponse(status_code=exc.status_code, content=exc.body(), headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def _request_validation_handler(request: Request, exc: RequestValidationError):
        errors: dict[str, str] = {}
        for item in exc.errors():
            field = _field_name(item.get("loc") or ())
            message = str(item.get("msg") or "Invalid value")
            # pydantic prefixes messages raised from validators
            if message.startswith("Value error, "):
                message = message[len("Value error, "):]
            errors.setdefault(field, message)
        return JSONResponse(status_code=400, content=ValidationError(errors).body())

    @app.exception_handler(Exception)
    async def _unhandled_error_handler(request: Request, exc: Exception):
        _LOG.exception(
            "Unhandled error on %s %s request_id=%s",
            request.method,
            request.url.path,
            _request_id(request),
        )
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
