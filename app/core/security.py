from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import DEFAULT_JWT_SECRET, settings
from app.core.errors import TokenInvalid

_LOG = logging.getLogger("app.security")

JWT_ALGORITHM = "HS256"
MIN_SECRET_BYTES = 32

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)

def create_jwt(payload: dict, secret: str, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    data = payload.copy()
    data.update({"iat": int(now.timestamp()), "exp": int((now + expires_delta).timestamp())})
    return jwt.encode(data, secret, algorithm=JWT_ALGORITHM)

def decode_jwt(token: str, secret: str) -> dict:
    return jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])


@dataclass(frozen=True)
class Principal:
    user_id: uuid.UUID
    phone_number: str
    role: str


class JwtTokenProvider:
    """Issues and validates the bearer tokens handed out after OTP verification.

    The signing key is captured at construction and never changes afterwards.
    """

    def __init__(self, secret: str, expiration_seconds: int):
        if not secret:
            raise ValueError("JWT secret must not be empty")
        if len(secret.encode("utf-8")) < MIN_SECRET_BYTES:
            _LOG.warning("JWT secret is shorter than %s bytes; use a 256-bit key", MIN_SECRET_BYTES)
        self._secret = secret
        self._expiration = timedelta(seconds=max(int(expiration_seconds), 1))

    @property
    def expiration_seconds(self) -> int:
        return int(self._expiration.total_seconds())

    def generate_token(self, phone_number: str, user_id: uuid.UUID | str, role: str) -> str:
        claims = {
            "sub": phone_number,
            "userId": str(user_id),
            "phoneNumber": phone_number,
            "role": role,
        }
        return create_jwt(claims, self._secret, self._expiration)

    def _claims(self, token: str | None) -> dict:
        raw = str(token or "").strip()
        if not raw:
            raise TokenInvalid()
        try:
            return decode_jwt(raw, self._secret)
        except JWTError as exc:
            _LOG.debug("Bearer token rejected: %s", type(exc).__name__)
            raise TokenInvalid() from exc

    def authenticate(self, token: str | None) -> Principal:
        claims = self._claims(token)
        phone = str(claims.get("sub") or "").strip()
        try:
            user_id = uuid.UUID(str(claims.get("userId") or ""))
        except ValueError as exc:
            raise TokenInvalid() from exc
        if not phone:
            raise TokenInvalid()
        return Principal(user_id=user_id, phone_number=phone, role=str(claims.get("role") or ""))

    def validate_token(self, token: str | None) -> bool:
        try:
            self.authenticate(token)
        except TokenInvalid:
            return False
        return True

    def get_user_id_from_token(self, token: str) -> uuid.UUID:
        return self.authenticate(token).user_id

    def get_phone_number_from_token(self, token: str) -> str:
        return self.authenticate(token).phone_number


@lru_cache(maxsize=1)
def get_token_provider() -> JwtTokenProvider:
    if settings.is_production and settings.JWT_SECRET == DEFAULT_JWT_SECRET:
        raise RuntimeError("JWT_SECRET must be set explicitly in production")
    return JwtTokenProvider(settings.JWT_SECRET, settings.JWT_EXPIRATION_SECONDS)
