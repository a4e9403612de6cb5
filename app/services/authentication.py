from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import AuthenticationFailed, OtpInvalidOrExpired, ValidationError
from app.core.logger import mask_phone
from app.core.security import JwtTokenProvider, Principal
from app.models.common import utcnow
from app.models.role import ROLE_USER
from app.models.user import STATUS_ACTIVE, User
from app.schemas.auth import AuthenticationResult, CurrentUser, OtpChallenge, UserSummary
from app.services.otp_store import OtpStore
from app.services.user_directory import (
    MAX_PHONE_LENGTH,
    get_user_by_phone,
    normalize_phone,
    resolve_user_for_login,
)

_LOG = logging.getLogger("app.auth")


def dev_otp_enabled() -> bool:
    return bool(settings.OTP_DEV_MODE) and not settings.is_production


def user_summary(user: User) -> UserSummary:
    return UserSummary(
        id=user.id,
        phone_number=user.phone_number,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        status=user.status,
        role=user.role_name,
        last_login_at=user.last_login_at,
    )


class AuthenticationService:
    def __init__(self, db: Session, token_provider: JwtTokenProvider, otp_store: OtpStore | None = None):
        self.db = db
        self.tokens = token_provider
        self.otp_store = otp_store or OtpStore(db)

    def _phone_or_400(self, raw: str | None) -> str:
        phone = normalize_phone(raw)
        if not phone or not any(ch.isdigit() for ch in phone):
            raise ValidationError({"phoneNumber": "Phone number is required"})
        if len(phone) > MAX_PHONE_LENGTH:
            raise ValidationError({"phoneNumber": f"Phone number must be at most {MAX_PHONE_LENGTH} characters"})
        return phone

    def initiate_authentication(self, phone_number: str | None) -> OtpChallenge:
        phone = self._phone_or_400(phone_number)
        issued = self.otp_store.issue(phone)

        challenge = OtpChallenge(
            message=f"OTP sent to {mask_phone(phone)}. Please verify to complete authentication.",
            phone_number=phone,
            expires_in=self.otp_store.ttl_seconds,
        )
        if dev_otp_enabled():
            challenge.dev_otp = issued.code
            _LOG.info("Dev mode: OTP echoed in response for phone=%s", mask_phone(phone))
        return challenge

    def verify_otp_and_authenticate(self, phone_number: str | None, code: str | None) -> AuthenticationResult:
        phone = self._phone_or_400(phone_number)
        if not str(code or "").strip():
            raise ValidationError({"otp": "OTP is required"})

        try:
            self.otp_store.verify(phone, str(code))
        except OtpInvalidOrExpired as exc:
            raise AuthenticationFailed("Invalid or expired OTP") from exc

        user = resolve_user_for_login(self.db, phone)
        if str(user.status or "").upper() != STATUS_ACTIVE:
            _LOG.info("Login refused for non-active user id=%s status=%s", user.id, user.status)
            raise AuthenticationFailed("User account is not active")

        user.last_login_at = utcnow()
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)

        role = user.role_name or ROLE_USER
        token = self.tokens.generate_token(phone, user.id, role)
        _LOG.info("User authenticated id=%s phone=%s", user.id, mask_phone(phone))
        return AuthenticationResult(
            access_token=token,
            expires_in=self.tokens.expiration_seconds,
            user=user_summary(user),
        )

    def current_user(self, principal: Principal) -> CurrentUser:
        user = get_user_by_phone(self.db, principal.phone_number)
        return CurrentUser(
            user_id=principal.user_id,
            phone_number=principal.phone_number,
            role=principal.role,
            user=user_summary(user) if user is not None and user.id == principal.user_id else None,
        )
