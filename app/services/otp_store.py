from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import OtpInvalidOrExpired
from app.core.logger import mask_phone
from app.core.security import hash_password, verify_password
from app.models.common import as_utc, utcnow
from app.models.otp_token import OtpToken

_LOG = logging.getLogger("app.otp")


@dataclass(frozen=True)
class IssuedOtp:
    code: str
    expires_at: datetime


def generate_code(length: int) -> str:
    length = max(int(length), 1)
    return f"{secrets.randbelow(10 ** length):0{length}d}"


class OtpStore:
    """Durable record of outstanding and historical OTP challenges.

    Only the newest unverified challenge per phone number is ever live: ``issue``
    removes older unverified rows in the same transaction that inserts the new
    one. Codes are stored hashed.
    """

    def __init__(
        self,
        db: Session,
        *,
        ttl_seconds: int | None = None,
        code_length: int | None = None,
        max_attempts: int | None = None,
    ):
        self.db = db
        self.ttl = timedelta(seconds=max(int(ttl_seconds or settings.OTP_TTL_SECONDS), 1))
        self.code_length = int(code_length or settings.OTP_LENGTH)
        self.max_attempts = int(max_attempts or settings.OTP_MAX_ATTEMPTS)

    @property
    def ttl_seconds(self) -> int:
        return int(self.ttl.total_seconds())

    def issue(self, phone_number: str) -> IssuedOtp:
        code = generate_code(self.code_length)
        expires_at = utcnow() + self.ttl
        try:
            superseded = (
                self.db.query(OtpToken)
                .filter(OtpToken.phone_number == phone_number, OtpToken.verified.is_(False))
                .delete(synchronize_session=False)
            )
            self.db.add(
                OtpToken(
                    phone_number=phone_number,
                    code_hash=hash_password(code),
                    expires_at=expires_at,
                    verified=False,
                    attempts=0,
                )
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        _LOG.info("OTP issued phone=%s superseded=%s", mask_phone(phone_number), int(superseded or 0))
        return IssuedOtp(code=code, expires_at=expires_at)

    def verify(self, phone_number: str, code: str) -> OtpToken:
        code = str(code or "").strip()
        now = utcnow()
        rows = (
            self.db.query(OtpToken)
            .filter(OtpToken.phone_number == phone_number, OtpToken.verified.is_(False))
            .order_by(OtpToken.created_at.desc())
            .all()
        )
        live = [row for row in rows if as_utc(row.expires_at) > now and int(row.attempts or 0) < self.max_attempts]
        # only the newest unverified challenge may be redeemed
        newest = live[0] if live else None

        if newest is not None and code.isdigit() and len(code) == self.code_length:
            if verify_password(code, newest.code_hash):
                if self._claim(newest):
                    _LOG.info("OTP verified phone=%s", mask_phone(phone_number))
                    return newest
                _LOG.info("OTP already consumed phone=%s", mask_phone(phone_number))
                raise OtpInvalidOrExpired()

        if newest is not None:
            self.db.query(OtpToken).filter(OtpToken.id == newest.id).update(
                {OtpToken.attempts: OtpToken.attempts + 1}, synchronize_session=False
            )
            self.db.commit()
        _LOG.info("OTP rejected phone=%s", mask_phone(phone_number))
        raise OtpInvalidOrExpired()

    def _claim(self, token: OtpToken) -> bool:
        """Flip ``verified`` only if no concurrent verifier got there first."""
        claimed = (
            self.db.query(OtpToken)
            .filter(OtpToken.id == token.id, OtpToken.verified.is_(False))
            .update({OtpToken.verified: True}, synchronize_session=False)
        )
        self.db.commit()
        if claimed != 1:
            return False
        self.db.refresh(token)
        return True

    def sweep_expired(self, now: datetime | None = None) -> int:
        cutoff = now or utcnow()
        try:
            deleted = (
                self.db.query(OtpToken)
                .filter(OtpToken.expires_at < cutoff)
                .delete(synchronize_session=False)
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        _LOG.info("Expired OTP sweep deleted=%s", int(deleted or 0))
        return int(deleted or 0)
