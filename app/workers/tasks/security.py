from __future__ import annotations

from app.db.session import SessionLocal
from app.models.common import utcnow
from app.models.otp_token import OtpToken
from app.services.otp_store import OtpStore
from app.workers.celery_app import celery_app


@celery_app.task(name="app.workers.tasks.security.cleanup_expired_otps")
def cleanup_expired_otps():
    db = SessionLocal()
    try:
        total = db.query(OtpToken).count()
        deleted = OtpStore(db).sweep_expired(utcnow())
        return {"checked": int(total), "deleted": int(deleted)}
    finally:
        db.close()
