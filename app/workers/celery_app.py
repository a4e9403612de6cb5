from celery import Celery
from app.core.config import settings

celery_app = Celery(
    "fincore_usermgmt",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["app.workers.tasks.security"],
)

celery_app.conf.beat_schedule = {
    "cleanup_expired_otps": {
        "task": "app.workers.tasks.security.cleanup_expired_otps",
        "schedule": float(max(settings.OTP_SWEEP_INTERVAL_SECONDS, 60)),
    },
}
celery_app.conf.timezone = "UTC"
