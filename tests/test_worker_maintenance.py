from datetime import timedelta

from tests.base import DatabaseTestBase

from app.models.common import utcnow
from app.models.otp_token import OtpToken
from app.workers.celery_app import celery_app
from app.workers.tasks import security as security_task


class WorkerMaintenanceTaskTests(DatabaseTestBase):
    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        cls._old_security_session_local = security_task.SessionLocal
        security_task.SessionLocal = cls.SessionLocal

    @classmethod
    def tearDownClass(cls):
        security_task.SessionLocal = cls._old_security_session_local
        super().tearDownClass()

    def test_cleanup_expired_otps_removes_only_expired_rows(self):
        now = utcnow()
        with self.SessionLocal() as db:
            db.add_all(
                [
                    OtpToken(phone_number="+79990000001", code_hash="h", expires_at=now - timedelta(minutes=5)),
                    OtpToken(
                        phone_number="+79990000002",
                        code_hash="h",
                        expires_at=now - timedelta(minutes=1),
                        verified=True,
                    ),
                    OtpToken(phone_number="+79990000003", code_hash="h", expires_at=now + timedelta(minutes=5)),
                ]
            )
            db.commit()

        result = security_task.cleanup_expired_otps()

        self.assertEqual(result, {"checked": 3, "deleted": 2})
        with self.SessionLocal() as db:
            phones = [row.phone_number for row in db.query(OtpToken).all()]
        self.assertEqual(phones, ["+79990000003"])

    def test_cleanup_is_scheduled_in_beat(self):
        entry = celery_app.conf.beat_schedule["cleanup_expired_otps"]
        self.assertEqual(entry["task"], "app.workers.tasks.security.cleanup_expired_otps")
        self.assertGreaterEqual(entry["schedule"], 60.0)
