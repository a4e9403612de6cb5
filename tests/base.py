import os
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, delete
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure settings can be initialized in test environments
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-at-least-32-bytes-long")

from app.core.config import settings
from app.core.security import get_token_provider
from app.db.session import get_db
from app.main import app
from app.models.otp_token import OtpToken
from app.models.role import Role
from app.models.user import User
from app.services.rate_limit import InMemoryRateLimiter


class DatabaseTestBase(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autocommit=False, autoflush=False)
        Role.__table__.create(bind=cls.engine)
        User.__table__.create(bind=cls.engine)
        OtpToken.__table__.create(bind=cls.engine)

    @classmethod
    def tearDownClass(cls):
        OtpToken.__table__.drop(bind=cls.engine)
        User.__table__.drop(bind=cls.engine)
        Role.__table__.drop(bind=cls.engine)
        cls.engine.dispose()

    def setUp(self):
        with self.SessionLocal() as db:
            db.execute(delete(OtpToken))
            db.execute(delete(User))
            db.execute(delete(Role))
            db.commit()


class AuthApiTestBase(DatabaseTestBase):
    PHONE = "+1234567890"

    def setUp(self):
        super().setUp()

        def override_get_db():
            db = self.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        self.client = TestClient(app)
        self.tokens = get_token_provider()

        self.limiter = InMemoryRateLimiter()
        self._patches = [
            patch("app.services.rate_limit.get_rate_limiter", return_value=self.limiter),
            patch.object(settings, "OTP_DEV_MODE", True),
            patch.object(settings, "APP_ENV", "test"),
            patch.object(settings, "AUTH_UNKNOWN_PHONE_POLICY", "provision"),
            patch.object(settings, "API_KEYS", ""),
        ]
        for item in self._patches:
            item.start()

    def tearDown(self):
        for item in reversed(self._patches):
            item.stop()
        self.client.close()
        app.dependency_overrides.clear()

    def request_otp(self, phone: str | None = None):
        return self.client.post("/api/auth/request-otp", json={"phoneNumber": phone or self.PHONE})

    def verify_otp(self, otp: str, phone: str | None = None):
        return self.client.post("/api/auth/verify-otp", json={"phoneNumber": phone or self.PHONE, "otp": otp})

    def login(self, phone: str | None = None) -> str:
        sent = self.request_otp(phone)
        self.assertEqual(sent.status_code, 200)
        verified = self.verify_otp(sent.json()["devOtp"], phone)
        self.assertEqual(verified.status_code, 200)
        return verified.json()["accessToken"]
