from datetime import timedelta
from unittest.mock import patch

from tests.base import DatabaseTestBase

from app.core.errors import OtpInvalidOrExpired
from app.core.security import hash_password
from app.models.common import as_utc, utcnow
from app.models.otp_token import OtpToken
from app.services import otp_store
from app.services.otp_store import OtpStore, generate_code

PHONE = "+1234567890"


class OtpStoreTests(DatabaseTestBase):
    def setUp(self):
        super().setUp()
        self.db = self.SessionLocal()
        self.store = OtpStore(self.db, ttl_seconds=300, code_length=6, max_attempts=5)

    def tearDown(self):
        self.db.close()

    def _unverified(self, phone: str = PHONE) -> list[OtpToken]:
        return (
            self.db.query(OtpToken)
            .filter(OtpToken.phone_number == phone, OtpToken.verified.is_(False))
            .all()
        )

    def test_generate_code_is_fixed_length_numeric(self):
        for _ in range(50):
            code = generate_code(6)
            self.assertEqual(len(code), 6)
            self.assertTrue(code.isdigit())

    def test_issue_stores_hashed_code_with_expiry(self):
        before = utcnow()
        issued = self.store.issue(PHONE)

        self.assertRegex(issued.code, r"^\d{6}$")
        self.assertGreaterEqual(issued.expires_at, before + timedelta(seconds=299))

        rows = self._unverified()
        self.assertEqual(len(rows), 1)
        self.assertNotEqual(rows[0].code_hash, issued.code)
        self.assertFalse(rows[0].verified)
        self.assertEqual(rows[0].attempts, 0)

    def test_second_issue_supersedes_first(self):
        with patch("app.services.otp_store.generate_code", side_effect=["111111", "222222"]):
            first = self.store.issue(PHONE)
            second = self.store.issue(PHONE)

        self.assertEqual(len(self._unverified()), 1)
        with self.assertRaises(OtpInvalidOrExpired):
            self.store.verify(PHONE, first.code)
        self.assertTrue(self.store.verify(PHONE, second.code).verified)

    def test_issue_keeps_other_phone_numbers(self):
        self.store.issue(PHONE)
        self.store.issue("+1987654321")
        self.store.issue(PHONE)
        self.assertEqual(len(self._unverified("+1987654321")), 1)

    def test_verify_consumes_code_once(self):
        issued = self.store.issue(PHONE)

        token = self.store.verify(PHONE, issued.code)
        self.assertTrue(token.verified)

        with self.assertRaises(OtpInvalidOrExpired):
            self.store.verify(PHONE, issued.code)

    def test_verify_rejects_wrong_code(self):
        with patch("app.services.otp_store.generate_code", return_value="123456"):
            self.store.issue(PHONE)
        with self.assertRaises(OtpInvalidOrExpired):
            self.store.verify(PHONE, "654321")

    def test_verify_rejects_unknown_phone(self):
        with self.assertRaises(OtpInvalidOrExpired):
            self.store.verify("+1000000000", "000000")

    def test_verify_rejects_expired_token_still_in_store(self):
        self.db.add(
            OtpToken(
                phone_number=PHONE,
                code_hash=hash_password("123456"),
                expires_at=utcnow() - timedelta(seconds=1),
                verified=False,
                attempts=0,
            )
        )
        self.db.commit()

        with self.assertRaises(OtpInvalidOrExpired):
            self.store.verify(PHONE, "123456")

    def test_older_live_code_is_not_accepted(self):
        now = utcnow()
        self.db.add_all(
            [
                OtpToken(
                    phone_number=PHONE,
                    code_hash=hash_password("111111"),
                    expires_at=now + timedelta(minutes=5),
                    verified=False,
                    attempts=0,
                    created_at=now - timedelta(seconds=30),
                ),
                OtpToken(
                    phone_number=PHONE,
                    code_hash=hash_password("222222"),
                    expires_at=now + timedelta(minutes=5),
                    verified=False,
                    attempts=0,
                    created_at=now,
                ),
            ]
        )
        self.db.commit()

        with self.assertRaises(OtpInvalidOrExpired):
            self.store.verify(PHONE, "111111")
        self.assertTrue(self.store.verify(PHONE, "222222").verified)

    def test_concurrent_verify_consumes_code_once(self):
        with patch("app.services.otp_store.generate_code", return_value="123456"):
            self.store.issue(PHONE)

        other_db = self.SessionLocal()
        other = OtpStore(other_db, ttl_seconds=300, code_length=6, max_attempts=5)
        real_verify_password = otp_store.verify_password
        started = []
        winners = []

        # the second verifier redeems the code while the first is still hashing
        def interleaved(code, hashed):
            if not started:
                started.append(True)
                winners.append(other.verify(PHONE, code))
            return real_verify_password(code, hashed)

        try:
            with patch("app.services.otp_store.verify_password", side_effect=interleaved):
                with self.assertRaises(OtpInvalidOrExpired):
                    self.store.verify(PHONE, "123456")
        finally:
            other_db.close()

        self.assertEqual(len(winners), 1)
        self.assertTrue(winners[0].verified)
        self.assertEqual(self.db.query(OtpToken).filter(OtpToken.verified.is_(True)).count(), 1)


    def test_failure_reasons_are_indistinguishable(self):
        with patch("app.services.otp_store.generate_code", return_value="123456"):
            self.store.issue(PHONE)
        self.store.verify(PHONE, "123456")

        messages = set()
        for phone, code in ((PHONE, "123456"), (PHONE, "999999"), ("+1000000000", "123456")):
            with self.assertRaises(OtpInvalidOrExpired) as ctx:
                self.store.verify(phone, code)
            messages.add(str(ctx.exception))
        self.assertEqual(len(messages), 1)

    def test_too_many_wrong_attempts_burn_the_code(self):
        with patch("app.services.otp_store.generate_code", return_value="123456"):
            self.store.issue(PHONE)

        for _ in range(5):
            with self.assertRaises(OtpInvalidOrExpired):
                self.store.verify(PHONE, "000000")

        with self.assertRaises(OtpInvalidOrExpired):
            self.store.verify(PHONE, "123456")
        self.assertEqual(self._unverified()[0].attempts, 5)

    def test_sweep_deletes_expired_rows_regardless_of_state(self):
        now = utcnow()
        self.db.add_all(
            [
                OtpToken(phone_number=PHONE, code_hash="x", expires_at=now - timedelta(minutes=10), verified=True),
                OtpToken(phone_number=PHONE, code_hash="y", expires_at=now - timedelta(minutes=1), verified=False),
                OtpToken(phone_number=PHONE, code_hash="z", expires_at=now + timedelta(minutes=5), verified=False),
            ]
        )
        self.db.commit()

        deleted = self.store.sweep_expired(now)

        self.assertEqual(deleted, 2)
        remaining = self.db.query(OtpToken).all()
        self.assertEqual(len(remaining), 1)
        self.assertGreater(as_utc(remaining[0].expires_at), now)
