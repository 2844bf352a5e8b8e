from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone
from unittest import mock

from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from teeds.auth import OtpService, SessionTokenCodec, hash_otp
from teeds.auth.otp import GENERIC_OTP_FAILURE, generate_otp
from teeds.errors import EmailDeliveryError, UpstreamError, ValidationError
from teeds.models import Admin, AuditLog, Base, OneTimeCode, User

SECRET = "teeds-test-signing-secret-" * 3


class RecordingMailer:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[tuple[str, str, int]] = []

    def send_otp(self, recipient: str, code: str, ttl_minutes: int) -> None:
        if self.fail:
            raise EmailDeliveryError("provider down")
        self.sent.append((recipient, code, ttl_minutes))


class OtpServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.session = Session(self.engine)
        self.codec = SessionTokenCodec(SECRET)
        self.mailer = RecordingMailer()
        self.now = datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)

    def tearDown(self) -> None:
        self.session.close()
        self.engine.dispose()

    def build_service(self, **overrides) -> OtpService:
        options = {"admin_emails": ("boss@asu.edu",)}
        options.update(overrides)
        return OtpService(self.session, self.codec, self.mailer, "pepper", **options)

    def test_generate_otp_is_six_digits(self) -> None:
        for _ in range(50):
            code = generate_otp()
            self.assertEqual(len(code), 6)
            self.assertTrue(code.isdigit())

    def test_request_and_verify_scenario(self) -> None:
        service = self.build_service()
        with mock.patch("teeds.auth.otp.generate_otp", return_value="042917"):
            record = service.request_otp("student@asu.edu", self.now)

        self.assertEqual(self.mailer.sent, [("student@asu.edu", "042917", 10)])
        stored = self.session.get(OneTimeCode, record.id)
        self.assertEqual(stored.otp_hash, hash_otp("student@asu.edu", "042917", "pepper"))
        self.assertFalse(stored.used)

        verified = service.verify_otp("student@asu.edu", "042917", now=self.now + timedelta(minutes=5))

        self.assertEqual(len(verified.token.split(".")), 3)
        payload = verified.to_dict()
        self.assertFalse(payload["user"]["isAdmin"])
        self.assertEqual(payload["user"]["email"], "student@asu.edu")
        claims = self.codec.decode(verified.token)
        self.assertEqual(claims.sub, verified.user.id)
        self.assertFalse(claims.is_admin)

    def test_code_cannot_be_used_twice(self) -> None:
        service = self.build_service()
        with mock.patch("teeds.auth.otp.generate_otp", return_value="042917"):
            service.request_otp("student@asu.edu", self.now)
        service.verify_otp("student@asu.edu", "042917", now=self.now)

        with self.assertRaises(ValidationError) as ctx:
            service.verify_otp("student@asu.edu", "042917", now=self.now)
        self.assertEqual(ctx.exception.message, GENERIC_OTP_FAILURE)
        self.assertEqual(ctx.exception.status_code, 400)

    def test_wrong_code_leaves_code_usable(self) -> None:
        service = self.build_service()
        with mock.patch("teeds.auth.otp.generate_otp", return_value="042917"):
            service.request_otp("student@asu.edu", self.now)

        with self.assertRaises(ValidationError) as ctx:
            service.verify_otp("student@asu.edu", "000000", now=self.now)
        self.assertEqual(ctx.exception.message, GENERIC_OTP_FAILURE)
        verified = service.verify_otp("student@asu.edu", "042917", now=self.now)
        self.assertEqual(verified.user.email, "student@asu.edu")

    def test_code_is_burned_after_max_attempts(self) -> None:
        service = self.build_service(max_attempts=3)
        with mock.patch("teeds.auth.otp.generate_otp", return_value="042917"):
            record = service.request_otp("student@asu.edu", self.now)

        for guess in ("000000", "111111", "222222"):
            with self.assertRaises(ValidationError) as ctx:
                service.verify_otp("student@asu.edu", guess, now=self.now)
            self.assertEqual(ctx.exception.message, GENERIC_OTP_FAILURE)

        stored = self.session.get(OneTimeCode, record.id)
        self.assertEqual(stored.attempts, 3)
        self.assertTrue(stored.used)
        with self.assertRaises(ValidationError) as ctx:
            service.verify_otp("student@asu.edu", "042917", now=self.now)
        self.assertEqual(ctx.exception.message, GENERIC_OTP_FAILURE)

    def test_failed_attempts_below_limit_are_counted(self) -> None:
        service = self.build_service(max_attempts=3)
        with mock.patch("teeds.auth.otp.generate_otp", return_value="042917"):
            record = service.request_otp("student@asu.edu", self.now)

        for guess in ("000000", "111111"):
            with self.assertRaises(ValidationError):
                service.verify_otp("student@asu.edu", guess, now=self.now)

        stored = self.session.get(OneTimeCode, record.id)
        self.assertEqual(stored.attempts, 2)
        self.assertFalse(stored.used)
        service.verify_otp("student@asu.edu", "042917", now=self.now)

    def test_expiry_boundary(self) -> None:
        service = self.build_service()
        with mock.patch("teeds.auth.otp.generate_otp", return_value="111111"):
            service.request_otp("early@asu.edu", self.now)
            service.request_otp("late@asu.edu", self.now)

        service.verify_otp("early@asu.edu", "111111", now=self.now + timedelta(seconds=600))
        with self.assertRaises(ValidationError) as ctx:
            service.verify_otp("late@asu.edu", "111111", now=self.now + timedelta(seconds=601))
        self.assertEqual(ctx.exception.message, GENERIC_OTP_FAILURE)

    def test_newest_code_is_the_active_one(self) -> None:
        service = self.build_service()
        with mock.patch("teeds.auth.otp.generate_otp", side_effect=["111111", "222222"]):
            service.request_otp("student@asu.edu", self.now)
            service.request_otp("student@asu.edu", self.now + timedelta(seconds=30))

        with self.assertRaises(ValidationError):
            service.verify_otp("student@asu.edu", "111111", now=self.now + timedelta(minutes=1))
        verified = service.verify_otp("student@asu.edu", "222222", now=self.now + timedelta(minutes=1))
        self.assertEqual(verified.user.email, "student@asu.edu")

    def test_unknown_email_gets_generic_failure(self) -> None:
        service = self.build_service()
        with self.assertRaises(ValidationError) as ctx:
            service.verify_otp("nobody@asu.edu", "123456", now=self.now)
        self.assertEqual(ctx.exception.message, GENERIC_OTP_FAILURE)

    def test_missing_fields_are_rejected(self) -> None:
        service = self.build_service()
        for email, otp in (("", "123456"), ("student@asu.edu", ""), (None, None)):
            with self.subTest(email=email, otp=otp):
                with self.assertRaises(ValidationError) as ctx:
                    service.verify_otp(email, otp, now=self.now)
                self.assertEqual(ctx.exception.message, "Email and OTP required")

    def test_request_rejects_other_domains(self) -> None:
        service = self.build_service()
        for email in ("student@gmail.com", "@asu.edu", "", None, "student@asu.edu.evil.com"):
            with self.subTest(email=email):
                with self.assertRaises(ValidationError):
                    service.request_otp(email, self.now)
        self.assertEqual(self.session.query(OneTimeCode).count(), 0)
        self.assertEqual(self.mailer.sent, [])

    def test_request_normalizes_email(self) -> None:
        service = self.build_service()
        record = service.request_otp("  Student@ASU.edu ", self.now)
        self.assertEqual(record.email, "student@asu.edu")
        self.assertEqual(self.mailer.sent[0][0], "student@asu.edu")

    def test_delivery_failure_discards_code(self) -> None:
        self.mailer.fail = True
        service = self.build_service()
        with mock.patch("teeds.auth.otp.generate_otp", return_value="042917"):
            with self.assertRaises(UpstreamError) as ctx:
                service.request_otp("student@asu.edu", self.now)
        self.assertEqual(ctx.exception.message, "Unable to send OTP")
        self.assertTrue(self.session.query(OneTimeCode).one().used)

        with self.assertRaises(ValidationError):
            service.verify_otp("student@asu.edu", "042917", now=self.now)

    def test_delivery_failure_can_keep_code(self) -> None:
        self.mailer.fail = True
        service = self.build_service(keep_on_send_failure=True, app_env="development")
        with mock.patch("teeds.auth.otp.generate_otp", return_value="042917"):
            with self.assertLogs("teeds.auth.otp", level="WARNING") as logs:
                with self.assertRaises(UpstreamError):
                    service.request_otp("student@asu.edu", self.now)
        self.assertTrue(any("042917" in line for line in logs.output))

        verified = service.verify_otp("student@asu.edu", "042917", now=self.now)
        self.assertEqual(verified.user.email, "student@asu.edu")

    def test_allow_listed_email_is_promoted_once(self) -> None:
        service = self.build_service()
        with mock.patch("teeds.auth.otp.generate_otp", return_value="123456"):
            service.request_otp("boss@asu.edu", self.now)
            verified = service.verify_otp("boss@asu.edu", "123456", now=self.now)
            service.request_otp("boss@asu.edu", self.now + timedelta(minutes=1))
            service.verify_otp("boss@asu.edu", "123456", now=self.now + timedelta(minutes=1))

        self.assertTrue(verified.is_admin)
        self.assertTrue(self.codec.decode(verified.token).is_admin)
        self.assertTrue(self.session.query(User).filter_by(email="boss@asu.edu").one().is_admin)
        promotions = self.session.query(AuditLog).filter_by(category="admin_promotion").all()
        self.assertEqual(len(promotions), 1)
        self.assertEqual(promotions[0].details["source"], "allow_list")

    def test_admins_table_grants_admin(self) -> None:
        self.session.add(Admin(email="dean@asu.edu"))
        self.session.commit()
        service = self.build_service()
        with mock.patch("teeds.auth.otp.generate_otp", return_value="123456"):
            service.request_otp("dean@asu.edu", self.now)
            verified = service.verify_otp("dean@asu.edu", "123456", now=self.now)
        self.assertTrue(verified.to_dict()["user"]["isAdmin"])

    def test_admin_flag_is_never_revoked(self) -> None:
        self.session.add(User(email="former@asu.edu", is_admin=True))
        self.session.commit()
        service = self.build_service(admin_emails=())
        with mock.patch("teeds.auth.otp.generate_otp", return_value="123456"):
            service.request_otp("former@asu.edu", self.now)
            verified = service.verify_otp("former@asu.edu", "123456", now=self.now)
        self.assertTrue(verified.is_admin)

    def test_profile_fields_are_stored(self) -> None:
        service = self.build_service()
        with mock.patch("teeds.auth.otp.generate_otp", return_value="123456"):
            service.request_otp("student@asu.edu", self.now)
            verified = service.verify_otp(
                "student@asu.edu",
                "123456",
                profile={"fullName": " Sun Devil ", "asuId": "1234567890", "discipline": "Design", "isAdmin": True},
                now=self.now,
            )
        user = verified.to_dict()["user"]
        self.assertEqual(user["fullName"], "Sun Devil")
        self.assertEqual(user["asuId"], "1234567890")
        self.assertEqual(user["discipline"], "Design")
        self.assertFalse(user["isAdmin"])

    def test_consume_has_a_single_winner(self) -> None:
        service = self.build_service()
        record = service.request_otp("student@asu.edu", self.now)
        self.assertTrue(service._consume(record.id))
        self.assertFalse(service._consume(record.id))


if __name__ == "__main__":
    unittest.main()
