from __future__ import annotations

import hashlib
import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Mapping, Protocol

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from teeds.auth.tokens import SessionTokenCodec
from teeds.errors import EmailDeliveryError, UpstreamError, ValidationError
from teeds.logging import AuditLogger, get_logger, log_event
from teeds.models import Admin, OneTimeCode, User

logger = get_logger("auth.otp")

GENERIC_OTP_FAILURE = "Invalid or expired OTP"
PROFILE_FIELDS = {"fullName": "full_name", "asuId": "asu_id", "discipline": "discipline"}


class OtpMailer(Protocol):
    def send_otp(self, recipient: str, code: str, ttl_minutes: int) -> None:
        ...


@dataclass(frozen=True)
class VerifiedSession:
    token: str
    user: User
    is_admin: bool

    def to_dict(self) -> dict:
        return {
            "token": self.token,
            "user": {
                "id": self.user.id,
                "email": self.user.email,
                "isAdmin": self.is_admin,
                "fullName": self.user.full_name,
                "asuId": self.user.asu_id,
                "discipline": self.user.discipline,
            },
        }


def generate_otp() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"


def hash_otp(email: str, code: str, salt: str) -> str:
    return hashlib.sha256(f"{email}:{code}:{salt}".encode("utf-8")).hexdigest()


def normalize_email(email: object) -> str:
    if email is None:
        return ""
    return str(email).strip().lower()


def _normalize_time(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class OtpService:
    def __init__(
        self,
        session: Session,
        codec: SessionTokenCodec,
        mailer: OtpMailer,
        salt: str,
        email_domain: str = "asu.edu",
        ttl_seconds: int = 600,
        admin_emails: tuple[str, ...] = (),
        keep_on_send_failure: bool = False,
        app_env: str = "development",
        max_attempts: int = 5,
    ) -> None:
        self.session = session
        self.codec = codec
        self.mailer = mailer
        self.salt = salt
        self.email_suffix = f"@{email_domain.lstrip('@').lower()}"
        self.ttl_seconds = ttl_seconds
        self.admin_emails = frozenset(email.lower() for email in admin_emails)
        self.keep_on_send_failure = keep_on_send_failure
        self.app_env = app_env
        self.max_attempts = max_attempts

    def request_otp(self, email: object, now: datetime | None = None) -> OneTimeCode:
        moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
        normalized = normalize_email(email)
        if not normalized or not normalized.endswith(self.email_suffix) or normalized == self.email_suffix:
            raise ValidationError(f"A valid {self.email_suffix} email is required")

        code = generate_otp()
        record = OneTimeCode(
            email=normalized,
            otp_hash=hash_otp(normalized, code, self.salt),
            expires_at=moment + timedelta(seconds=self.ttl_seconds),
            used=False,
            created_at=moment,
        )
        self.session.add(record)
        self.session.commit()

        try:
            self.mailer.send_otp(normalized, code, self.ttl_seconds // 60)
        except EmailDeliveryError as exc:
            self._handle_send_failure(record, code, exc)
            raise UpstreamError("Unable to send OTP") from exc

        log_event("auth", "request_otp", "sent", metadata={"otp_id": record.id})
        return record

    def verify_otp(
        self,
        email: object,
        otp: object,
        profile: Mapping[str, object] | None = None,
        now: datetime | None = None,
    ) -> VerifiedSession:
        moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
        normalized = normalize_email(email)
        code = "" if otp is None else str(otp).strip()
        if not normalized or not code:
            raise ValidationError("Email and OTP required")

        record = (
            self.session.query(OneTimeCode)
            .filter(OneTimeCode.email == normalized, OneTimeCode.used.is_(False))
            .order_by(OneTimeCode.created_at.desc())
            .first()
        )
        if record is None:
            self._reject(normalized, "no_active_code")
        if _normalize_time(record.expires_at) < moment:
            self._reject(normalized, "expired")
        if not hmac.compare_digest(hash_otp(normalized, code, self.salt), record.otp_hash):
            self._register_failure(record.id)
            self._reject(normalized, "mismatch")
        if not self._consume(record.id):
            self._reject(normalized, "already_used")

        user = self._upsert_user(normalized, profile or {})
        is_admin = self._resolve_admin(user)
        token = self.codec.mint(user.id, normalized, is_admin, moment)
        log_event("auth", "verify_otp", "verified", metadata={"user_id": user.id, "is_admin": is_admin})
        return VerifiedSession(token=token, user=user, is_admin=is_admin)

    def _consume(self, otp_id: str) -> bool:
        result = self.session.execute(
            update(OneTimeCode)
            .where(OneTimeCode.id == otp_id, OneTimeCode.used.is_(False))
            .values(used=True)
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        return result.rowcount == 1

    def _register_failure(self, otp_id: str) -> None:
        self.session.execute(
            update(OneTimeCode)
            .where(OneTimeCode.id == otp_id)
            .values(attempts=OneTimeCode.attempts + 1)
            .execution_options(synchronize_session=False)
        )
        burned = self.session.execute(
            update(OneTimeCode)
            .where(
                OneTimeCode.id == otp_id,
                OneTimeCode.used.is_(False),
                OneTimeCode.attempts >= self.max_attempts,
            )
            .values(used=True)
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        if burned.rowcount == 1:
            log_event("auth", "verify_otp", "locked", reason="too_many_attempts", metadata={"otp_id": otp_id})

    def _reject(self, email: str, reason: str) -> None:
        log_event("auth", "verify_otp", "rejected", reason=reason)
        raise ValidationError(GENERIC_OTP_FAILURE)

    def _upsert_user(self, email: str, profile: Mapping[str, object]) -> User:
        user = self.session.query(User).filter_by(email=email).first()
        if user is None:
            user = User(email=email)
            self.session.add(user)
            try:
                self.session.commit()
            except IntegrityError:
                self.session.rollback()
                user = self.session.query(User).filter_by(email=email).first()
        if user is None:
            raise UpstreamError("Unable to create user record")
        for key, column in PROFILE_FIELDS.items():
            value = profile.get(key)
            if isinstance(value, str) and value.strip():
                setattr(user, column, value.strip())
        self.session.commit()
        self.session.refresh(user)
        return user

    def _resolve_admin(self, user: User) -> bool:
        listed = user.email in self.admin_emails
        tabled = self.session.get(Admin, user.email) is not None
        is_admin = listed or tabled or bool(user.is_admin)
        if is_admin and not user.is_admin:
            user.is_admin = True
            self.session.commit()
            AuditLogger(self.session).record_admin_promotion(
                user.id,
                user.email,
                "allow_list" if listed else "admins_table",
            )
        return is_admin

    def _handle_send_failure(self, record: OneTimeCode, code: str, exc: Exception) -> None:
        logger.error("OTP delivery failed for otp_id=%s: %s", record.id, exc)
        if self.keep_on_send_failure:
            if self.app_env == "development":
                logger.warning("Undelivered OTP kept for %s: %s", record.email, code)
            return
        self._consume(record.id)
        log_event("auth", "request_otp", "discarded", reason="delivery_failed", metadata={"otp_id": record.id})
