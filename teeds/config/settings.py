"""Environment-backed application settings with strict validation."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping

logger = logging.getLogger(__name__)

REQUIRED_ENV_VARS = ("DATABASE_URL",)
SECRET_ENV_VARS = ("SESSION_SECRET", "SERVICE_ROLE_KEY")

DEFAULT_SUBMISSIONS_OPEN_AT = "2025-12-01T00:00:00-07:00"
DEFAULT_SUBMISSIONS_CLOSE_AT = "2026-01-16T23:59:00-07:00"
DEFAULT_VOTING_OPENS_AT = "2026-01-17T00:00:00-07:00"
DEFAULT_VOTING_CLOSES_AT = "2026-01-22T23:59:00-07:00"


def _read_env_var(name: str, env: Mapping[str, str | None]) -> str:
    value = env.get(name)
    if value is None or str(value).strip() == "":
        raise RuntimeError(f"Missing required environment variable: {name}")
    return str(value)


def _optional(name: str, env: Mapping[str, str | None], default: str | None = None) -> str | None:
    value = env.get(name)
    if value is None or str(value).strip() == "":
        return default
    return str(value).strip()


def _read_int(name: str, env: Mapping[str, str | None], default: int) -> int:
    raw = _optional(name, env)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {name} must be an integer") from None
    if value < 0:
        raise RuntimeError(f"Environment variable {name} must not be negative")
    return value


def _read_bool(name: str, env: Mapping[str, str | None], default: bool) -> bool:
    raw = _optional(name, env)
    if raw is None:
        return default
    lowered = raw.lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise RuntimeError(f"Environment variable {name} must be a boolean")


def _read_timestamp(name: str, env: Mapping[str, str | None], default: str) -> datetime:
    raw = _optional(name, env, default)
    try:
        value = datetime.fromisoformat(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {name} must be an ISO-8601 timestamp") from None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _read_list(name: str, env: Mapping[str, str | None]) -> tuple[str, ...]:
    raw = _optional(name, env, "")
    return tuple(item.strip().lower() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    database_url: str
    session_secret: str
    otp_salt: str
    app_env: str
    email_domain: str
    admin_emails: tuple[str, ...]
    otp_ttl_seconds: int
    session_ttl_seconds: int
    otp_keep_on_send_failure: bool
    otp_max_attempts: int
    http_timeout_seconds: int
    db_timeout_seconds: int
    sendgrid_api_key: str | None
    sendgrid_sender_email: str | None
    sendgrid_sender_name: str
    storage_root: str
    storage_public_url: str | None
    storage_api_url: str | None
    storage_api_key: str | None
    storage_bucket: str
    submissions_open_at: datetime
    submissions_close_at: datetime
    voting_opens_at: datetime
    voting_closes_at: datetime
    default_votes_per_modality: int

    @property
    def email_suffix(self) -> str:
        return f"@{self.email_domain}"


def load_settings(env: Mapping[str, str | None] | None = None) -> Settings:
    """Load and validate environment variables into a Settings object."""
    source_env = os.environ if env is None else env

    missing = [key for key in REQUIRED_ENV_VARS if not str(source_env.get(key) or "").strip()]
    if missing:
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")

    session_secret = _optional("SESSION_SECRET", source_env)
    if session_secret is None:
        session_secret = _optional("SERVICE_ROLE_KEY", source_env)
        if session_secret is None:
            raise RuntimeError(f"Missing required environment variables: one of {', '.join(SECRET_ENV_VARS)}")
        logger.warning("SESSION_SECRET is not set; signing session tokens with the service-role key")

    app_env = str(source_env.get("APP_ENV", "development") or "").strip() or "development"
    email_domain = (_optional("EMAIL_DOMAIN", source_env, "asu.edu") or "asu.edu").lstrip("@").lower()

    settings = Settings(
        database_url=_read_env_var("DATABASE_URL", source_env),
        session_secret=session_secret,
        otp_salt=_optional("OTP_SALT", source_env, session_secret),
        app_env=app_env,
        email_domain=email_domain,
        admin_emails=_read_list("ADMIN_EMAILS", source_env),
        otp_ttl_seconds=_read_int("OTP_TTL_SECONDS", source_env, 600),
        session_ttl_seconds=_read_int("SESSION_TTL_SECONDS", source_env, 12 * 60 * 60),
        otp_keep_on_send_failure=_read_bool("OTP_KEEP_ON_SEND_FAILURE", source_env, False),
        otp_max_attempts=_read_int("OTP_MAX_ATTEMPTS", source_env, 5),
        http_timeout_seconds=_read_int("HTTP_TIMEOUT_SECONDS", source_env, 10),
        db_timeout_seconds=_read_int("DB_TIMEOUT_SECONDS", source_env, 10),
        sendgrid_api_key=_optional("SENDGRID_API_KEY", source_env),
        sendgrid_sender_email=_optional("SENDGRID_SENDER_EMAIL", source_env),
        sendgrid_sender_name=_optional("SENDGRID_SENDER_NAME", source_env, "TEEDS Design Voting"),
        storage_root=_optional("STORAGE_ROOT", source_env, "./storage"),
        storage_public_url=_optional("STORAGE_PUBLIC_URL", source_env),
        storage_api_url=_optional("STORAGE_API_URL", source_env),
        storage_api_key=_optional("STORAGE_API_KEY", source_env),
        storage_bucket=_optional("STORAGE_BUCKET", source_env, "designs"),
        submissions_open_at=_read_timestamp("SUBMISSIONS_OPEN_AT", source_env, DEFAULT_SUBMISSIONS_OPEN_AT),
        submissions_close_at=_read_timestamp("SUBMISSIONS_CLOSE_AT", source_env, DEFAULT_SUBMISSIONS_CLOSE_AT),
        voting_opens_at=_read_timestamp("VOTING_OPENS_AT", source_env, DEFAULT_VOTING_OPENS_AT),
        voting_closes_at=_read_timestamp("VOTING_CLOSES_AT", source_env, DEFAULT_VOTING_CLOSES_AT),
        default_votes_per_modality=_read_int("DEFAULT_VOTES_PER_MODALITY", source_env, 1),
    )

    logger.info("Loaded application settings for env=%s", settings.app_env)
    return settings
