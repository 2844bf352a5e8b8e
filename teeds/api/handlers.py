"""Transport-neutral endpoint handlers shared by the Flask and FastAPI adapters.

Every endpoint takes an :class:`ApiRequest` and returns an :class:`ApiResponse`.
Each call opens its own ORM session, builds the services it needs from the
immutable settings, and converts service errors into ``{"ok": false,
"message": ...}`` bodies. Unexpected failures are logged and reported with the
endpoint's generic message only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from sqlalchemy.orm import Session, sessionmaker

from teeds.auth import OtpMailer, OtpService, SessionAuthenticator, SessionClaims, SessionTokenCodec
from teeds.auth.otp import PROFILE_FIELDS
from teeds.config import Settings
from teeds.errors import TeedsError, ValidationError
from teeds.logging import AuditLogger, get_logger
from teeds.services import (
    AnalyticsService,
    BlobStore,
    ContactService,
    ContestTimeline,
    DesignService,
    HttpBlobStore,
    LocalBlobStore,
    ModerationService,
    RsvpService,
    SendGridMailer,
    VoteService,
    serialize_design,
    serialize_rsvp,
)

logger = get_logger("api")

ALLOWED_HEADERS = "authorization, x-client-info, apikey, content-type"
RSVP_ACTIONS = ("get", "set")


@dataclass(frozen=True)
class ApiRequest:
    method: str
    headers: Mapping[str, str] = field(default_factory=dict)
    json_body: Any = None
    query: Mapping[str, str] = field(default_factory=dict)

    def header(self, name: str) -> str | None:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    @property
    def payload(self) -> Mapping[str, Any]:
        merged: dict[str, Any] = dict(self.query)
        if isinstance(self.json_body, Mapping):
            merged.update(self.json_body)
        return merged


@dataclass
class ApiResponse:
    status: int
    body: Mapping[str, Any] | None
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Endpoint:
    handler: str
    methods: tuple[str, ...]
    failure: str


ENDPOINTS: Mapping[str, Endpoint] = {
    "request-otp": Endpoint("request_otp", ("POST",), "Unable to send OTP"),
    "verify-otp": Endpoint("verify_otp", ("POST",), "OTP verification failed"),
    "refresh-token": Endpoint("refresh_token", ("POST",), "Failed to refresh token"),
    "record-rsvp": Endpoint("record_rsvp", ("POST",), "Failed to process RSVP"),
    "record-design": Endpoint("record_design", ("POST",), "Unable to record design"),
    "delete-design": Endpoint("delete_design", ("POST",), "Unable to delete design"),
    "my-designs": Endpoint("my_designs", ("POST",), "Unable to load your designs"),
    "list-designs": Endpoint("list_designs", ("GET", "POST"), "Unable to load designs"),
    "cast-vote": Endpoint("cast_vote", ("POST",), "Unable to record vote"),
    "vote-status": Endpoint("vote_status", ("POST",), "Unable to load vote status"),
    "flag-design": Endpoint("flag_design", ("POST",), "Failed to flag design"),
    "admin-analytics": Endpoint("admin_analytics", ("GET", "POST"), "Failed to load analytics"),
    "contact-organizers": Endpoint("contact_organizers", ("POST",), "Unable to submit message right now."),
    "timeline": Endpoint("timeline", ("GET",), "Unable to load timeline"),
}


def default_mailer(settings: Settings) -> SendGridMailer:
    return SendGridMailer(
        settings.sendgrid_api_key,
        settings.sendgrid_sender_email,
        sender_name=settings.sendgrid_sender_name,
        timeout_seconds=settings.http_timeout_seconds,
    )


def default_blob_store(settings: Settings) -> BlobStore:
    if settings.storage_api_url and settings.storage_api_key:
        return HttpBlobStore(
            settings.storage_api_url,
            settings.storage_api_key,
            bucket=settings.storage_bucket,
            public_base_url=settings.storage_public_url,
            timeout_seconds=settings.http_timeout_seconds,
        )
    return LocalBlobStore(settings.storage_root, public_base_url=settings.storage_public_url)


def cors_headers(request: ApiRequest, methods: tuple[str, ...]) -> dict[str, str]:
    origin = request.header("origin")
    headers = {
        "Access-Control-Allow-Origin": origin or "*",
        "Access-Control-Allow-Headers": ALLOWED_HEADERS,
        "Access-Control-Allow-Methods": ", ".join(methods + ("OPTIONS",)),
    }
    if origin:
        headers["Vary"] = "Origin"
    return headers


def bearer_token(request: ApiRequest) -> str | None:
    token = request.payload.get("token")
    if isinstance(token, str) and token.strip():
        return token.strip()
    authorization = request.header("authorization") or ""
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


class ApiHandlers:
    def __init__(
        self,
        settings: Settings,
        session_factory: sessionmaker,
        mailer: OtpMailer,
        blob_store: BlobStore,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings
        self.session_factory = session_factory
        self.mailer = mailer
        self.blob_store = blob_store
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.codec = SessionTokenCodec(settings.session_secret, settings.session_ttl_seconds)
        self.authenticator = SessionAuthenticator(self.codec)
        self.contest_timeline = ContestTimeline.from_settings(settings)

    def dispatch(self, name: str, request: ApiRequest) -> ApiResponse:
        endpoint = ENDPOINTS.get(name)
        if endpoint is None:
            return ApiResponse(404, {"ok": False, "message": "Not found"}, cors_headers(request, ()))
        headers = cors_headers(request, endpoint.methods)
        method = request.method.upper()
        if method == "OPTIONS":
            return ApiResponse(204, None, headers)
        if method not in endpoint.methods:
            return ApiResponse(405, {"ok": False, "message": "Method not allowed"}, headers)

        session = self.session_factory()
        try:
            body = getattr(self, endpoint.handler)(session, request)
            return ApiResponse(200, body, headers)
        except TeedsError as exc:
            session.rollback()
            logger.info("%s rejected with %s: %s", name, exc.status_code, exc.message)
            return ApiResponse(exc.status_code, {"ok": False, "message": exc.message}, headers)
        except Exception:
            session.rollback()
            logger.exception("Unhandled error in %s", name)
            return ApiResponse(500, {"ok": False, "message": endpoint.failure}, headers)
        finally:
            session.close()

    def _now(self) -> datetime:
        return self.clock()

    def _claims(self, request: ApiRequest) -> SessionClaims:
        return self.authenticator.authenticate(bearer_token(request), self._now())

    def _admin_claims(self, request: ApiRequest) -> SessionClaims:
        return self.authenticator.require_admin(self._claims(request))

    def _otp_service(self, session: Session) -> OtpService:
        return OtpService(
            session,
            self.codec,
            self.mailer,
            self.settings.otp_salt,
            email_domain=self.settings.email_domain,
            ttl_seconds=self.settings.otp_ttl_seconds,
            admin_emails=self.settings.admin_emails,
            keep_on_send_failure=self.settings.otp_keep_on_send_failure,
            max_attempts=self.settings.otp_max_attempts,
            app_env=self.settings.app_env,
        )

    def _vote_service(self, session: Session) -> VoteService:
        return VoteService(session, self.contest_timeline, self.settings.default_votes_per_modality)

    def request_otp(self, session: Session, request: ApiRequest) -> Mapping[str, Any]:
        self._otp_service(session).request_otp(request.payload.get("email"), self._now())
        return {"ok": True, "message": "OTP sent to your inbox"}

    def verify_otp(self, session: Session, request: ApiRequest) -> Mapping[str, Any]:
        payload = request.payload
        profile = {key: payload.get(key) for key in PROFILE_FIELDS}
        verified = self._otp_service(session).verify_otp(payload.get("email"), payload.get("otp"), profile, self._now())
        return {"ok": True, "session": verified.to_dict()}

    def refresh_token(self, session: Session, request: ApiRequest) -> Mapping[str, Any]:
        token = self.authenticator.refresh(bearer_token(request), self._now())
        return {"ok": True, "token": token}

    def record_rsvp(self, session: Session, request: ApiRequest) -> Mapping[str, Any]:
        claims = self._claims(request)
        action = request.payload.get("action") or "get"
        if action not in RSVP_ACTIONS:
            raise ValidationError("action must be 'get' or 'set'")
        service = RsvpService(session)
        if action == "set":
            rsvp = service.set(claims.sub, request.payload.get("will_attend"), self._now())
        else:
            rsvp = service.get(claims.sub)
        return {"ok": True, "rsvp": serialize_rsvp(rsvp)}

    def record_design(self, session: Session, request: ApiRequest) -> Mapping[str, Any]:
        claims = self._claims(request)
        payload = request.payload
        design = DesignService(session, self.blob_store, self.contest_timeline).record_design(
            claims.sub,
            payload.get("filename"),
            payload.get("artworkName"),
            payload.get("modality"),
            payload.get("storagePath"),
            self._now(),
        )
        return {"ok": True, "design": serialize_design(design, self.blob_store)}

    def delete_design(self, session: Session, request: ApiRequest) -> Mapping[str, Any]:
        claims = self._claims(request)
        payload = request.payload
        DesignService(session, self.blob_store).delete_design(
            claims.sub, payload.get("designId"), payload.get("storagePath")
        )
        return {"ok": True}

    def my_designs(self, session: Session, request: ApiRequest) -> Mapping[str, Any]:
        claims = self._claims(request)
        designs = DesignService(session, self.blob_store).list_for_submitter(claims.sub)
        return {"ok": True, "designs": [serialize_design(design, self.blob_store) for design in designs]}

    def list_designs(self, session: Session, request: ApiRequest) -> Mapping[str, Any]:
        designs = DesignService(session, self.blob_store).list_gallery(request.payload.get("modality"))
        return {"ok": True, "designs": [serialize_design(design, self.blob_store) for design in designs]}

    def cast_vote(self, session: Session, request: ApiRequest) -> Mapping[str, Any]:
        claims = self._claims(request)
        now = self._now()
        service = self._vote_service(session)
        service.cast_vote(claims.sub, request.payload.get("designId"), request.payload.get("modality"), now)
        return {"ok": True, "status": service.vote_status(claims.sub, now)}

    def vote_status(self, session: Session, request: ApiRequest) -> Mapping[str, Any]:
        claims = self._claims(request)
        return {"ok": True, "status": self._vote_service(session).vote_status(claims.sub, self._now())}

    def flag_design(self, session: Session, request: ApiRequest) -> Mapping[str, Any]:
        claims = self._admin_claims(request)
        payload = request.payload
        result = ModerationService(session, AuditLogger(session)).flag_design(
            payload.get("designId"), payload.get("flag"), actor=claims.email
        )
        return {"ok": True, "result": result.to_dict()}

    def admin_analytics(self, session: Session, request: ApiRequest) -> Mapping[str, Any]:
        self._admin_claims(request)
        summary = AnalyticsService(session).summary()
        return {"ok": True, **summary}

    def contact_organizers(self, session: Session, request: ApiRequest) -> Mapping[str, Any]:
        payload = request.payload
        ContactService(session).submit(
            payload.get("name"), payload.get("email"), payload.get("topic"), payload.get("message")
        )
        return {"ok": True}

    def timeline(self, session: Session, request: ApiRequest) -> Mapping[str, Any]:
        return {
            "ok": True,
            "phase": self.contest_timeline.phase(self._now()),
            "events": [event.to_dict() for event in self.contest_timeline.events()],
        }
