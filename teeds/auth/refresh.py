"""Client-side helpers: an HTTP client for the auth endpoints and a keeper that
rotates the session token shortly before it expires."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

import httpx
import jwt

from teeds.logging import get_logger

logger = get_logger("auth.refresh")

REFRESH_LEAD_SECONDS = 5 * 60


class ClientError(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def token_expiry(token: str) -> int | None:
    if not isinstance(token, str) or token.count(".") != 2:
        return None
    try:
        payload = jwt.decode(token, options={"verify_signature": False, "verify_exp": False})
    except jwt.InvalidTokenError:
        return None
    exp = payload.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return None
    return int(exp)


def refresh_delay(token: str, now: datetime | None = None, lead_seconds: int = REFRESH_LEAD_SECONDS) -> float | None:
    exp = token_expiry(token)
    if exp is None:
        return None
    moment = now or datetime.now(timezone.utc)
    return max(exp - moment.timestamp() - lead_seconds, 0.0)


class TeedsClient:
    def __init__(
        self,
        base_url: str,
        http_client: httpx.Client | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self.client = http_client or httpx.Client(timeout=httpx.Timeout(timeout_seconds))

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def request_otp(self, email: str) -> Mapping[str, Any]:
        return self._post("request-otp", {"email": email})

    def verify_otp(self, email: str, otp: str, **profile: str) -> Mapping[str, Any]:
        body = self._post("verify-otp", {"email": email, "otp": otp, **profile})
        return body["session"]

    def refresh_token(self, token: str) -> str:
        body = self._post("refresh-token", {"token": token})
        refreshed = body.get("token")
        if not isinstance(refreshed, str) or not refreshed:
            raise ClientError(502, "Refresh response missing token")
        return refreshed

    def get_rsvp(self, token: str) -> Mapping[str, Any] | None:
        return self._post("record-rsvp", {"action": "get", "token": token}).get("rsvp")

    def set_rsvp(self, token: str, will_attend: str) -> Mapping[str, Any]:
        return self._post("record-rsvp", {"action": "set", "token": token, "will_attend": will_attend})["rsvp"]

    def _post(self, name: str, payload: Mapping[str, Any]) -> Mapping[str, Any]:
        try:
            response = self.client.post(f"{self.base_url}/{name}", json=dict(payload))
        except httpx.TimeoutException as exc:
            raise ClientError(504, f"{name} timed out") from exc
        except httpx.HTTPError as exc:
            raise ClientError(503, f"{name} unreachable") from exc
        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.status_code >= 400 or not isinstance(body, Mapping) or not body.get("ok"):
            message = body.get("message") if isinstance(body, Mapping) else None
            raise ClientError(response.status_code, message or f"{name} failed ({response.status_code})")
        return body


class SessionKeeper:
    """Holds the current token and keeps at most one refresh timer armed."""

    def __init__(
        self,
        client: TeedsClient,
        token: str,
        on_refresh: Callable[[str], None] | None = None,
        lead_seconds: int = REFRESH_LEAD_SECONDS,
        timer_factory: Callable[[float, Callable[[], None]], Any] = threading.Timer,
    ) -> None:
        self.client = client
        self.token = token
        self.on_refresh = on_refresh
        self.lead_seconds = lead_seconds
        self._timer_factory = timer_factory
        self._timer = None
        self._lock = threading.Lock()

    def schedule(self, now: datetime | None = None) -> float | None:
        with self._lock:
            current = self.token
        delay = refresh_delay(current, now, self.lead_seconds)
        self.cancel()
        if delay is None:
            return None
        if delay <= 0:
            self.refresh_now()
            return 0.0
        self._arm(delay)
        return delay

    def refresh_now(self) -> bool:
        with self._lock:
            current = self.token
        try:
            refreshed = self.client.refresh_token(current)
        except ClientError as exc:
            # Keep the current token; the next schedule() call retries.
            logger.warning("Unable to refresh session token: %s", exc.message)
            return False
        with self._lock:
            self.token = refreshed
            self._timer = None
        if self.on_refresh is not None:
            self.on_refresh(refreshed)
        delay = refresh_delay(refreshed, lead_seconds=self.lead_seconds)
        if delay:
            self._arm(delay)
        return True

    def _arm(self, delay: float) -> None:
        with self._lock:
            self._timer = self._timer_factory(delay, self.refresh_now)
            if hasattr(self._timer, "daemon"):
                self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
