from __future__ import annotations

from datetime import datetime, timezone

from teeds.auth.tokens import SessionClaims, SessionTokenCodec, is_expired
from teeds.errors import AuthError, ForbiddenError
from teeds.logging import log_event


class SessionAuthenticator:
    def __init__(self, codec: SessionTokenCodec) -> None:
        self.codec = codec

    def authenticate(self, token: str | None, now: datetime | None = None) -> SessionClaims:
        moment = now or datetime.now(timezone.utc)
        if not token or not isinstance(token, str):
            raise AuthError("Missing token")
        claims = self.codec.decode(token)
        if claims is None:
            log_event("auth", "authenticate", "rejected", reason="invalid_token")
            raise AuthError("Invalid or expired token")
        if is_expired(claims, moment):
            log_event("auth", "authenticate", "rejected", reason="token_expired", metadata={"sub": claims.sub})
            raise AuthError("Invalid or expired token")
        return claims

    def require_admin(self, claims: SessionClaims) -> SessionClaims:
        if not claims.is_admin:
            raise ForbiddenError("Admin access required")
        return claims

    def refresh(self, token: str | None, now: datetime | None = None) -> str:
        moment = now or datetime.now(timezone.utc)
        claims = self.authenticate(token, moment)
        refreshed = self.codec.mint(claims.sub, claims.email, claims.is_admin, moment)
        log_event("auth", "refresh_token", "rotated", metadata={"sub": claims.sub})
        return refreshed
