"""Compact HMAC-signed session tokens.

Tokens use the JWS compact shape ``header.payload.signature`` with the fixed
header ``{"alg":"HS256","typ":"JWT"}``. The codec only answers whether a token
is well formed and correctly signed; callers decide whether it is still current
with :func:`is_expired`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

import jwt

ALGORITHM = "HS256"


@dataclass(frozen=True)
class SessionClaims:
    sub: str
    email: str
    is_admin: bool
    exp: int

    def to_payload(self) -> dict[str, Any]:
        return {"sub": self.sub, "email": self.email, "isAdmin": self.is_admin, "exp": self.exp}

    @staticmethod
    def from_payload(payload: Mapping[str, Any]) -> "SessionClaims | None":
        sub = payload.get("sub")
        email = payload.get("email")
        is_admin = payload.get("isAdmin")
        exp = payload.get("exp")
        if not isinstance(sub, str) or not sub:
            return None
        if not isinstance(email, str) or not email:
            return None
        if not isinstance(is_admin, bool):
            return None
        if isinstance(exp, bool) or not isinstance(exp, int):
            return None
        return SessionClaims(sub=sub, email=email, is_admin=is_admin, exp=exp)


def is_expired(claims: SessionClaims, now: datetime | None = None) -> bool:
    moment = now or datetime.now(timezone.utc)
    return claims.exp <= moment.timestamp()


class SessionTokenCodec:
    def __init__(self, secret: str, ttl_seconds: int = 12 * 60 * 60) -> None:
        if not secret:
            raise ValueError("Signing secret is required")
        self.secret = secret
        self.ttl_seconds = ttl_seconds

    def encode(self, claims: SessionClaims) -> str:
        return jwt.encode(claims.to_payload(), self.secret, algorithm=ALGORITHM, headers={"typ": "JWT"})

    def decode(self, token: str) -> SessionClaims | None:
        if not isinstance(token, str) or token.count(".") != 2:
            return None
        try:
            header = jwt.get_unverified_header(token)
        except jwt.InvalidTokenError:
            return None
        # Pin the algorithm before any signature work.
        if header.get("alg") != ALGORITHM:
            return None
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[ALGORITHM],
                options={"verify_exp": False, "verify_iat": False, "verify_nbf": False, "verify_sub": False},
            )
        except jwt.InvalidTokenError:
            return None
        if not isinstance(payload, Mapping):
            return None
        return SessionClaims.from_payload(payload)

    def mint(self, sub: str, email: str, is_admin: bool, now: datetime | None = None) -> str:
        moment = now or datetime.now(timezone.utc)
        exp = int((moment + timedelta(seconds=self.ttl_seconds)).timestamp())
        return self.encode(SessionClaims(sub=str(sub), email=email, is_admin=bool(is_admin), exp=exp))
