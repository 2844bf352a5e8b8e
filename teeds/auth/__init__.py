from .otp import OtpMailer, OtpService, VerifiedSession, generate_otp, hash_otp
from .refresh import ClientError, SessionKeeper, TeedsClient, refresh_delay, token_expiry
from .service import SessionAuthenticator
from .tokens import SessionClaims, SessionTokenCodec, is_expired

__all__ = [
    "ClientError",
    "OtpMailer",
    "OtpService",
    "SessionAuthenticator",
    "SessionClaims",
    "SessionKeeper",
    "SessionTokenCodec",
    "TeedsClient",
    "VerifiedSession",
    "generate_otp",
    "hash_otp",
    "is_expired",
    "refresh_delay",
    "token_expiry",
]
