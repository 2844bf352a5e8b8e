from .auth import Admin, OneTimeCode, User
from .contest import ContactMessage, ContestSetting, Design, Rsvp, Vote
from .db import Base, create_session_factory
from .log import AuditLog

__all__ = [
	"Admin",
	"AuditLog",
	"Base",
	"ContactMessage",
	"ContestSetting",
	"Design",
	"OneTimeCode",
	"Rsvp",
	"User",
	"Vote",
	"create_session_factory",
]
