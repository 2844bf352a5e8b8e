from .analytics import AnalyticsService
from .contact import ContactService
from .designs import DesignService, serialize_design
from .mailer import SendGridMailer
from .moderation import FlagResult, ModerationService
from .rsvp import RsvpService, serialize_rsvp
from .storage import BlobStore, HttpBlobStore, LocalBlobStore
from .timeline import MODALITIES, ContestTimeline, modality_label
from .votes import VoteService

__all__ = [
    "AnalyticsService",
    "BlobStore",
    "ContactService",
    "ContestTimeline",
    "DesignService",
    "FlagResult",
    "HttpBlobStore",
    "LocalBlobStore",
    "MODALITIES",
    "ModerationService",
    "RsvpService",
    "SendGridMailer",
    "VoteService",
    "modality_label",
    "serialize_design",
    "serialize_rsvp",
]
