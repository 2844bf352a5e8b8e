from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from sqlalchemy.orm import Session

from teeds.errors import ValidationError
from teeds.logging import log_event
from teeds.models import Rsvp

ATTENDANCE_CHOICES = ("yes", "no")


def serialize_rsvp(rsvp: Rsvp | None) -> Mapping[str, Any] | None:
    if rsvp is None:
        return None
    return {
        "user_id": rsvp.user_id,
        "will_attend": rsvp.will_attend,
        "updated_at": rsvp.updated_at.isoformat() if rsvp.updated_at else None,
    }


class RsvpService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: str) -> Rsvp | None:
        return self.session.get(Rsvp, user_id)

    def set(self, user_id: str, will_attend: object, now: datetime | None = None) -> Rsvp:
        moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
        if will_attend not in ATTENDANCE_CHOICES:
            raise ValidationError("will_attend must be 'yes' or 'no'")
        rsvp = self.session.get(Rsvp, user_id)
        if rsvp is None:
            rsvp = Rsvp(user_id=user_id, will_attend=will_attend, updated_at=moment)
            self.session.add(rsvp)
        else:
            rsvp.will_attend = will_attend
            rsvp.updated_at = moment
        self.session.commit()
        self.session.refresh(rsvp)
        log_event("rsvp", "set", will_attend, metadata={"user_id": user_id})
        return rsvp
