from __future__ import annotations

import re

from sqlalchemy.orm import Session

from teeds.errors import ValidationError
from teeds.models import ContactMessage

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MAX_MESSAGE_LENGTH = 2000


class ContactService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def submit(self, name: object, email: object, topic: object, message: object) -> ContactMessage:
        sender_name = str(name or "").strip()
        sender_email = str(email or "").strip().lower()
        trimmed_topic = str(topic or "").strip() or None
        body = str(message or "").strip()

        if not sender_name or not sender_email or not body:
            raise ValidationError("Name, email, and message are required.")
        if not EMAIL_PATTERN.match(sender_email):
            raise ValidationError("Enter a valid email address.")
        if len(body) > MAX_MESSAGE_LENGTH:
            raise ValidationError("Message is too long.")

        entry = ContactMessage(
            sender_name=sender_name,
            sender_email=sender_email,
            topic=trimmed_topic,
            message=body,
        )
        self.session.add(entry)
        self.session.commit()
        self.session.refresh(entry)
        return entry
