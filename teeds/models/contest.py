from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, UniqueConstraint

from .db import Base, new_id, utcnow


class Design(Base):
    __tablename__ = "designs"

    id = Column(String(36), primary_key=True, default=new_id)
    submitter_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    filename = Column(String(255), nullable=False)
    artwork_name = Column(String(255))
    student_name = Column(String(255))
    major = Column(String(255))
    year_level = Column(String(32))
    asurite = Column(String(64))
    modality = Column(String(32), nullable=False, index=True)
    storage_path = Column(String(512), nullable=False)
    is_flagged = Column(Boolean, nullable=False, default=False)
    submitted_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class Vote(Base):
    __tablename__ = "votes"
    __table_args__ = (UniqueConstraint("voter_id", "design_id", name="uq_votes_voter_design"),)

    id = Column(String(36), primary_key=True, default=new_id)
    voter_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    design_id = Column(String(36), ForeignKey("designs.id", ondelete="CASCADE"), nullable=False, index=True)
    modality = Column(String(32), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class Rsvp(Base):
    __tablename__ = "rsvps"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    will_attend = Column(String(3), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class ContestSetting(Base):
    __tablename__ = "settings"

    key = Column(String(64), primary_key=True)
    value = Column(String(255), nullable=False)


class ContactMessage(Base):
    __tablename__ = "contact_messages"

    id = Column(String(36), primary_key=True, default=new_id)
    sender_name = Column(String(255), nullable=False)
    sender_email = Column(String(255), nullable=False)
    topic = Column(String(255))
    message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
