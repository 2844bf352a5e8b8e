from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, UniqueConstraint

from .db import Base, new_id, utcnow


class User(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("email", name="uq_users_email"),)

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), nullable=False)
    is_admin = Column(Boolean, nullable=False, default=False)
    is_faculty = Column(Boolean, nullable=False, default=False)
    full_name = Column(String(255))
    asu_id = Column(String(64))
    discipline = Column(String(255))
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class Admin(Base):
    __tablename__ = "admins"

    email = Column(String(255), primary_key=True)


class OneTimeCode(Base):
    __tablename__ = "otps"
    __table_args__ = (Index("ix_otps_email_used", "email", "used"),)

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), nullable=False)
    otp_hash = Column(String(64), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used = Column(Boolean, nullable=False, default=False)
    attempts = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
