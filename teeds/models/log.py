from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, JSON, String, event

from .db import Base, utcnow


class ImmutableLogMixin:
    @classmethod
    def __declare_last__(cls) -> None:
        event.listen(cls, "before_update", cls._deny_mutation)
        event.listen(cls, "before_delete", cls._deny_mutation)

    @staticmethod
    def _deny_mutation(mapper, connection, target) -> None:
        raise ValueError("Log entries are immutable")


class AuditLog(ImmutableLogMixin, Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True)
    category = Column(String(64), nullable=False)
    actor = Column(String(255), nullable=False)
    subject = Column(String(64), nullable=False)
    details = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
