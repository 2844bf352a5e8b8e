from __future__ import annotations

import json
import logging
from typing import Any, Mapping

from sqlalchemy.orm import Session

from teeds.models import AuditLog


class AuditLogger:
    def __init__(self, session: Session, logger: logging.Logger | None = None) -> None:
        self.session = session
        self.logger = logger or logging.getLogger("teeds.audit")

    def record_flag(
        self,
        design_id: str,
        actor: str,
        flagged: bool,
        moved_to: str | None,
        votes_moved: int,
        votes_deleted: int,
    ) -> AuditLog:
        entry = AuditLog(
            category="design_flag",
            actor=actor,
            subject=design_id,
            details={
                "flagged": flagged,
                "moved_to": moved_to,
                "votes_moved": votes_moved,
                "votes_deleted": votes_deleted,
            },
        )
        self._persist(entry)
        return entry

    def record_admin_promotion(
        self,
        user_id: str,
        email: str,
        source: str,
        context: Mapping[str, Any] | None = None,
    ) -> AuditLog:
        details = {"email": email, "source": source}
        if context:
            details.update(context)
        entry = AuditLog(
            category="admin_promotion",
            actor="system",
            subject=user_id,
            details=details,
        )
        self._persist(entry)
        return entry

    def _persist(self, entry: AuditLog) -> None:
        self.session.add(entry)
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(entry)
        self._log_entry(entry)

    def _log_entry(self, entry: AuditLog) -> None:
        payload = {}
        for column in entry.__table__.columns:
            payload[column.name] = getattr(entry, column.name)
        self.logger.info(json.dumps(payload, default=str))
