from __future__ import annotations

import json
import unittest

from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from teeds.logging import AuditLogger, log_event
from teeds.models import AuditLog, Base


class AuditLoggingTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.session = Session(self.engine)
        self.audit = AuditLogger(self.session)

    def tearDown(self) -> None:
        self.session.close()
        self.engine.dispose()

    def test_record_flag_persists_and_logs(self) -> None:
        with self.assertLogs("teeds.audit", level="INFO") as logs:
            entry = self.audit.record_flag("design-1", "boss@asu.edu", True, "design-2", 3, 1)

        stored = self.session.query(AuditLog).filter_by(id=entry.id).one()
        self.assertEqual(stored.category, "design_flag")
        self.assertEqual(stored.subject, "design-1")
        self.assertEqual(stored.details["votes_moved"], 3)
        logged = json.loads(logs.records[0].getMessage())
        self.assertEqual(logged["actor"], "boss@asu.edu")

    def test_record_admin_promotion(self) -> None:
        entry = self.audit.record_admin_promotion("user-1", "boss@asu.edu", "allow_list", {"via": "verify-otp"})
        stored = self.session.query(AuditLog).filter_by(id=entry.id).one()
        self.assertEqual(stored.category, "admin_promotion")
        self.assertEqual(stored.details, {"email": "boss@asu.edu", "source": "allow_list", "via": "verify-otp"})

    def test_logs_are_immutable(self) -> None:
        entry = self.audit.record_flag("design-1", "boss@asu.edu", True, None, 0, 2)
        entry.actor = "someone-else"
        with self.assertRaises(ValueError):
            self.session.commit()
        self.session.rollback()
        with self.assertRaises(ValueError):
            self.session.delete(entry)
            self.session.commit()
        self.session.rollback()

    def test_log_event_emits_json_line(self) -> None:
        with self.assertLogs("teeds.events", level="INFO") as logs:
            log_event("auth", "verify_otp", "rejected", reason="expired", metadata={"attempt": 1})
        payload = json.loads(logs.records[0].getMessage())
        self.assertEqual(payload["category"], "auth")
        self.assertEqual(payload["reason"], "expired")
        self.assertEqual(payload["metadata"], {"attempt": 1})


if __name__ == "__main__":
    unittest.main()
