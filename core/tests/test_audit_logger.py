"""
core/tests/test_audit_logger.py

In-memory audit trail: insert, filter and ordering.
"""

from __future__ import annotations

import unittest

from core.logging.logic.logger import AuditLogger


class TestAuditLogger(unittest.TestCase):
    def setUp(self) -> None:
        self.audit = AuditLogger()

    def tearDown(self) -> None:
        self.audit.close()

    def test_log_and_query_by_reference(self) -> None:
        self.audit.log("workflows", "workflow_created", reference_id="wf1")
        self.audit.log("workflows", "signed", username="alice", reference_id="wf1")
        self.audit.log("workflows", "signed", username="bob", reference_id="wf2")

        entries = self.audit.query_logs(reference_id="wf1")
        self.assertEqual([e.event for e in entries], ["workflow_created", "signed"])
        self.assertEqual(entries[0].username, "system")
        self.assertEqual(entries[1].username, "alice")
        self.assertEqual(entries[1].to_dict()["referenceId"], "wf1")

    def test_fetch_logs_newest_first(self) -> None:
        for i in range(3):
            self.audit.log("workflows", f"event_{i}")
        latest = self.audit.fetch_logs(limit=2)
        self.assertEqual([e.event for e in latest], ["event_2", "event_1"])

    def test_clear_logs(self) -> None:
        self.audit.log("workflows", "downloaded")
        self.audit.clear_logs()
        self.assertEqual(self.audit.fetch_logs(), [])


if __name__ == "__main__":
    unittest.main()
