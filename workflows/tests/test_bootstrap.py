"""
workflows/tests/test_bootstrap.py
"""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from core.tests.pdf_fixtures import identity_pem, make_config, make_identity
from workflows.bootstrap import build_repository, build_workflow_service
from workflows.logic.workflow_service import WorkflowService
from workflows.repository.memory_workflow_repository import InMemoryWorkflowRepository
from workflows.repository.sqlite_workflow_repository import SQLiteWorkflowRepository


class TestBootstrap(unittest.TestCase):
    def test_memory_backend(self) -> None:
        self.assertIsInstance(build_repository(make_config()), InMemoryWorkflowRepository)

    def test_sqlite_backend(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            cfg = make_config(Storage={"backend": "SQLite", "db_path": str(Path(tmp) / "wf.db")})
            repo = build_repository(cfg)
            try:
                self.assertIsInstance(repo, SQLiteWorkflowRepository)
            finally:
                repo.close()

    def test_unknown_backend(self) -> None:
        with self.assertRaises(ValueError):
            build_repository(make_config(Storage={"backend": "mongo"}))

    def test_service_with_given_identity(self) -> None:
        service = build_workflow_service(make_config(), identity=make_identity())
        self.assertIsInstance(service, WorkflowService)
        self.assertEqual(service.list_workflows(), [])

    def test_service_loads_identity_from_files(self) -> None:
        key_pem, cert_pem = identity_pem()
        with tempfile.TemporaryDirectory() as tmp:
            key_file = Path(tmp) / "platform.key.pem"
            cert_file = Path(tmp) / "platform.cert.pem"
            key_file.write_bytes(key_pem)
            cert_file.write_bytes(cert_pem)
            cfg = make_config(Signing={"key_file": str(key_file), "cert_file": str(cert_file)})
            self.assertIsInstance(build_workflow_service(cfg), WorkflowService)


if __name__ == "__main__":
    unittest.main()
