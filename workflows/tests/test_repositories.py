"""
workflows/tests/test_repositories.py

Both repository backends share one contract, exercised through a mixin.
"""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from core.exceptions.errors import ConflictError
from forms.models.field_models import FieldDefinition, FieldType
from workflows.models.workflow_models import Signer, SignerStatus, Workflow, WorkflowDocument
from workflows.repository.memory_workflow_repository import InMemoryWorkflowRepository
from workflows.repository.repo_config import RepoConfig
from workflows.repository.sqlite_workflow_repository import SQLiteWorkflowRepository


def _workflow(wf_id: str) -> Workflow:
    return Workflow(
        id=wf_id,
        name="Contrat de bail",
        signers=[Signer("alice", "Alice", 1), Signer("bob", "Bob", 2)],
        current_signer_order=1,
        pdf_original_name="bail.pdf",
    )


def _document(wf_id: str) -> WorkflowDocument:
    return WorkflowDocument(
        workflow_id=wf_id,
        master_pdf=b"%PDF-1.7 master",
        fields=[FieldDefinition("city", "alice", FieldType.TEXT, 0, 10, 20, 100, 18, label="Ville")],
        flattened_pdf=b"%PDF-1.7 flat",
        flattened_stale=False,
    )


class RepositoryContract:
    """Mixin; subclasses provide ``self.repo``."""

    repo = None

    def test_next_id_is_unique(self) -> None:
        ids = {self.repo.next_id() for _ in range(50)}
        self.assertEqual(len(ids), 50)

    def test_workflow_round_trip(self) -> None:
        wf_id = self.repo.next_id()
        saved = self.repo.save_workflow(_workflow(wf_id))
        self.assertEqual(saved.version, 1)

        loaded = self.repo.get_workflow(wf_id)
        self.assertEqual(loaded.name, "Contrat de bail")
        self.assertEqual(loaded.pdf_original_name, "bail.pdf")
        self.assertEqual([s.signer_id for s in loaded.signers], ["alice", "bob"])
        self.assertEqual(loaded.version, 1)
        self.assertEqual(loaded.created_at, saved.created_at)
        self.assertIsNone(self.repo.get_workflow("missing"))

    def test_workflow_compare_and_swap(self) -> None:
        wf_id = self.repo.next_id()
        self.repo.save_workflow(_workflow(wf_id))

        first = self.repo.get_workflow(wf_id)
        second = self.repo.get_workflow(wf_id)

        first.signers[0].status = SignerStatus.SIGNED
        first.current_signer_order = 2
        updated = self.repo.save_workflow(first, expected_version=first.version)
        self.assertEqual(updated.version, 2)

        with self.assertRaises(ConflictError):
            self.repo.save_workflow(second, expected_version=second.version)

        stored = self.repo.get_workflow(wf_id)
        self.assertEqual(stored.current_signer_order, 2)
        self.assertIs(stored.signers[0].status, SignerStatus.SIGNED)

    def test_insert_twice_conflicts(self) -> None:
        wf_id = self.repo.next_id()
        self.repo.save_workflow(_workflow(wf_id))
        with self.assertRaises(ConflictError):
            self.repo.save_workflow(_workflow(wf_id))

    def test_document_round_trip_and_cas(self) -> None:
        wf_id = self.repo.next_id()
        self.repo.save_workflow(_workflow(wf_id))
        self.repo.save_document(_document(wf_id))

        doc = self.repo.get_document(wf_id)
        self.assertEqual(doc.master_pdf, b"%PDF-1.7 master")
        self.assertEqual(doc.flattened_pdf, b"%PDF-1.7 flat")
        self.assertFalse(doc.flattened_stale)
        self.assertEqual(doc.get_field("city").label, "Ville")
        self.assertEqual(doc.version, 1)

        doc.master_pdf = b"%PDF-1.7 signed"
        doc.flattened_stale = True
        self.repo.save_document(doc, expected_version=1)

        with self.assertRaises(ConflictError):
            self.repo.save_document(doc, expected_version=1)

        stored = self.repo.get_document(wf_id)
        self.assertEqual(stored.master_pdf, b"%PDF-1.7 signed")
        self.assertTrue(stored.flattened_stale)
        self.assertEqual(stored.version, 2)
        self.assertIsNone(self.repo.get_document("missing"))

    def test_list_workflows(self) -> None:
        for _ in range(3):
            self.repo.save_workflow(_workflow(self.repo.next_id()))
        self.assertEqual(len(self.repo.list_workflows()), 3)


class TestInMemoryWorkflowRepository(RepositoryContract, unittest.TestCase):
    def setUp(self) -> None:
        self.repo = InMemoryWorkflowRepository(id_prefix="WF-")

    def test_prefix(self) -> None:
        self.assertTrue(self.repo.next_id().startswith("WF-"))

    def test_returned_objects_are_detached(self) -> None:
        wf_id = self.repo.next_id()
        self.repo.save_workflow(_workflow(wf_id))
        loaded = self.repo.get_workflow(wf_id)
        loaded.name = "changed"
        self.assertEqual(self.repo.get_workflow(wf_id).name, "Contrat de bail")


class TestSQLiteWorkflowRepository(RepositoryContract, unittest.TestCase):
    def setUp(self) -> None:
        self.repo = SQLiteWorkflowRepository(RepoConfig())

    def tearDown(self) -> None:
        self.repo.close()

    def test_persists_across_instances(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            db_path = str(Path(tmp) / "nested" / "formsign.db")
            first = SQLiteWorkflowRepository(RepoConfig(db_path=db_path))
            wf_id = first.next_id()
            first.save_workflow(_workflow(wf_id))
            first.save_document(_document(wf_id))
            first.close()

            second = SQLiteWorkflowRepository(RepoConfig(db_path=db_path))
            try:
                self.assertEqual(second.get_workflow(wf_id).name, "Contrat de bail")
                self.assertEqual(second.get_document(wf_id).master_pdf, b"%PDF-1.7 master")
            finally:
                second.close()


if __name__ == "__main__":
    unittest.main()
