"""
workflows/tests/test_workflow_service.py

End-to-end signing sequence on real PDFs with the in-memory repository.
"""

from __future__ import annotations

import base64
import unittest
from io import BytesIO

from pyhanko.pdf_utils.reader import PdfFileReader
from pyhanko.sign.validation import validate_pdf_signature
from pyhanko_certvalidator import ValidationContext
from pypdf import PdfReader

from core.exceptions.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from core.logging.logic.logger import AuditLogger
from core.tests.pdf_fixtures import make_config, make_form_template, make_identity, make_pdf
from workflows.logic.workflow_service import WorkflowService
from workflows.repository.memory_workflow_repository import InMemoryWorkflowRepository

SIGNERS = [
    {"name": "Bob Martin", "order": 2},
    {"name": "Alice Durand", "order": 1},
]

FIELDS = [
    {"fieldName": "name", "assignedTo": "alice-durand", "fieldType": "text",
     "page": 0, "x": 100, "y": 700, "width": 220, "height": 20, "label": "Nom"},
    {"fieldName": "agree", "assignedTo": "alice-durand", "fieldType": "checkbox",
     "page": 0, "x": 100, "y": 650, "width": 14, "height": 14},
    {"fieldName": "city", "assignedTo": "bob-martin", "fieldType": "text",
     "page": 1, "x": 100, "y": 600, "width": 200, "height": 20},
]

PLACEMENT = {"page": 0, "x": 320, "y": 80, "width": 180, "height": 50}


class RacingRepository(InMemoryWorkflowRepository):
    """Runs a one-shot rival action right before the next versioned save."""

    before_workflow_save = None
    before_document_save = None

    def save_workflow(self, workflow, *, expected_version=None):
        if self.before_workflow_save and expected_version is not None:
            action, self.before_workflow_save = self.before_workflow_save, None
            action(workflow)
        return super().save_workflow(workflow, expected_version=expected_version)

    def save_document(self, document, *, expected_version=None):
        if self.before_document_save and expected_version is not None:
            action, self.before_document_save = self.before_document_save, None
            action(document)
        return super().save_document(document, expected_version=expected_version)


def _signatures(pdf_bytes: bytes):
    return PdfFileReader(BytesIO(pdf_bytes)).embedded_signatures


class WorkflowServiceTestBase(unittest.TestCase):
    repository_cls = InMemoryWorkflowRepository

    @classmethod
    def setUpClass(cls) -> None:
        cls.identity = make_identity()

    def setUp(self) -> None:
        self.repo = self.repository_cls()
        self.audit = AuditLogger()
        self.service = WorkflowService(
            repository=self.repo,
            identity=self.identity,
            audit=self.audit,
            config=make_config(),
        )

    def tearDown(self) -> None:
        self.audit.close()

    def _create(self, pdf_bytes: bytes | None = None) -> str:
        result = self.service.create_workflow(
            pdf_bytes or make_pdf(2),
            name="Contrat",
            signers=SIGNERS,
            fields=FIELDS,
            pdf_original_name="contrat.pdf",
        )
        return result["workflowId"]


class TestCreateWorkflow(WorkflowServiceTestBase):
    def test_create_certifies_and_snapshots(self) -> None:
        result = self.service.create_workflow(
            make_pdf(2), name="  Contrat ", signers=SIGNERS, fields=FIELDS,
        )
        self.assertEqual(result["name"], "Contrat")
        self.assertEqual(
            result["signers"],
            [
                {"name": "Alice Durand", "signerId": "alice-durand", "order": 1},
                {"name": "Bob Martin", "signerId": "bob-martin", "order": 2},
            ],
        )

        wf_id = result["workflowId"]
        workflow = self.repo.get_workflow(wf_id)
        self.assertEqual(workflow.current_signer_order, 1)
        self.assertEqual(workflow.status.value, "IN_PROGRESS")

        document = self.repo.get_document(wf_id)
        self.assertFalse(document.flattened_stale)
        self.assertIsNotNone(document.flattened_pdf)
        self.assertTrue(all(f.current_value == "" for f in document.fields))

        (certification,) = _signatures(document.master_pdf)
        self.assertEqual(certification.field_name, "Signature1")
        self.assertIsNotNone(certification.docmdp_level)

    def test_analyze_suggests_existing_fields(self) -> None:
        names = {f["fieldName"] for f in self.service.analyze(make_form_template())}
        self.assertEqual(names, {"full_name", "agree", "plan_0", "plan_1"})

    def test_invalid_requests(self) -> None:
        with self.assertRaises(BadRequestError):
            self.service.create_workflow(make_pdf(), name=" ", signers=SIGNERS, fields=FIELDS)
        with self.assertRaises(BadRequestError):
            self.service.create_workflow(make_pdf(), name="x", signers=[], fields=[])
        with self.assertRaises(BadRequestError):
            self.service.create_workflow(
                make_pdf(), name="x", signers=SIGNERS,
                fields=[{"fieldName": "f", "assignedTo": "carol"}],
            )
        with self.assertRaises(BadRequestError):
            self.service.create_workflow(
                make_pdf(), name="x", signers=SIGNERS,
                fields=[{"fieldName": "f", "assignedTo": "bob-martin", "fieldType": "signature"}],
            )
        with self.assertRaises(BadRequestError):
            self.service.create_workflow(b"", name="x", signers=SIGNERS, fields=[])
        self.assertEqual(self.repo.list_workflows(), [])


class TestSigningSequence(WorkflowServiceTestBase):
    def test_two_signers_end_to_end(self) -> None:
        wf_id = self._create()

        # ---- Alice ----
        view = self.service.get_document_for_signer(wf_id, "alice-durand")
        self.assertEqual(view["signerName"], "Alice Durand")
        self.assertEqual([f["fieldName"] for f in view["fields"]], ["name", "agree"])
        self.assertFalse(view["lastSigner"])
        self.assertEqual(
            [(s["name"], s["status"]) for s in view["signers"]],
            [("Alice Durand", "CURRENT"), ("Bob Martin", "PENDING")],
        )
        snapshot = PdfReader(BytesIO(base64.b64decode(view["pdfBase64"])))
        self.assertNotIn("/AcroForm", snapshot.trailer["/Root"])

        result = self.service.fill_and_sign(
            wf_id, "Alice Durand",
            {"name": "Alice Durand", "agree": True, "city": "Paris", "ghost": "x"},
            PLACEMENT,
        )
        self.assertEqual(result, {"success": True, "workflowStatus": "IN_PROGRESS", "completed": False})

        document = self.repo.get_document(wf_id)
        self.assertTrue(document.flattened_stale)
        self.assertEqual(document.get_field("name").current_value, "Alice Durand")
        self.assertEqual(document.get_field("agree").current_value, "true")
        # not Alice's field
        self.assertEqual(document.get_field("city").current_value, "")

        certification, alice_sig = _signatures(document.master_pdf)
        self.assertEqual(alice_sig.field_name, "Signature2")
        self.assertEqual(sorted(alice_sig.fieldmdp.fields), ["agree", "name"])
        values = PdfReader(BytesIO(document.master_pdf)).get_fields()
        self.assertEqual(values["name"]["/V"], "Alice Durand")
        self.assertEqual(values["agree"]["/V"], "X")

        # ---- Bob ----
        view = self.service.get_document_for_signer(wf_id, "bob-martin")
        self.assertTrue(view["lastSigner"])
        self.assertEqual([f["fieldName"] for f in view["fields"]], ["city"])
        self.assertEqual(
            [s["status"] for s in view["signers"]], ["SIGNED", "CURRENT"],
        )
        snapshot = PdfReader(BytesIO(base64.b64decode(view["pdfBase64"])))
        self.assertIn("Alice Durand", snapshot.pages[0].extract_text())
        self.assertFalse(self.repo.get_document(wf_id).flattened_stale)

        result = self.service.fill_and_sign(wf_id, "Bob Martin", {"city": "Lyon"}, PLACEMENT)
        self.assertEqual(result, {"success": True, "workflowStatus": "COMPLETED", "completed": True})

        filename, final_pdf = self.service.download_final(wf_id)
        self.assertEqual(filename, "Contrat.pdf")
        sigs = _signatures(final_pdf)
        self.assertEqual([s.field_name for s in sigs], ["Signature1", "Signature2", "Signature3"])
        self.assertEqual(list(sigs[2].fieldmdp.fields), ["city"])
        trust = ValidationContext(trust_roots=[self.identity.signing_cert])
        for sig in sigs:
            status = validate_pdf_signature(sig, trust)
            self.assertTrue(status.intact, sig.field_name)
            self.assertTrue(status.valid, sig.field_name)
        self.assertTrue(final_pdf.startswith(document.master_pdf))

        events = [e.event for e in self.audit.query_logs(reference_id=wf_id)]
        self.assertEqual(events, [
            "workflow_created",
            "document_viewed", "signed",
            "document_viewed", "signed", "workflow_completed",
            "downloaded",
        ])

    def test_out_of_turn_changes_nothing(self) -> None:
        wf_id = self._create()
        before_wf = self.repo.get_workflow(wf_id)
        before_doc = self.repo.get_document(wf_id)

        with self.assertRaises(ForbiddenError):
            self.service.get_document_for_signer(wf_id, "bob-martin")
        with self.assertRaises(ForbiddenError):
            self.service.fill_and_sign(wf_id, "Bob Martin", {"city": "Lyon"}, PLACEMENT)
        with self.assertRaises(ForbiddenError):
            self.service.fill_and_sign(wf_id, "Mallory", {}, PLACEMENT)

        after_doc = self.repo.get_document(wf_id)
        self.assertEqual(self.repo.get_workflow(wf_id).version, before_wf.version)
        self.assertEqual(after_doc.version, before_doc.version)
        self.assertEqual(after_doc.master_pdf, before_doc.master_pdf)

    def test_signer_cannot_sign_twice(self) -> None:
        wf_id = self._create()
        self.service.fill_and_sign(wf_id, "Alice Durand", {"name": "A"}, PLACEMENT)
        with self.assertRaises(ForbiddenError):
            self.service.fill_and_sign(wf_id, "Alice Durand", {"name": "B"}, PLACEMENT)
        with self.assertRaises(ForbiddenError):
            self.service.get_document_for_signer(wf_id, "alice-durand")
        self.assertEqual(self.repo.get_document(wf_id).get_field("name").current_value, "A")

    def test_placement_required(self) -> None:
        wf_id = self._create()
        with self.assertRaises(BadRequestError):
            self.service.fill_and_sign(wf_id, "Alice Durand", {"name": "A"}, None)
        with self.assertRaises(BadRequestError):
            self.service.fill_and_sign(wf_id, "Alice Durand", {"name": "A"}, {"page": 0})

    def test_download_requires_completion(self) -> None:
        wf_id = self._create()
        with self.assertRaises(ForbiddenError):
            self.service.download_final(wf_id)

    def test_unknown_workflow(self) -> None:
        with self.assertRaises(NotFoundError):
            self.service.get_document_for_signer("nope", "alice-durand")
        with self.assertRaises(NotFoundError):
            self.service.fill_and_sign("nope", "Alice Durand", {}, PLACEMENT)
        with self.assertRaises(NotFoundError):
            self.service.download_final("nope")

    def test_list_workflows(self) -> None:
        first = self._create()
        second = self._create()
        self.service.fill_and_sign(first, "Alice Durand", {}, PLACEMENT)

        listed = self.service.list_workflows()
        self.assertEqual([w["id"] for w in listed][0], first)
        self.assertEqual({w["id"] for w in listed}, {first, second})

        summary = next(w for w in listed if w["id"] == first)
        self.assertEqual(summary["pdfOriginalName"], "contrat.pdf")
        self.assertEqual(summary["status"], "IN_PROGRESS")
        self.assertEqual([s["status"] for s in summary["signers"]], ["SIGNED", "IN_PROGRESS"])

        fresh = next(w for w in listed if w["id"] == second)
        self.assertEqual([s["status"] for s in fresh["signers"]], ["IN_PROGRESS", "PENDING"])


class TestConcurrentWrites(WorkflowServiceTestBase):
    repository_cls = RacingRepository

    def _rival_submission(self, workflow) -> None:
        rival = self.repo.get_workflow(workflow.id)
        self.repo.save_workflow(rival, expected_version=rival.version)

    def test_lost_race_raises_conflict_and_keeps_document(self) -> None:
        wf_id = self._create()
        before = self.repo.get_document(wf_id)

        self.repo.before_workflow_save = self._rival_submission
        with self.assertRaises(ConflictError):
            self.service.fill_and_sign(wf_id, "Alice Durand", {"name": "A"}, PLACEMENT)

        after = self.repo.get_document(wf_id)
        self.assertEqual(after.version, before.version)
        self.assertEqual(after.master_pdf, before.master_pdf)
        self.assertNotIn("signed", [e.event for e in self.audit.query_logs(reference_id=wf_id)])

    def test_snapshot_refresh_during_signing_keeps_the_signature(self) -> None:
        wf_id = self._create()
        self.service.fill_and_sign(wf_id, "Alice Durand", {"name": "A"}, PLACEMENT)
        self.assertTrue(self.repo.get_document(wf_id).flattened_stale)

        # a viewer refreshes the stale snapshot between Bob's workflow and document writes
        self.repo.before_workflow_save = (
            lambda _wf: self.service.get_document_for_signer(wf_id, "bob-martin")
        )
        result = self.service.fill_and_sign(wf_id, "Bob Martin", {"city": "Lyon"}, PLACEMENT)
        self.assertTrue(result["completed"])

        document = self.repo.get_document(wf_id)
        self.assertTrue(document.flattened_stale)
        self.assertEqual(document.get_field("city").current_value, "Lyon")
        self.assertEqual(len(_signatures(document.master_pdf)), 3)

        _, final_pdf = self.service.download_final(wf_id)
        self.assertEqual([s.field_name for s in _signatures(final_pdf)],
                         ["Signature1", "Signature2", "Signature3"])

    def test_snapshot_conflict_on_read_still_serves_fresh_pdf(self) -> None:
        wf_id = self._create()
        self.service.fill_and_sign(wf_id, "Alice Durand", {"name": "Alice Durand"}, PLACEMENT)
        stale = self.repo.get_document(wf_id)

        def rival_write(_document) -> None:
            rival = self.repo.get_document(wf_id)
            self.repo.save_document(rival, expected_version=rival.version)

        self.repo.before_document_save = rival_write
        view = self.service.get_document_for_signer(wf_id, "bob-martin")

        snapshot = PdfReader(BytesIO(base64.b64decode(view["pdfBase64"])))
        self.assertIn("Alice Durand", snapshot.pages[0].extract_text())

        stored = self.repo.get_document(wf_id)
        self.assertTrue(stored.flattened_stale)
        self.assertEqual(stored.version, stale.version + 1)
        self.assertEqual(stored.master_pdf, stale.master_pdf)



if __name__ == "__main__":
    unittest.main()
