# workflows/logic/workflow_service.py
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from core.config.config_service import ConfigService, get_config_service
from core.exceptions.errors import BadRequestError, ConflictError, InternalError, NotFoundError
from core.helpers.date_time_helper import to_iso, utc_now
from core.logging.logic.logger import AuditLogger
from forms.logic.field_codec import create_master_pdf, extract_fields
from forms.logic.flattener import flatten_pdf
from forms.models.field_models import FieldDefinition
from signature.logic.pdf_signer import SignatureOptions, sign_pdf
from signature.models.signature_enums import PermissionLevel
from signature.models.signature_placement import SignaturePlacement
from signature.models.signature_request import ApprovalRequest, CertificationRequest
from signature.models.signing_identity import SigningIdentity
from workflows.dto.audit_event import AUDIT_FEATURE, AuditAction
from workflows.dto.workflow_results import (
    CreateWorkflowResult,
    FillAndSignResult,
    SignerContext,
    SignerDocumentView,
    SignerRef,
    SignerSummary,
    WorkflowSummary,
)
from workflows.logic.slug import slugify
from workflows.logic.workflow_engine import WorkflowEngine
from workflows.models.workflow_models import Workflow, WorkflowDocument
from workflows.repository.workflow_repository import WorkflowRepository

logger = logging.getLogger(__name__)

MAX_DOCUMENT_WRITE_ATTEMPTS = 5

FieldInput = Union[FieldDefinition, Mapping[str, Any]]
PlacementInput = Union[SignaturePlacement, Mapping[str, Any], None]


class WorkflowService:
    """
    Orchestrates the sequential signing workflow:

        create_workflow        master PDF + platform certification + first snapshot
        get_document_for_signer  turn check, fresh snapshot, signer's fields
        fill_and_sign          values + approval signature in one revision, turn advances
        download_final         final master bytes once every signer has signed

    Guards and transitions live in ``WorkflowEngine``; PDF work is delegated to
    the forms and signature features. Every call is a sequential
    read-modify-write; concurrent writers are rejected with ConflictError.
    """

    def __init__(
        self,
        *,
        repository: WorkflowRepository,
        identity: SigningIdentity,
        audit: Optional[AuditLogger] = None,
        config: Optional[ConfigService] = None,
        engine: Optional[WorkflowEngine] = None,
    ) -> None:
        self._repo = repository
        self._identity = identity
        self._audit = audit or AuditLogger()
        self._cfg = config or get_config_service()
        self._engine = engine or WorkflowEngine()

        must = ["next_id", "get_workflow", "list_workflows", "save_workflow",
                "get_document", "save_document"]
        missing = [m for m in must if not hasattr(self._repo, m)]
        if missing:
            raise AttributeError(f"Repository missing required methods: {', '.join(missing)}")

    # ---- helpers ------------------------------------------------------------

    def _signature_options(self) -> SignatureOptions:
        signing, appearance = self._cfg.signing, self._cfg.appearance
        return SignatureOptions(
            name_prefix=signing.name_prefix,
            label=appearance.label,
            date_format=appearance.date_format,
            timezone=appearance.timezone,
            reserved_bytes=signing.reserved_bytes,
        )

    def _certification_request(self) -> CertificationRequest:
        signing = self._cfg.signing
        try:
            level = PermissionLevel.parse(signing.certification_permission)
        except (KeyError, ValueError) as e:
            raise InternalError(
                f"Invalid certification permission in config: {signing.certification_permission!r}"
            ) from e
        return CertificationRequest(signer_name=signing.certification_signer, permission_level=level)

    def _flatten(self, master_pdf: bytes) -> bytes:
        return flatten_pdf(master_pdf, self._cfg.appearance)

    def _audit_event(self, action: AuditAction, workflow_id: str, *,
                     username: Optional[str] = None, message: Optional[str] = None) -> None:
        self._audit.log(
            AUDIT_FEATURE,
            action.value,
            username=username,
            reference_id=workflow_id,
            message=message,
        )

    def _load_workflow(self, workflow_id: str) -> Workflow:
        workflow = self._repo.get_workflow(workflow_id)
        if workflow is None:
            raise NotFoundError(f"Workflow not found: {workflow_id}")
        return workflow

    def _load_document(self, workflow_id: str) -> WorkflowDocument:
        document = self._repo.get_document(workflow_id)
        if document is None:
            # workflow without document means the store is inconsistent
            raise InternalError(f"Document missing for workflow {workflow_id}")
        return document

    def _store_signed_revision(self, document: WorkflowDocument, signed_pdf: bytes) -> WorkflowDocument:
        """
        Persist a new master revision. Only snapshot refreshes can race this
        write (the workflow save already serialised the signers), so on a
        conflict the fresh record is re-read and the revision re-applied as
        long as its master is still the one that was signed.
        """
        base_master = document.master_pdf
        for _ in range(MAX_DOCUMENT_WRITE_ATTEMPTS):
            document.master_pdf = signed_pdf
            document.flattened_stale = True
            try:
                return self._repo.save_document(document, expected_version=document.version)
            except ConflictError:
                current = self._load_document(document.workflow_id)
                if current.master_pdf != base_master:
                    raise InternalError(
                        f"Master of workflow {document.workflow_id} changed while signing"
                    )
                logger.info("Snapshot of workflow %s refreshed concurrently, re-applying revision",
                            document.workflow_id)
                current.fields = document.fields
                document = current
        raise InternalError(f"Could not store signed revision of workflow {document.workflow_id}")

    @staticmethod
    def _parse_fields(fields: Iterable[FieldInput]) -> List[FieldDefinition]:
        result: List[FieldDefinition] = []
        for raw in fields or []:
            if isinstance(raw, FieldDefinition):
                fd = replace(raw)
            else:
                try:
                    fd = FieldDefinition.from_dict(dict(raw))
                except KeyError as e:
                    raise BadRequestError(f"Field definition misses {e}") from e
                except (TypeError, ValueError) as e:
                    raise BadRequestError(f"Invalid field definition: {e}") from e
            fd.current_value = ""
            result.append(fd)
        return result

    @staticmethod
    def _parse_placement(placement: PlacementInput) -> SignaturePlacement:
        if placement is None:
            raise BadRequestError("A signature placement is required")
        if isinstance(placement, SignaturePlacement):
            return placement
        try:
            return SignaturePlacement.from_dict(dict(placement))
        except (KeyError, TypeError, ValueError) as e:
            raise BadRequestError(f"Invalid signature placement: {e}") from e

    @staticmethod
    def _as_value(value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    # ---- analysis -----------------------------------------------------------

    def analyze(self, pdf_bytes: bytes) -> List[Dict[str, Any]]:
        """Existing form fields of an uploaded PDF, as placement suggestions."""
        return [f.to_dict() for f in extract_fields(pdf_bytes)]

    # ---- creation -----------------------------------------------------------

    def create_workflow(
        self,
        pdf_bytes: bytes,
        *,
        name: str,
        signers: Sequence[Mapping[str, Any]],
        fields: Sequence[FieldInput],
        pdf_original_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not name or not str(name).strip():
            raise BadRequestError("Workflow name must not be blank")
        if not pdf_bytes:
            raise BadRequestError("PDF content is empty")

        signer_list = self._engine.build_signers(signers)
        field_defs = self._parse_fields(fields)
        self._engine.validate_fields(field_defs, signer_list)

        logger.info(
            "Creating workflow '%s' with %d signer(s) and %d field(s)",
            name, len(signer_list), len(field_defs),
        )

        master_pdf = create_master_pdf(pdf_bytes, field_defs)
        certified = sign_pdf(
            master_pdf,
            self._certification_request(),
            self._identity,
            options=self._signature_options(),
        )
        flattened = self._flatten(certified.pdf_bytes)

        now = utc_now()
        workflow = Workflow(
            id=self._repo.next_id(),
            name=str(name).strip(),
            signers=signer_list,
            current_signer_order=self._engine.first_order(signer_list),
            pdf_original_name=pdf_original_name,
            created_at=now,
            updated_at=now,
        )
        workflow = self._repo.save_workflow(workflow)
        self._repo.save_document(WorkflowDocument(
            workflow_id=workflow.id,
            master_pdf=certified.pdf_bytes,
            fields=field_defs,
            flattened_pdf=flattened,
            flattened_stale=False,
        ))

        self._audit_event(
            AuditAction.WORKFLOW_CREATED, workflow.id,
            message=f"'{workflow.name}' with {len(signer_list)} signer(s)",
        )
        logger.info("Workflow '%s' created with id=%s", workflow.name, workflow.id)

        return CreateWorkflowResult(
            workflow_id=workflow.id,
            name=workflow.name,
            signers=[SignerRef(name=s.name, signer_id=s.signer_id, order=s.order) for s in signer_list],
        ).to_dict()

    # ---- signer view --------------------------------------------------------

    def get_document_for_signer(self, workflow_id: str, signer_id: str) -> Dict[str, Any]:
        logger.info("Document requested: workflow=%s signer=%s", workflow_id, signer_id)
        workflow = self._load_workflow(workflow_id)
        signer = self._engine.require_turn(workflow, signer_id)
        document = self._load_document(workflow_id)

        if document.flattened_stale or document.flattened_pdf is None:
            logger.info("Regenerating flattened snapshot for workflow %s", workflow_id)
            document.flattened_pdf = self._flatten(document.master_pdf)
            document.flattened_stale = False
            try:
                document = self._repo.save_document(document, expected_version=document.version)
            except ConflictError:
                # a concurrent signer won; serve the fresh bytes without persisting them
                logger.warning("Snapshot for workflow %s not persisted (concurrent update)", workflow_id)

        self._audit_event(AuditAction.DOCUMENT_VIEWED, workflow_id, username=signer.signer_id)

        return SignerDocumentView(
            workflow_id=workflow.id,
            workflow_name=workflow.name,
            signer_name=signer.name,
            signer_id=signer.signer_id,
            pdf_bytes=document.flattened_pdf,
            fields=document.fields_for(signer.signer_id),
            last_signer=self._engine.is_last_signer(workflow, signer),
            signers=[
                SignerContext(name=s.name, order=s.order,
                              status=self._engine.context_status(s, signer.signer_id))
                for s in workflow.ordered_signers()
            ],
        ).to_dict()

    # ---- fill & sign --------------------------------------------------------

    def fill_and_sign(
        self,
        workflow_id: str,
        signer_name: str,
        values: Optional[Mapping[str, Any]],
        placement: PlacementInput,
    ) -> Dict[str, Any]:
        signer_id = slugify(signer_name)
        logger.info("fill_and_sign: signer=%s workflow=%s", signer_id, workflow_id)

        workflow = self._load_workflow(workflow_id)
        signer = self._engine.require_turn(workflow, signer_id)
        sig_placement = self._parse_placement(placement)
        document = self._load_document(workflow_id)

        values = values or {}
        updated = [
            f for f in document.fields
            if f.assigned_to == signer_id and f.field_name in values
        ]
        for f in updated:
            f.current_value = self._as_value(values[f.field_name])
        logger.info("Updating %d field(s) for %s (%d submitted)", len(updated), signer_id, len(values))

        request = ApprovalRequest(
            signer_name=signer_id,
            fields_to_lock=[f.field_name for f in updated],
        )
        revision = sign_pdf(
            document.master_pdf,
            request,
            self._identity,
            fields_to_apply=updated,
            placement=sig_placement,
            options=self._signature_options(),
        )

        completed = self._engine.advance(workflow, signer)
        workflow.updated_at = utc_now()
        try:
            workflow = self._repo.save_workflow(workflow, expected_version=workflow.version)
        except ConflictError:
            logger.warning("Concurrent submission rejected: workflow=%s signer=%s", workflow_id, signer_id)
            raise

        self._store_signed_revision(document, revision.pdf_bytes)

        self._audit_event(
            AuditAction.SIGNED, workflow_id, username=signer_id,
            message=f"field={revision.field_name} locked={len(updated)}",
        )
        if completed:
            self._audit_event(AuditAction.WORKFLOW_COMPLETED, workflow_id)
            logger.info("Workflow %s COMPLETED after signature of %s", workflow_id, signer_id)
        else:
            logger.info("Turn passed to signer order %d", workflow.current_signer_order)

        return FillAndSignResult(
            success=True,
            workflow_status=workflow.status.value,
            completed=completed,
        ).to_dict()

    # ---- download -----------------------------------------------------------

    def download_final(self, workflow_id: str) -> Tuple[str, bytes]:
        workflow = self._load_workflow(workflow_id)
        self._engine.require_completed(workflow)
        document = self._load_document(workflow_id)
        self._audit_event(AuditAction.DOWNLOADED, workflow_id)
        return f"{workflow.name}.pdf", document.master_pdf

    # ---- listing ------------------------------------------------------------

    def list_workflows(self) -> List[Dict[str, Any]]:
        workflows = sorted(self._repo.list_workflows(), key=lambda w: w.updated_at, reverse=True)
        return [
            WorkflowSummary(
                id=w.id,
                name=w.name,
                pdf_original_name=w.pdf_original_name,
                status=w.status.value,
                created_at=to_iso(w.created_at),
                updated_at=to_iso(w.updated_at),
                signers=[
                    SignerSummary(
                        name=s.name,
                        signer_id=s.signer_id,
                        order=s.order,
                        status=w.display_status(s).value,
                    )
                    for s in w.ordered_signers()
                ],
            ).to_dict()
            for w in workflows
        ]
