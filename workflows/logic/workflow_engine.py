# workflows/logic/workflow_engine.py
"""
Workflow rules & guards for the signing sequence.

- Stateless: pure guard/transition logic, no storage or PDF work here.
- Turn order is driven by ``Workflow.current_signer_order``; signer orders are
  unique but need not be contiguous.
- Guards raise the shared error types so the service can let them propagate.
"""

from __future__ import annotations
from typing import Iterable, List, Mapping, Optional

from core.exceptions.errors import BadRequestError, ForbiddenError
from forms.models.field_models import FieldDefinition, FieldType
from workflows.logic.slug import slugify
from workflows.models.workflow_models import (
    Signer,
    SignerStatus,
    Workflow,
    WorkflowStatus,
)


class WorkflowEngine:
    """Stateless rules engine; the service persists resulting changes."""

    # ----------------- Creation -------------------------------------------
    @staticmethod
    def build_signers(raw_signers: Iterable[Mapping]) -> List[Signer]:
        """
        Validate raw ``{"name", "order"}`` entries and turn them into signers
        sorted by order.
        """
        signers: List[Signer] = []
        for raw in raw_signers or []:
            name = str(raw.get("name") or "").strip()
            if not name:
                raise BadRequestError("Signer name must not be blank")
            try:
                order = int(raw.get("order"))
            except (TypeError, ValueError):
                raise BadRequestError(f"Signer '{name}' has no valid order")
            if order < 1:
                raise BadRequestError(f"Signer '{name}' order must be positive")
            signer_id = slugify(name)
            if not signer_id:
                raise BadRequestError(f"Signer name '{name}' yields an empty id")
            signers.append(Signer(signer_id=signer_id, name=name, order=order))

        if not signers:
            raise BadRequestError("A workflow needs at least one signer")
        orders = [s.order for s in signers]
        if len(set(orders)) != len(orders):
            raise BadRequestError("Signer orders must be unique")
        ids = [s.signer_id for s in signers]
        if len(set(ids)) != len(ids):
            raise BadRequestError("Signer names must map to distinct ids")
        return sorted(signers, key=lambda s: s.order)

    @staticmethod
    def validate_fields(fields: Iterable[FieldDefinition], signers: Iterable[Signer]) -> None:
        known = {s.signer_id for s in signers}
        seen = set()
        for f in fields:
            if not f.field_name or not f.field_name.strip():
                raise BadRequestError("Field name must not be blank")
            if f.field_name in seen:
                raise BadRequestError(f"Duplicate field name '{f.field_name}'")
            seen.add(f.field_name)
            if not isinstance(f.field_type, FieldType):
                raise BadRequestError(f"Unknown field type for '{f.field_name}'")
            if f.assigned_to not in known:
                raise BadRequestError(
                    f"Field '{f.field_name}' is assigned to unknown signer '{f.assigned_to}'"
                )

    @staticmethod
    def first_order(signers: Iterable[Signer]) -> int:
        return min(s.order for s in signers)

    # ----------------- Guards ---------------------------------------------
    @staticmethod
    def require_turn(workflow: Workflow, signer_id: str) -> Signer:
        """The signer if it is their turn, else ForbiddenError."""
        signer = workflow.signer(signer_id)
        if signer is None:
            raise ForbiddenError("Unknown signer for this workflow")
        if signer.has_signed:
            raise ForbiddenError("You have already signed this document")
        if workflow.is_completed or signer.order != workflow.current_signer_order:
            raise ForbiddenError(
                "It is not your turn yet; previous signers have to sign first"
            )
        return signer

    @staticmethod
    def require_completed(workflow: Workflow) -> None:
        if not workflow.is_completed:
            raise ForbiddenError(
                f"Workflow is not completed yet (status: {workflow.status.value})"
            )

    # ----------------- Transitions ----------------------------------------
    @staticmethod
    def next_order(workflow: Workflow) -> Optional[int]:
        """Smallest order above the current one, None when nobody is left."""
        later = [s.order for s in workflow.signers if s.order > workflow.current_signer_order]
        return min(later) if later else None

    @classmethod
    def advance(cls, workflow: Workflow, signer: Signer) -> bool:
        """
        Mark ``signer`` SIGNED and move the turn pointer forward.
        Returns True when the workflow became COMPLETED.
        """
        signer.status = SignerStatus.SIGNED
        nxt = cls.next_order(workflow)
        if nxt is None:
            workflow.current_signer_order = workflow.current_signer_order + 1
            workflow.status = WorkflowStatus.COMPLETED
            return True
        workflow.current_signer_order = nxt
        return False

    # ----------------- UX helpers -----------------------------------------
    @staticmethod
    def is_last_signer(workflow: Workflow, signer: Signer) -> bool:
        return signer.order == max(s.order for s in workflow.signers)

    @staticmethod
    def context_status(signer: Signer, viewer_id: str) -> str:
        """CURRENT for the viewing signer, else SIGNED / PENDING."""
        if signer.signer_id == viewer_id:
            return "CURRENT"
        return "SIGNED" if signer.status == SignerStatus.SIGNED else "PENDING"
