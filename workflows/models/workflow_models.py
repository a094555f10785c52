"""
Workflow domain models.

Keeps the data layer independent from PDF handling and storage details.
Records serialise to JSON-compatible dicts with camelCase keys; binary PDFs
stay ``bytes`` and are handled by the repositories.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from core.helpers.date_time_helper import from_iso, to_iso, utc_now
from forms.models.field_models import FieldDefinition


class WorkflowStatus(Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class SignerStatus(Enum):
    PENDING = "PENDING"
    SIGNED = "SIGNED"
    # derived: pending signer whose turn it is; never stored
    IN_PROGRESS = "IN_PROGRESS"


@dataclass
class Signer:
    signer_id: str
    name: str
    order: int
    status: SignerStatus = SignerStatus.PENDING

    @property
    def has_signed(self) -> bool:
        return self.status == SignerStatus.SIGNED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signerId": self.signer_id,
            "name": self.name,
            "order": self.order,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Signer":
        return cls(
            signer_id=str(data["signerId"]),
            name=str(data["name"]),
            order=int(data["order"]),
            status=SignerStatus(data.get("status") or SignerStatus.PENDING.value),
        )


@dataclass
class Workflow:
    id: str
    name: str
    signers: List[Signer]
    current_signer_order: int
    status: WorkflowStatus = WorkflowStatus.IN_PROGRESS
    pdf_original_name: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    version: int = 0

    @property
    def is_completed(self) -> bool:
        return self.status == WorkflowStatus.COMPLETED

    def signer(self, signer_id: str) -> Optional[Signer]:
        return next((s for s in self.signers if s.signer_id == signer_id), None)

    def current_signer(self) -> Optional[Signer]:
        if self.is_completed:
            return None
        return next((s for s in self.signers if s.order == self.current_signer_order), None)

    def ordered_signers(self) -> List[Signer]:
        return sorted(self.signers, key=lambda s: s.order)

    def display_status(self, signer: Signer) -> SignerStatus:
        """Stored status, with IN_PROGRESS for the pending signer whose turn it is."""
        if signer.status == SignerStatus.PENDING and not self.is_completed \
                and signer.order == self.current_signer_order:
            return SignerStatus.IN_PROGRESS
        return signer.status

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "pdfOriginalName": self.pdf_original_name,
            "signers": [s.to_dict() for s in self.signers],
            "currentSignerOrder": self.current_signer_order,
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Workflow":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            signers=[Signer.from_dict(s) for s in data.get("signers") or []],
            current_signer_order=int(data["currentSignerOrder"]),
            status=WorkflowStatus(data.get("status") or WorkflowStatus.IN_PROGRESS.value),
            pdf_original_name=data.get("pdfOriginalName"),
            created_at=from_iso(data.get("createdAt")) or utc_now(),
            updated_at=from_iso(data.get("updatedAt")) or utc_now(),
            version=int(data.get("version") or 0),
        )


@dataclass
class WorkflowDocument:
    workflow_id: str
    master_pdf: bytes
    fields: List[FieldDefinition]
    flattened_pdf: Optional[bytes] = None
    flattened_stale: bool = True
    version: int = 0

    def get_field(self, field_name: str) -> Optional[FieldDefinition]:
        return next((f for f in self.fields if f.field_name == field_name), None)

    def fields_for(self, signer_id: str) -> List[FieldDefinition]:
        return [f for f in self.fields if f.assigned_to == signer_id]

    def to_dict(self) -> Dict[str, Any]:
        """Metadata only; the PDF blobs are stored next to it."""
        return {
            "workflowId": self.workflow_id,
            "fields": [f.to_dict() for f in self.fields],
            "flattenedStale": self.flattened_stale,
            "version": self.version,
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        *,
        master_pdf: bytes,
        flattened_pdf: Optional[bytes] = None,
    ) -> "WorkflowDocument":
        return cls(
            workflow_id=str(data["workflowId"]),
            master_pdf=master_pdf,
            fields=[FieldDefinition.from_dict(f) for f in data.get("fields") or []],
            flattened_pdf=flattened_pdf,
            flattened_stale=bool(data.get("flattenedStale", True)),
            version=int(data.get("version") or 0),
        )
