"""Result DTOs handed to the API layer.

Each DTO is immutable and renders itself as a JSON-compatible dict with the
camelCase keys the web client expects.
"""

from __future__ import annotations
import base64
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from forms.models.field_models import FieldDefinition


@dataclass(frozen=True)
class SignerRef:
    name: str
    signer_id: str
    order: int

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "signerId": self.signer_id, "order": self.order}


@dataclass(frozen=True)
class CreateWorkflowResult:
    workflow_id: str
    name: str
    signers: List[SignerRef] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workflowId": self.workflow_id,
            "name": self.name,
            "signers": [s.to_dict() for s in self.signers],
        }


@dataclass(frozen=True)
class SignerContext:
    """One row of the signer sequence shown next to the document."""
    name: str
    order: int
    status: str  # CURRENT | SIGNED | PENDING

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "order": self.order, "status": self.status}


@dataclass(frozen=True)
class SignerDocumentView:
    workflow_id: str
    workflow_name: str
    signer_name: str
    signer_id: str
    pdf_bytes: bytes
    fields: List[FieldDefinition] = field(default_factory=list)
    last_signer: bool = False
    signers: List[SignerContext] = field(default_factory=list)

    @property
    def pdf_base64(self) -> str:
        return base64.b64encode(self.pdf_bytes).decode("ascii")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workflowId": self.workflow_id,
            "workflowName": self.workflow_name,
            "signerName": self.signer_name,
            "signerId": self.signer_id,
            "pdfBase64": self.pdf_base64,
            "fields": [f.to_dict() for f in self.fields],
            "lastSigner": self.last_signer,
            "signers": [s.to_dict() for s in self.signers],
        }


@dataclass(frozen=True)
class FillAndSignResult:
    success: bool
    workflow_status: str
    completed: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "workflowStatus": self.workflow_status,
            "completed": self.completed,
        }


@dataclass(frozen=True)
class SignerSummary:
    name: str
    signer_id: str
    order: int
    status: str  # SIGNED | IN_PROGRESS | PENDING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "signerId": self.signer_id,
            "order": self.order,
            "status": self.status,
        }


@dataclass(frozen=True)
class WorkflowSummary:
    id: str
    name: str
    pdf_original_name: Optional[str]
    status: str
    created_at: Optional[str]
    updated_at: Optional[str]
    signers: List[SignerSummary] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "pdfOriginalName": self.pdf_original_name,
            "status": self.status,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "signers": [s.to_dict() for s in self.signers],
        }
