"""Data Transfer Objects for the workflows module.

DTOs are immutable data containers for transferring data between layers.
"""

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

__all__ = [
    "AUDIT_FEATURE",
    "AuditAction",
    "CreateWorkflowResult",
    "FillAndSignResult",
    "SignerContext",
    "SignerDocumentView",
    "SignerRef",
    "SignerSummary",
    "WorkflowSummary",
]
