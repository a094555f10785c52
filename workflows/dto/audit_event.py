"""Audit event names recorded by the workflow service.

Events are written to the central audit log (``core.logging.logic.logger``)
with the workflow id as reference id.
"""

from __future__ import annotations
from enum import Enum

AUDIT_FEATURE = "workflows"


class AuditAction(Enum):
    """Audit action types for the signing workflow."""

    WORKFLOW_CREATED = "workflow_created"
    DOCUMENT_VIEWED = "document_viewed"
    SIGNED = "signed"
    WORKFLOW_COMPLETED = "workflow_completed"
    DOWNLOADED = "downloaded"
