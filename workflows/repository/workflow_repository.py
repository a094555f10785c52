"""Workflow repository protocol (interface).

Defines the contract for workflow data access without implementation details.
Storage is a key-value store keyed by workflow id; there are no transactions,
concurrent writers are detected with a compare-and-swap on ``version``.
"""

from __future__ import annotations
from typing import List, Optional, Protocol

from workflows.models.workflow_models import Workflow, WorkflowDocument


class WorkflowRepository(Protocol):
    """Protocol for workflow data access."""

    # ===== Identity =====

    def next_id(self) -> str:
        """New, unused workflow id."""
        ...

    # ===== Workflows =====

    def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        """
        Get single workflow by ID.

        Returns:
            Detached Workflow copy or None
        """
        ...

    def list_workflows(self) -> List[Workflow]:
        """All workflows, unordered."""
        ...

    def save_workflow(self, workflow: Workflow, *, expected_version: Optional[int] = None) -> Workflow:
        """
        Persist a workflow and bump its version.

        Args:
            workflow: Record to store
            expected_version: None inserts a new record; otherwise the stored
                version must equal it (ConflictError if not)

        Returns:
            The stored record (with its new version)
        """
        ...

    # ===== Documents =====

    def get_document(self, workflow_id: str) -> Optional[WorkflowDocument]:
        """Get the document of a workflow (PDF blobs included)."""
        ...

    def save_document(self, document: WorkflowDocument, *, expected_version: Optional[int] = None) -> WorkflowDocument:
        """Same contract as ``save_workflow``."""
        ...
