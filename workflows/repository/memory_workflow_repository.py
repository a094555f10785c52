"""In-memory implementation of WorkflowRepository.

Stores detached copies so callers never mutate persisted state by accident.
Used by tests and for running the service without a database.
"""

from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import replace
from threading import RLock
from typing import Dict, List, Optional

from core.exceptions.errors import ConflictError
from workflows.models.workflow_models import Workflow, WorkflowDocument

logger = logging.getLogger(__name__)


class InMemoryWorkflowRepository:
    """Dict-backed store keyed by workflow id."""

    def __init__(self, *, id_prefix: str = "") -> None:
        self._id_prefix = id_prefix
        self._workflows: Dict[str, Workflow] = {}
        self._documents: Dict[str, WorkflowDocument] = {}
        self._lock = RLock()

    def next_id(self) -> str:
        with self._lock:
            while True:
                wf_id = f"{self._id_prefix}{uuid.uuid4().hex}"
                if wf_id not in self._workflows:
                    return wf_id

    # ===== Workflows =====

    def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        with self._lock:
            wf = self._workflows.get(workflow_id)
            return copy.deepcopy(wf) if wf else None

    def list_workflows(self) -> List[Workflow]:
        with self._lock:
            return [copy.deepcopy(wf) for wf in self._workflows.values()]

    def save_workflow(self, workflow: Workflow, *, expected_version: Optional[int] = None) -> Workflow:
        with self._lock:
            current = self._workflows.get(workflow.id)
            self._check_version("workflow", workflow.id, current, expected_version)
            stored = replace(copy.deepcopy(workflow), version=(current.version + 1) if current else 1)
            self._workflows[workflow.id] = stored
            logger.debug("Workflow %s saved (version %d)", workflow.id, stored.version)
            return copy.deepcopy(stored)

    # ===== Documents =====

    def get_document(self, workflow_id: str) -> Optional[WorkflowDocument]:
        with self._lock:
            doc = self._documents.get(workflow_id)
            return copy.deepcopy(doc) if doc else None

    def save_document(self, document: WorkflowDocument, *, expected_version: Optional[int] = None) -> WorkflowDocument:
        with self._lock:
            current = self._documents.get(document.workflow_id)
            self._check_version("document", document.workflow_id, current, expected_version)
            stored = replace(copy.deepcopy(document), version=(current.version + 1) if current else 1)
            self._documents[document.workflow_id] = stored
            logger.debug("Document %s saved (version %d)", document.workflow_id, stored.version)
            return copy.deepcopy(stored)

    # ===== Helpers =====

    @staticmethod
    def _check_version(kind: str, key: str, current, expected_version: Optional[int]) -> None:
        if expected_version is None:
            if current is not None:
                raise ConflictError(f"{kind.capitalize()} {key} already exists")
            return
        if current is None or current.version != expected_version:
            raise ConflictError(f"{kind.capitalize()} {key} was modified concurrently")
