"""SQLite implementation of WorkflowRepository.

Each workflow is one JSON record; its document is a JSON record plus two BLOB
columns for the master and flattened PDFs. The ``version`` column is the
compare-and-swap token.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from dataclasses import replace
from typing import Any, List, Optional

from core.exceptions.errors import ConflictError
from workflows.adapters.database_adapter import DatabaseAdapter
from workflows.adapters.sqlite_adapter import SQLiteAdapter
from workflows.models.workflow_models import Workflow, WorkflowDocument
from workflows.repository.repo_config import RepoConfig

logger = logging.getLogger(__name__)


class SQLiteWorkflowRepository:
    """SQLite backend for workflows and their documents."""

    def __init__(self, config: RepoConfig, *, db_adapter: Optional[DatabaseAdapter] = None) -> None:
        """
        Args:
            config: Repository configuration
            db_adapter: Database adapter (default: SQLiteAdapter)
        """
        self._cfg = config
        self._db = db_adapter or SQLiteAdapter(config.db_path)
        self._ensure_schema()

    # =========================================================================
    # Schema Management
    # =========================================================================

    def _ensure_schema(self) -> None:
        self._db.executescript(
            """
            CREATE TABLE IF NOT EXISTS workflows (
                id TEXT PRIMARY KEY,
                record TEXT NOT NULL,
                version INTEGER NOT NULL,
                updated_at TEXT
            );

            CREATE TABLE IF NOT EXISTS workflow_documents (
                workflow_id TEXT PRIMARY KEY REFERENCES workflows(id),
                record TEXT NOT NULL,
                master_pdf BLOB NOT NULL,
                flattened_pdf BLOB,
                version INTEGER NOT NULL
            );
            """
        )

    def close(self) -> None:
        self._db.close()

    # =========================================================================
    # Identity
    # =========================================================================

    def next_id(self) -> str:
        while True:
            wf_id = f"{self._cfg.id_prefix}{uuid.uuid4().hex}"
            if not self._db.fetchone("SELECT 1 FROM workflows WHERE id = ?", (wf_id,)):
                return wf_id

    # =========================================================================
    # Workflows
    # =========================================================================

    @staticmethod
    def _workflow_from_row(row: dict) -> Workflow:
        data = json.loads(row["record"])
        data["version"] = row["version"]
        return Workflow.from_dict(data)

    def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        row = self._db.fetchone(
            "SELECT record, version FROM workflows WHERE id = ?", (workflow_id,)
        )
        return self._workflow_from_row(row) if row else None

    def list_workflows(self) -> List[Workflow]:
        rows = self._db.fetchall("SELECT record, version FROM workflows")
        return [self._workflow_from_row(r) for r in rows]

    def save_workflow(self, workflow: Workflow, *, expected_version: Optional[int] = None) -> Workflow:
        new_version = 1 if expected_version is None else expected_version + 1
        stored = replace(workflow, version=new_version)
        data = {
            "record": json.dumps(stored.to_dict(), ensure_ascii=False),
            "version": new_version,
            "updated_at": stored.to_dict()["updatedAt"],
        }
        self._write("workflows", "id", workflow.id, data, expected_version)
        logger.debug("Workflow %s saved (version %d)", workflow.id, new_version)
        return stored

    # =========================================================================
    # Documents
    # =========================================================================

    def get_document(self, workflow_id: str) -> Optional[WorkflowDocument]:
        row = self._db.fetchone(
            "SELECT record, master_pdf, flattened_pdf, version FROM workflow_documents "
            "WHERE workflow_id = ?",
            (workflow_id,),
        )
        if not row:
            return None
        data = json.loads(row["record"])
        data["version"] = row["version"]
        return WorkflowDocument.from_dict(
            data,
            master_pdf=bytes(row["master_pdf"]),
            flattened_pdf=bytes(row["flattened_pdf"]) if row["flattened_pdf"] is not None else None,
        )

    def save_document(self, document: WorkflowDocument, *, expected_version: Optional[int] = None) -> WorkflowDocument:
        new_version = 1 if expected_version is None else expected_version + 1
        stored = replace(document, version=new_version)
        data = {
            "record": json.dumps(stored.to_dict(), ensure_ascii=False),
            "master_pdf": sqlite3.Binary(stored.master_pdf),
            "flattened_pdf": sqlite3.Binary(stored.flattened_pdf) if stored.flattened_pdf is not None else None,
            "version": new_version,
        }
        self._write("workflow_documents", "workflow_id", document.workflow_id, data, expected_version)
        logger.debug("Document %s saved (version %d)", document.workflow_id, new_version)
        return stored

    # =========================================================================
    # Helpers
    # =========================================================================

    def _write(self, table: str, key_col: str, key: str, data: dict[str, Any],
               expected_version: Optional[int]) -> None:
        if expected_version is None:
            try:
                self._db.insert(table, {key_col: key, **data})
            except sqlite3.IntegrityError as e:
                self._db.rollback()
                raise ConflictError(f"{table} record {key} already exists") from e
            return

        changed = self._db.update(
            table, data, f"{key_col} = ? AND version = ?", (key, expected_version)
        )
        if changed != 1:
            raise ConflictError(f"{table} record {key} was modified concurrently")
