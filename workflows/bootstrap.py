# workflows/bootstrap.py
"""
Wires a ready-to-use WorkflowService from configuration:

    config -> logging, repository (sqlite|memory), signing identity, audit log
"""
from __future__ import annotations

import logging
from typing import Optional

from core.config.config_service import ConfigService, get_config_service
from core.logging.logic.log_setup import configure_logging
from core.logging.logic.logger import AuditLogger
from signature.models.signing_identity import SigningIdentity
from workflows.logic.workflow_service import WorkflowService
from workflows.repository.memory_workflow_repository import InMemoryWorkflowRepository
from workflows.repository.repo_config import RepoConfig
from workflows.repository.sqlite_workflow_repository import SQLiteWorkflowRepository
from workflows.repository.workflow_repository import WorkflowRepository

logger = logging.getLogger(__name__)


def build_repository(config: ConfigService) -> WorkflowRepository:
    backend = (config.storage.backend or "sqlite").strip().lower()
    if backend == "memory":
        return InMemoryWorkflowRepository()
    if backend == "sqlite":
        return SQLiteWorkflowRepository(RepoConfig(db_path=str(config.storage.db_path)))
    raise ValueError(f"Unknown storage backend: {config.storage.backend!r}")


def build_workflow_service(
    config: Optional[ConfigService] = None,
    *,
    identity: Optional[SigningIdentity] = None,
) -> WorkflowService:
    """
    Assemble the service. ``identity`` overrides the key/certificate files named
    in the [Signing] section (tests pass a throw-away one).
    """
    cfg = config or get_config_service()
    configure_logging(cfg.logging)

    if identity is None:
        signing = cfg.signing
        identity = SigningIdentity.from_files(
            signing.key_file,
            signing.cert_file,
            signing.key_passphrase or None,
        )

    repository = build_repository(cfg)
    audit = AuditLogger(cfg.logging.audit_db)
    logger.info(
        "Workflow service ready (storage=%s, signer=%s)",
        cfg.storage.backend, identity.subject_name,
    )
    return WorkflowService(repository=repository, identity=identity, audit=audit, config=cfg)
