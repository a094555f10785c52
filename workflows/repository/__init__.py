"""Repository layer for the workflows module.

Provides data access abstractions.
"""

from workflows.repository.workflow_repository import WorkflowRepository
from workflows.repository.memory_workflow_repository import InMemoryWorkflowRepository
from workflows.repository.sqlite_workflow_repository import SQLiteWorkflowRepository
from workflows.repository.repo_config import RepoConfig

__all__ = [
    "WorkflowRepository",
    "InMemoryWorkflowRepository",
    "SQLiteWorkflowRepository",
    "RepoConfig",
]
