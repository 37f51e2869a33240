"""Workflow persistence."""

from flowgraph.storage.workflow_store import (
    Autosaver,
    SavedWorkflow,
    StorageError,
    WorkflowStorage,
)

__all__ = ["Autosaver", "SavedWorkflow", "StorageError", "WorkflowStorage"]
