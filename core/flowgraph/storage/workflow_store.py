"""
Workflow Storage - save, load, export and import workflows.

A small key-value store on disk: each key is one JSON file under
``base_path``. The editor keeps its working copy under a single key
(``workflow-builder-state``); exports are standalone files.

Format (version 1.0.0):

    {
      "version": "1.0.0",
      "name": "...",
      "nodes": [...], "edges": [...],
      "node_configs": {node_id: {...}},
      "viewport": {...},
      "created_at": ISO-8601, "updated_at": ISO-8601
    }

Files written by the browser editor (camelCase keys, node
``data.label``/``data.config``, edge ``type``) are accepted on read.

The execution engine never touches storage; whoever owns the graph saves
and loads it between runs.
"""

import asyncio
import json
import logging
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, model_validator

from flowgraph.config import get_storage_path
from flowgraph.graph.edge import WorkflowEdge
from flowgraph.graph.history import HistoryManager
from flowgraph.graph.node import Viewport, WorkflowNode
from flowgraph.graph.workflow import WorkflowGraph
from flowgraph.utils.io import atomic_write

logger = logging.getLogger(__name__)

STORAGE_KEY = "workflow-builder-state"
FORMAT_VERSION = "1.0.0"
AUTOSAVE_DELAY = 2.0


class StorageError(RuntimeError):
    """A workflow could not be written or read."""


class SavedWorkflow(BaseModel):
    """On-disk representation of a workflow."""

    id: str | None = None
    version: str = FORMAT_VERSION
    name: str = "Untitled Workflow"
    nodes: list[WorkflowNode] = Field(default_factory=list)
    edges: list[WorkflowEdge] = Field(default_factory=list)
    node_configs: dict[str, dict[str, Any]] = Field(default_factory=dict)
    viewport: Viewport = Field(default_factory=Viewport)
    created_at: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    updated_at: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())

    @model_validator(mode="before")
    @classmethod
    def _accept_editor_format(cls, data: Any) -> Any:
        """Normalise the browser editor's save format."""
        if not isinstance(data, dict):
            return data
        data = dict(data)

        if "nodeConfigs" in data and "node_configs" not in data:
            data["node_configs"] = data.pop("nodeConfigs")
        configs: dict[str, Any] = dict(data.get("node_configs") or {})

        for key in ("createdAt", "updatedAt"):
            if key in data:
                value = data.pop(key)
                if isinstance(value, int | float):
                    value = datetime.fromtimestamp(value / 1000, UTC).isoformat()
                data.setdefault(key.replace("At", "_at").lower(), value)

        nodes = []
        for raw in data.get("nodes") or []:
            if isinstance(raw, dict) and isinstance(raw.get("data"), dict):
                raw = dict(raw)
                node_data = raw.pop("data")
                raw.setdefault("label", node_data.get("label", ""))
                if node_data.get("config") is not None:
                    configs.setdefault(raw.get("id"), node_data["config"])
            nodes.append(raw)
        data["nodes"] = nodes

        edges = []
        for raw in data.get("edges") or []:
            if isinstance(raw, dict) and "branch" not in raw:
                raw = dict(raw)
                raw["branch"] = raw.pop("type", None) or "default"
            edges.append(raw)
        data["edges"] = edges

        data["node_configs"] = configs
        return data

    @classmethod
    def from_graph(cls, graph: WorkflowGraph, name: str = "Untitled Workflow") -> "SavedWorkflow":
        snapshot = graph.snapshot()
        return cls(
            name=name,
            nodes=snapshot.nodes,
            edges=snapshot.edges,
            node_configs=snapshot.node_configs,
            viewport=snapshot.viewport,
        )

    def to_graph(self, history: HistoryManager | None = None) -> WorkflowGraph:
        """Rebuild an editable graph. History starts empty."""
        graph = WorkflowGraph(history=history)
        graph.nodes = [node.model_copy(deep=True) for node in self.nodes]
        graph.edges = [edge.model_copy(deep=True) for edge in self.edges]
        graph.node_configs = {
            node_id: dict(config)
            for node_id, config in self.node_configs.items()
            if graph.get_node(node_id) is not None
        }
        graph.viewport = self.viewport.model_copy()
        return graph


def export_filename(name: str) -> str:
    """'My Flow 2' -> 'my-flow-2.json'."""
    slug = re.sub(r"\s+", "-", name).lower()
    return f"{slug}.json"


class WorkflowStorage:
    """
    JSON-file key-value store for workflows.

    Directory structure:
        {base_path}/
          workflow-builder-state.json   # editor working copy
          {other keys}.json
    """

    def __init__(self, base_path: str | Path | None = None):
        """
        Args:
            base_path: Directory holding the JSON files. Defaults to the
                configured ``storage.path`` (~/.flowgraph/workflows).
        """
        self.base_path = Path(base_path) if base_path is not None else get_storage_path()

    def _validate_key(self, key: str) -> None:
        """
        Validate key to prevent path traversal.

        Raises:
            ValueError: If key is empty or contains path or shell syntax
        """
        if not key or key.strip() == "":
            raise ValueError("Key cannot be empty")
        if "/" in key or "\\" in key:
            raise ValueError(f"Invalid key format: path separators not allowed in '{key}'")
        if ".." in key or key.startswith("."):
            raise ValueError(f"Invalid key format: path traversal detected in '{key}'")
        if "\x00" in key:
            raise ValueError("Invalid key format: null bytes not allowed")
        dangerous_chars = {"<", ">", "|", "&", "$", "`", "'", '"', ":"}
        if any(char in key for char in dangerous_chars):
            raise ValueError(f"Invalid key format: contains dangerous characters in '{key}'")

    def _path(self, key: str) -> Path:
        self._validate_key(key)
        return self.base_path / f"{key}.json"

    def save(
        self,
        graph: WorkflowGraph,
        name: str = "Untitled Workflow",
        key: str = STORAGE_KEY,
    ) -> SavedWorkflow:
        """Persist ``graph`` under ``key``. Raises StorageError on failure."""
        path = self._path(key)
        saved = SavedWorkflow.from_graph(graph, name=name)

        existing = self._read(path)
        if existing is not None:
            saved.created_at = existing.created_at

        try:
            with atomic_write(path) as f:
                f.write(saved.model_dump_json(indent=2))
        except OSError as e:
            logger.error(f"Failed to save workflow to {path}: {e}")
            raise StorageError("Failed to save workflow") from e

        logger.info(f"Workflow saved: {name}")
        return saved

    def load(self, key: str = STORAGE_KEY) -> SavedWorkflow | None:
        """Return the stored workflow, or None if absent or unreadable."""
        saved = self._read(self._path(key))
        if saved is not None:
            logger.info(f"Workflow loaded: {saved.name}")
        return saved

    def clear(self, key: str = STORAGE_KEY) -> bool:
        """Delete the stored workflow. Failures are logged, not raised."""
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(f"Failed to clear workflow at {path}: {e}")
            return False
        logger.info("Workflow cleared")
        return True

    def _read(self, path: Path) -> SavedWorkflow | None:
        if not path.exists():
            return None
        try:
            return SavedWorkflow.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.error(f"Failed to load workflow from {path}: {e}")
            return None

    # === FILE EXPORT / IMPORT ===

    def export_workflow(self, graph: WorkflowGraph, name: str, directory: str | Path) -> Path:
        """Write a standalone copy of ``graph`` and return its path."""
        path = Path(directory) / export_filename(name)
        saved = SavedWorkflow.from_graph(graph, name=name)
        try:
            with atomic_write(path) as f:
                f.write(saved.model_dump_json(indent=2))
        except OSError as e:
            raise StorageError(f"Failed to export workflow to {path}") from e
        return path

    @staticmethod
    def import_workflow(path: str | Path) -> SavedWorkflow:
        """Read a workflow file. Raises StorageError if it is not one."""
        path = Path(path)
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError("Failed to read file") from e
        try:
            return SavedWorkflow.model_validate(json.loads(content))
        except (json.JSONDecodeError, ValidationError) as e:
            raise StorageError("Invalid workflow file") from e


class Autosaver:
    """
    Debounced saves: each ``schedule`` replaces any pending save, so a
    burst of edits is written once, ``delay`` seconds after the last one.

    Must be used from a running event loop.
    """

    def __init__(self, storage: WorkflowStorage, delay: float = AUTOSAVE_DELAY):
        self.storage = storage
        self.delay = delay
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, graph: WorkflowGraph, name: str = "Auto-saved Workflow") -> None:
        self.cancel()
        snapshot = graph.snapshot()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._save, snapshot, name)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _save(self, snapshot: Any, name: str) -> None:
        self._handle = None
        try:
            self.storage.save(WorkflowGraph.from_snapshot(snapshot), name=name)
        except StorageError as e:
            logger.warning(f"Autosave failed: {e}")
