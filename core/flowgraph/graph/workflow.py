"""
Workflow Graph - the editable graph model.

Holds nodes (in insertion order, which is display order, not execution
order), edges, per-node configuration, viewport and selection.

Every structural mutator follows the same contract with the history
manager:

    1. make sure a baseline snapshot exists (if history is empty)
    2. apply the edit
    3. save a snapshot of the result

Steps 1 and 3 are best-effort; a history failure is logged and the edit
stands. ``restore_state``, ``set_selected_node`` and ``update_viewport`` are
not history-tracked.
"""

import copy
import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any

from flowgraph.config import get_max_history
from flowgraph.graph.catalog import DEFAULT_CATALOG, NodeCategory, NodeTypeLookup
from flowgraph.graph.edge import WorkflowEdge
from flowgraph.graph.history import HistoryManager, HistorySnapshot
from flowgraph.graph.node import Position, ResolvedNode, Viewport, WorkflowNode
from flowgraph.graph.validator import has_cycle, is_runnable, validate_workflow

logger = logging.getLogger(__name__)


class WorkflowGraph:
    """
    Editable workflow: nodes, edges, configs, viewport, selection.

    Example:
        graph = WorkflowGraph()
        graph.add_node(WorkflowNode(id="start", type="manual-trigger", label="Start"))
        graph.add_node(WorkflowNode(id="mail", type="email-action", label="Mail"))
        graph.add_edge(WorkflowEdge(id="e1", source="start", target="mail"))
        graph.update_node_config("mail", {"to": "ops@example.com"})
        graph.undo()  # config change reverted
    """

    def __init__(
        self,
        history: HistoryManager | None = None,
        catalog: NodeTypeLookup = DEFAULT_CATALOG,
    ):
        self.nodes: list[WorkflowNode] = []
        self.edges: list[WorkflowEdge] = []
        self.node_configs: dict[str, dict[str, Any]] = {}
        self.viewport = Viewport()
        self.selected_node_id: str | None = None
        self.history = history if history is not None else HistoryManager(get_max_history())
        self.catalog = catalog

    @contextmanager
    def _tracked(self) -> Iterator[None]:
        """Wrap a mutation with baseline + post-edit snapshots."""
        self.history.try_ensure_baseline(self)
        yield
        self.history.try_save_snapshot(self)

    # === QUERIES ===

    def get_node(self, node_id: str) -> WorkflowNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_node_config(self, node_id: str) -> dict[str, Any]:
        """Return a copy of the node's config ({} if none)."""
        return copy.deepcopy(self.node_configs.get(node_id, {}))

    def resolve_node(self, node_id: str) -> ResolvedNode | None:
        """Join a node with its config."""
        node = self.get_node(node_id)
        if node is None:
            return None
        return ResolvedNode(node=node.model_copy(deep=True), config=self.get_node_config(node_id))

    def get_outgoing_edges(self, node_id: str) -> list[WorkflowEdge]:
        return [e for e in self.edges if e.source == node_id]

    def get_incoming_edges(self, node_id: str) -> list[WorkflowEdge]:
        return [e for e in self.edges if e.target == node_id]

    @property
    def selected_node(self) -> WorkflowNode | None:
        if self.selected_node_id is None:
            return None
        return self.get_node(self.selected_node_id)

    @property
    def selected_node_config(self) -> dict[str, Any] | None:
        if not self.selected_node_id:
            return None
        return self.get_node_config(self.selected_node_id)

    @property
    def has_unconnected_nodes(self) -> bool:
        """True if some node has neither incoming nor outgoing edges."""
        connected = {e.source for e in self.edges} | {e.target for e in self.edges}
        return any(node.id not in connected for node in self.nodes)

    @property
    def has_pending_config(self) -> bool:
        """True if any node is missing a required config value."""
        for node in self.nodes:
            definition = self.catalog.lookup(node.type)
            if definition is None or not definition.required_fields:
                continue
            if not definition.is_config_complete(self.node_configs.get(node.id)):
                return True
        return False

    @property
    def has_trigger_node(self) -> bool:
        for node in self.nodes:
            definition = self.catalog.lookup(node.type)
            if definition is not None and definition.category == NodeCategory.TRIGGER:
                return True
        return False

    @property
    def has_cycle(self) -> bool:
        return has_cycle(self)

    @property
    def is_valid_workflow(self) -> bool:
        return is_runnable(self, self.catalog)

    def validation_errors(self) -> list[str]:
        return validate_workflow(self, self.catalog)

    def snapshot(self) -> HistorySnapshot:
        """Point-in-time deep copy, independent of later edits."""
        return HistorySnapshot.capture(self)

    def freeze(self) -> HistorySnapshot:
        """The copy a run works from: nodes, edges and configs at this instant."""
        return self.snapshot()

    # === HISTORY-TRACKED MUTATORS ===

    def add_node(self, node: WorkflowNode, config: dict[str, Any] | None = None) -> None:
        """Append a node. Config defaults to {} when not given."""
        if self.get_node(node.id) is not None:
            raise ValueError(f"Node '{node.id}' already exists")

        with self._tracked():
            self.nodes.append(node.model_copy(deep=True))
            self.node_configs[node.id] = copy.deepcopy(config) if config else {}

    def update_node(self, node_id: str, **updates: Any) -> None:
        """
        Update label, position or extra attributes of a node.

        ``id`` is always preserved and ``type`` may not change.
        """
        updates.pop("id", None)
        index = next((i for i, n in enumerate(self.nodes) if n.id == node_id), None)
        if index is None:
            logger.debug(f"update_node: no node '{node_id}'")
            return

        existing = self.nodes[index]
        if "type" in updates and updates["type"] != existing.type:
            raise ValueError(f"Node '{node_id}' type is immutable ({existing.type})")
        updates.pop("type", None)

        position = updates.pop("position", None)
        if isinstance(position, dict):
            position = Position(**position)

        with self._tracked():
            data = existing.model_dump()
            data.update(updates)
            if position is not None:
                data["position"] = position
            self.nodes[index] = WorkflowNode.model_validate(data)

    def update_node_config(self, node_id: str, config: dict[str, Any]) -> None:
        """Replace a node's config. Unknown node IDs are ignored."""
        if self.get_node(node_id) is None:
            logger.debug(f"update_node_config: no node '{node_id}'")
            return
        with self._tracked():
            self.node_configs[node_id] = copy.deepcopy(config)

    def delete_node(self, node_id: str) -> None:
        self.delete_nodes([node_id])

    def delete_nodes(self, node_ids: Iterable[str]) -> None:
        """Remove nodes, their edges, their configs and any selection on them."""
        id_set = set(node_ids)
        with self._tracked():
            self.nodes = [n for n in self.nodes if n.id not in id_set]
            self.edges = [
                e for e in self.edges if e.source not in id_set and e.target not in id_set
            ]
            for node_id in id_set:
                self.node_configs.pop(node_id, None)
            if self.selected_node_id in id_set:
                self.selected_node_id = None

    def update_node_positions(self, updates: Iterable[tuple[str, Position | dict]]) -> None:
        """Move several nodes in one history step."""
        with self._tracked():
            for node_id, position in updates:
                node = self.get_node(node_id)
                if node is None:
                    continue
                node.position = (
                    Position(**position) if isinstance(position, dict) else position.model_copy()
                )

    def add_edge(self, edge: WorkflowEdge) -> None:
        if any(e.id == edge.id for e in self.edges):
            raise ValueError(f"Edge '{edge.id}' already exists")

        with self._tracked():
            self.edges.append(edge.model_copy(deep=True))

    def delete_edge(self, edge_id: str) -> None:
        with self._tracked():
            self.edges = [e for e in self.edges if e.id != edge_id]

    # === UNTRACKED STATE ===

    def set_selected_node(self, node_id: str | None) -> None:
        self.selected_node_id = node_id

    def update_viewport(self, viewport: Viewport) -> None:
        self.viewport = viewport.model_copy()

    def restore_state(self, snapshot: HistorySnapshot) -> None:
        """Replace nodes, edges, configs and viewport with a snapshot's copy."""
        restored = snapshot.clone()
        self.nodes = restored.nodes
        self.edges = restored.edges
        self.node_configs = restored.node_configs
        self.viewport = restored.viewport
        if self.selected_node_id is not None and self.get_node(self.selected_node_id) is None:
            self.selected_node_id = None

    def clear_workflow(self) -> None:
        """Empty the workflow and its history."""
        self.nodes = []
        self.edges = []
        self.node_configs = {}
        self.selected_node_id = None
        self.history.clear()

    # === UNDO / REDO ===

    def undo(self) -> bool:
        """Restore the previous state. Returns False if nothing to undo."""
        snapshot = self.history.undo()
        if snapshot is None:
            return False
        self.restore_state(snapshot)
        return True

    def redo(self) -> bool:
        """Re-apply the last undone state. Returns False if nothing to redo."""
        snapshot = self.history.redo()
        if snapshot is None:
            return False
        self.restore_state(snapshot)
        return True

    @classmethod
    def from_snapshot(
        cls,
        snapshot: HistorySnapshot,
        history: HistoryManager | None = None,
        catalog: NodeTypeLookup = DEFAULT_CATALOG,
    ) -> "WorkflowGraph":
        """Build a graph from a snapshot without recording history."""
        graph = cls(history=history, catalog=catalog)
        graph.restore_state(snapshot)
        return graph
