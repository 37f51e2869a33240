"""
History Manager - snapshot-based undo/redo for workflow edits.

Keeps two bounded stacks of ``HistorySnapshot``:

    past:   [baseline, s1, s2, ... current]   (top = state on screen)
    future: [... states undone most recently last]

The first snapshot ever saved is the baseline and is never itself an undo
target, so ``can_undo`` requires at least two entries in ``past``.

Saving a snapshot is best-effort auxiliary bookkeeping. Mutators go through
``try_save_snapshot`` / ``try_ensure_baseline``, which log failures and
report them as a ``False`` return instead of raising, so a history problem
can never block the edit itself.
"""

from __future__ import annotations

import copy
import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from flowgraph.graph.edge import WorkflowEdge
from flowgraph.graph.node import Viewport, WorkflowNode

if TYPE_CHECKING:
    from flowgraph.graph.workflow import WorkflowGraph

logger = logging.getLogger(__name__)

MAX_HISTORY = 50


class HistorySnapshot(BaseModel):
    """Independent deep copy of the editable parts of a workflow."""

    nodes: list[WorkflowNode] = Field(default_factory=list)
    edges: list[WorkflowEdge] = Field(default_factory=list)
    node_configs: dict[str, dict[str, Any]] = Field(default_factory=dict)
    viewport: Viewport = Field(default_factory=Viewport)

    @classmethod
    def capture(cls, graph: WorkflowGraph) -> HistorySnapshot:
        """Deep-copy the graph's state; later edits to ``graph`` never leak in."""
        return cls(
            nodes=[node.model_copy(deep=True) for node in graph.nodes],
            edges=[edge.model_copy(deep=True) for edge in graph.edges],
            node_configs=copy.deepcopy(graph.node_configs),
            viewport=graph.viewport.model_copy(),
        )

    def clone(self) -> HistorySnapshot:
        return self.model_copy(deep=True)


class HistoryManager:
    """
    Bounded linear undo/redo history.

    Example:
        history = HistoryManager()
        history.save_snapshot(graph)      # baseline
        graph.add_node(...)               # mutators save after each edit
        snapshot = history.undo()
        if snapshot:
            graph.restore_state(snapshot)
    """

    def __init__(self, max_history: int = MAX_HISTORY):
        if max_history < 1:
            raise ValueError("max_history must be at least 1")
        self.max_history = max_history
        self.past: list[HistorySnapshot] = []
        self.future: list[HistorySnapshot] = []
        self.can_undo = False
        self.can_redo = False

    def _refresh_flags(self) -> None:
        self.can_undo = len(self.past) > 1
        self.can_redo = len(self.future) > 0

    def save_snapshot(self, graph: WorkflowGraph) -> HistorySnapshot:
        """Record the graph's current state and discard any redo entries."""
        snapshot = HistorySnapshot.capture(graph)

        self.past.append(snapshot)
        if len(self.past) > self.max_history:
            del self.past[: len(self.past) - self.max_history]
        self.future = []
        self._refresh_flags()
        return snapshot

    def undo(self) -> HistorySnapshot | None:
        """
        Step back one state.

        Returns the snapshot to restore (the new top of ``past``), or None if
        only the baseline remains.
        """
        if len(self.past) <= 1:
            return None

        self.future.append(self.past.pop())
        self._refresh_flags()
        return self.past[-1].clone()

    def redo(self) -> HistorySnapshot | None:
        """Re-apply the most recently undone state, or return None."""
        if not self.future:
            return None

        snapshot = self.future.pop()
        self.past.append(snapshot)
        self._refresh_flags()
        return snapshot.clone()

    def clear(self) -> None:
        self.past = []
        self.future = []
        self.can_undo = False
        self.can_redo = False

    # === BEST-EFFORT ENTRY POINTS (used by graph mutators) ===

    def try_ensure_baseline(self, graph: WorkflowGraph) -> bool:
        """Save a baseline if history is empty. Failures are logged, not raised."""
        if self.past:
            return True
        return self.try_save_snapshot(graph)

    def try_save_snapshot(self, graph: WorkflowGraph) -> bool:
        """Save a snapshot. Failures are logged, not raised."""
        try:
            self.save_snapshot(graph)
        except Exception as e:
            logger.warning(f"History snapshot failed, edit kept without undo entry: {e}")
            return False
        return True
