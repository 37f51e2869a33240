"""
Flowgraph - build, validate and run branching automation workflows.

A workflow is a directed acyclic graph of typed nodes (triggers, actions,
logic). ``WorkflowGraph`` is the editable model with undo/redo;
``WorkflowExecutor`` runs a validated graph one node at a time, asking a
decision provider which way each condition goes and recording every step
to a run log.
"""

from flowgraph.config import FlowgraphConfig
from flowgraph.graph import (
    DEFAULT_CATALOG,
    BranchType,
    ExecutionResult,
    InteractiveDecisionProvider,
    InvalidWorkflowError,
    NodeType,
    Position,
    SimulatedStepExecutor,
    StaticDecisionProvider,
    WorkflowEdge,
    WorkflowExecutor,
    WorkflowGraph,
    WorkflowNode,
    validate_workflow,
)
from flowgraph.runtime import EventBus, EventType, ExecutionStatus, NodeExecutionStatus, RunLog
from flowgraph.storage import StorageError, WorkflowStorage

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_CATALOG",
    "BranchType",
    "EventBus",
    "EventType",
    "ExecutionResult",
    "ExecutionStatus",
    "FlowgraphConfig",
    "InteractiveDecisionProvider",
    "InvalidWorkflowError",
    "NodeExecutionStatus",
    "NodeType",
    "Position",
    "RunLog",
    "SimulatedStepExecutor",
    "StaticDecisionProvider",
    "StorageError",
    "WorkflowEdge",
    "WorkflowExecutor",
    "WorkflowGraph",
    "WorkflowNode",
    "WorkflowStorage",
    "validate_workflow",
]
