"""Graph structures: Nodes, Edges, Catalog, History and Execution."""

from flowgraph.graph.catalog import (
    DEFAULT_CATALOG,
    NodeCategory,
    NodeType,
    NodeTypeCatalog,
    NodeTypeDefinition,
    get_nodes_by_category,
    is_conditional,
    is_trigger,
)
from flowgraph.graph.decision import (
    DecisionPrompt,
    DecisionProvider,
    DecisionRequest,
    InteractiveDecisionProvider,
    RandomDecisionProvider,
    ScriptedDecisionProvider,
    StaticDecisionProvider,
)
from flowgraph.graph.edge import BranchType, WorkflowEdge
from flowgraph.graph.executor import ExecutionResult, InvalidWorkflowError, WorkflowExecutor
from flowgraph.graph.history import HistoryManager, HistorySnapshot
from flowgraph.graph.node import Position, ResolvedNode, Viewport, WorkflowNode
from flowgraph.graph.step import (
    FunctionStepExecutor,
    SimulatedStepExecutor,
    StepExecutor,
    StepResult,
)
from flowgraph.graph.validator import has_cycle, is_runnable, validate_workflow
from flowgraph.graph.workflow import WorkflowGraph

__all__ = [
    # Catalog
    "DEFAULT_CATALOG",
    "NodeCategory",
    "NodeType",
    "NodeTypeCatalog",
    "NodeTypeDefinition",
    "get_nodes_by_category",
    "is_conditional",
    "is_trigger",
    # Node
    "Position",
    "Viewport",
    "WorkflowNode",
    "ResolvedNode",
    # Edge
    "BranchType",
    "WorkflowEdge",
    # Graph
    "WorkflowGraph",
    "HistoryManager",
    "HistorySnapshot",
    "has_cycle",
    "is_runnable",
    "validate_workflow",
    # Execution
    "WorkflowExecutor",
    "ExecutionResult",
    "InvalidWorkflowError",
    "StepExecutor",
    "StepResult",
    "FunctionStepExecutor",
    "SimulatedStepExecutor",
    # Decisions
    "DecisionPrompt",
    "DecisionProvider",
    "DecisionRequest",
    "InteractiveDecisionProvider",
    "StaticDecisionProvider",
    "ScriptedDecisionProvider",
    "RandomDecisionProvider",
]
