"""Graph builders shared by the test modules."""

from flowgraph.graph.edge import BranchType, WorkflowEdge
from flowgraph.graph.node import WorkflowNode
from flowgraph.graph.workflow import WorkflowGraph


def node(node_id: str, node_type: str = "http-action", label: str | None = None) -> WorkflowNode:
    return WorkflowNode(id=node_id, type=node_type, label=label if label is not None else node_id)


def edge(source: str, target: str, branch: BranchType | str = BranchType.DEFAULT) -> WorkflowEdge:
    return WorkflowEdge(id=f"{source}->{target}", source=source, target=target, branch=branch)


def build_graph(nodes, edges=(), configs=None) -> WorkflowGraph:
    """Build a graph directly, without recording history."""
    graph = WorkflowGraph()
    graph.nodes = list(nodes)
    graph.edges = list(edges)
    graph.node_configs = {n.id: {} for n in graph.nodes}
    graph.node_configs.update(configs or {})
    return graph


def branching_graph() -> WorkflowGraph:
    """T -> C -> (true: A, false: B)."""
    return build_graph(
        [
            node("T", "manual-trigger"),
            node("C", "condition"),
            node("A", "email-action"),
            node("B", "sms-action"),
        ],
        [
            edge("T", "C"),
            edge("C", "A", BranchType.TRUE),
            edge("C", "B", BranchType.FALSE),
        ],
        configs={"C": {"condition": "status == 200"}},
    )
