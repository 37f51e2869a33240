"""Structural validation for workflows.

Pure functions over anything exposing ``nodes`` and ``edges`` sequences.
Nothing here consults execution state, so the checks are safe to call at
any time and any frequency (the editor re-evaluates them on every change).

Two predicates gate a run:
- ``has_cycle``: the workflow must be a DAG
- ``is_runnable``: acyclic AND every conditional node is branch-complete
"""

import logging
from collections.abc import Sequence
from typing import Protocol

from flowgraph.graph.catalog import DEFAULT_CATALOG, NodeTypeLookup, is_conditional
from flowgraph.graph.edge import BranchType, WorkflowEdge
from flowgraph.graph.node import WorkflowNode

logger = logging.getLogger(__name__)


class GraphLike(Protocol):
    nodes: Sequence[WorkflowNode]
    edges: Sequence[WorkflowEdge]


def _adjacency(graph: GraphLike) -> dict[str, list[str]]:
    adjacency: dict[str, list[str]] = {node.id: [] for node in graph.nodes}
    for edge in graph.edges:
        adjacency.setdefault(edge.source, []).append(edge.target)
    return adjacency


def has_cycle(graph: GraphLike) -> bool:
    """
    Detect a directed cycle anywhere in the graph.

    Depth-first search keeping the current path in a recursion-stack set; an
    edge back to a node still on that stack closes a cycle. Every node is
    used as a start point unless already visited, so disconnected components
    are all checked. Self-loops count as cycles.

    The walk is iterative so deep chains cannot hit the interpreter's
    recursion limit.
    """
    adjacency = _adjacency(graph)
    visited: set[str] = set()
    on_stack: set[str] = set()

    for root in adjacency:
        if root in visited:
            continue

        visited.add(root)
        on_stack.add(root)
        stack = [(root, iter(adjacency.get(root, [])))]

        while stack:
            node_id, neighbors = stack[-1]
            advanced = False
            for neighbor in neighbors:
                if neighbor in on_stack:
                    return True
                if neighbor not in visited:
                    visited.add(neighbor)
                    on_stack.add(neighbor)
                    stack.append((neighbor, iter(adjacency.get(neighbor, []))))
                    advanced = True
                    break
            if not advanced:
                on_stack.discard(node_id)
                stack.pop()

    return False


def branch_problems(
    graph: GraphLike,
    catalog: NodeTypeLookup = DEFAULT_CATALOG,
) -> list[str]:
    """
    Check branch completeness of every conditional node.

    - zero outgoing edges: unrunnable
    - exactly one outgoing edge: allowed, whatever its tag
    - two or more: needs at least one ``true`` and one ``false`` edge
    """
    problems = []
    for node in graph.nodes:
        if not is_conditional(catalog, node.type):
            continue

        outgoing = [e for e in graph.edges if e.source == node.id]
        if not outgoing:
            problems.append(f"Condition '{node.id}' has no outgoing edges")
            continue

        if len(outgoing) >= 2:
            branches = {e.branch for e in outgoing}
            missing = [b.value for b in (BranchType.TRUE, BranchType.FALSE) if b not in branches]
            if missing:
                problems.append(
                    f"Condition '{node.id}' has {len(outgoing)} outgoing edges "
                    f"but no {' or '.join(missing)} branch"
                )
    return problems


def validate_workflow(
    graph: GraphLike,
    catalog: NodeTypeLookup = DEFAULT_CATALOG,
) -> list[str]:
    """Return human-readable reasons the workflow cannot run (empty if runnable)."""
    errors = []

    node_ids = {node.id for node in graph.nodes}
    for edge in graph.edges:
        if edge.source not in node_ids:
            errors.append(f"Edge '{edge.id}' references missing source '{edge.source}'")
        if edge.target not in node_ids:
            errors.append(f"Edge '{edge.id}' references missing target '{edge.target}'")

    if has_cycle(graph):
        errors.append("Workflow contains a cycle")

    errors.extend(branch_problems(graph, catalog))
    return errors


def is_runnable(
    graph: GraphLike,
    catalog: NodeTypeLookup = DEFAULT_CATALOG,
) -> bool:
    """True if the workflow is acyclic and all conditional nodes are branch-complete."""
    if has_cycle(graph):
        return False
    return not branch_problems(graph, catalog)
