"""
Edge Protocol - how nodes connect in a workflow.

Edges define:
1. Source and target nodes
2. Which outcome of a conditional source activates them

Branch tags:
- default: plain continuation; always followed out of a non-conditional node
- true:    followed when a conditional source decides TRUE
- false:   followed when a conditional source decides FALSE

Tags are only meaningful on edges leaving a conditional node that has two or
more outgoing edges; there, ``default`` edges are never followed. The single
edge of a one-edge conditional is always followed.
"""

from enum import StrEnum

from pydantic import BaseModel, Field


class BranchType(StrEnum):
    """Which outcome of the source node an edge belongs to."""

    DEFAULT = "default"
    TRUE = "true"
    FALSE = "false"


class WorkflowEdge(BaseModel):
    """
    Specification for an edge between nodes.

    Examples:
        # Plain continuation
        WorkflowEdge(id="e1", source="trigger", target="http")

        # TRUE branch of a condition
        WorkflowEdge(id="e2", source="check", target="notify", branch=BranchType.TRUE)
    """

    id: str
    source: str = Field(description="Source node ID")
    target: str = Field(description="Target node ID")
    branch: BranchType = BranchType.DEFAULT

    model_config = {"extra": "allow"}

    def matches_decision(self, decision: bool) -> bool:
        """True if this edge fires for the given conditional outcome."""
        return self.branch == (BranchType.TRUE if decision else BranchType.FALSE)

    @property
    def is_self_loop(self) -> bool:
        return self.source == self.target
