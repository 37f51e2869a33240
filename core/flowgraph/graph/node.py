"""
Node Protocol - the steps a workflow is built from.

A node is identified by ``id`` and typed by ``type`` (a key into the node
type catalog). Its configuration is NOT stored on the node: the owning
``WorkflowGraph`` keeps every node's config in ``node_configs`` and joins
the two on lookup (see ``ResolvedNode``). That keeps one source of truth
for config no matter how a node is edited, copied or restored.
"""

from typing import Any

from pydantic import BaseModel, Field


class Position(BaseModel):
    """Canvas coordinates of a node."""

    x: float = 0.0
    y: float = 0.0


class Viewport(BaseModel):
    """Canvas pan/zoom state. Persisted and snapshotted, never executed."""

    zoom: float = 1.0
    x: float = 0.0
    y: float = 0.0


class WorkflowNode(BaseModel):
    """
    Specification for a node in a workflow.

    Example:
        WorkflowNode(
            id="notify",
            type="email-action",
            label="Notify on-call",
            position=Position(x=320, y=80),
        )
    """

    id: str
    type: str = Field(description="Node type key; fixed once the node exists")
    label: str = ""
    position: Position = Field(default_factory=Position)

    model_config = {"extra": "allow"}

    @property
    def display_name(self) -> str:
        return self.label or self.id


class ResolvedNode(BaseModel):
    """A node joined with its current configuration."""

    node: WorkflowNode
    config: dict[str, Any] = Field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.node.id

    @property
    def type(self) -> str:
        return self.node.type

    @property
    def label(self) -> str:
        return self.node.label
