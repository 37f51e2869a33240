"""
Node Type Catalog - what the engine needs to know about each step type.

The engine only asks two questions of a node type: which category it belongs
to (trigger / action / logic) and whether it branches. The editor-side field
schemas are not modelled here; a type only lists the config fields that must
be filled in before a workflow is considered fully configured.

Callers may supply their own catalog; anything with ``lookup(node_type)``
returning a ``NodeTypeDefinition`` (or None) works.
"""

from enum import StrEnum
from typing import Any, Protocol

from pydantic import BaseModel, Field


class NodeCategory(StrEnum):
    """Broad grouping of node types."""

    TRIGGER = "trigger"
    ACTION = "action"
    LOGIC = "logic"


class NodeType(StrEnum):
    """Node types shipped in the default catalog."""

    MANUAL_TRIGGER = "manual-trigger"
    WEBHOOK_TRIGGER = "webhook-trigger"
    HTTP_ACTION = "http-action"
    EMAIL_ACTION = "email-action"
    SMS_ACTION = "sms-action"
    CONDITION = "condition"
    TRANSFORM = "transform"
    DELAY = "delay"


class NodeTypeDefinition(BaseModel):
    """Catalog entry for one node type."""

    type: str
    category: NodeCategory
    label: str = ""
    description: str = ""
    required_fields: list[str] = Field(default_factory=list)
    optional_fields: list[str] = Field(default_factory=list)
    default_config: dict[str, Any] = Field(default_factory=dict)
    branching: bool = Field(
        default=False,
        description="True for conditional nodes whose out-edges carry true/false tags",
    )

    def is_config_complete(self, config: dict[str, Any] | None) -> bool:
        """True if every required field has a value other than None or ''."""
        config = config or {}
        for name in self.required_fields:
            value = config.get(name)
            if value is None or value == "":
                return False
        return True


class NodeTypeLookup(Protocol):
    """The only catalog surface the engine and graph model rely on."""

    def lookup(self, node_type: str) -> NodeTypeDefinition | None: ...


class NodeTypeCatalog:
    """In-memory catalog keyed by node type."""

    def __init__(self, definitions: list[NodeTypeDefinition] | None = None):
        self._definitions: dict[str, NodeTypeDefinition] = {}
        for definition in definitions or []:
            self.register(definition)

    def register(self, definition: NodeTypeDefinition) -> None:
        self._definitions[definition.type] = definition

    def lookup(self, node_type: str) -> NodeTypeDefinition | None:
        return self._definitions.get(node_type)

    def types(self) -> list[str]:
        return list(self._definitions)

    def __contains__(self, node_type: object) -> bool:
        return node_type in self._definitions


def is_conditional(catalog: NodeTypeLookup, node_type: str) -> bool:
    """True if the node type branches on a true/false decision."""
    definition = catalog.lookup(node_type)
    if definition is None:
        return node_type == NodeType.CONDITION
    return definition.branching


def is_trigger(catalog: NodeTypeLookup, node_type: str) -> bool:
    definition = catalog.lookup(node_type)
    return definition is not None and definition.category == NodeCategory.TRIGGER


DEFAULT_CATALOG = NodeTypeCatalog(
    [
        NodeTypeDefinition(
            type=NodeType.MANUAL_TRIGGER,
            category=NodeCategory.TRIGGER,
            label="Manual Trigger",
            description="Start workflow manually",
            required_fields=["triggerName"],
            default_config={"triggerName": "Manual Start"},
        ),
        NodeTypeDefinition(
            type=NodeType.WEBHOOK_TRIGGER,
            category=NodeCategory.TRIGGER,
            label="Webhook Trigger",
            description="Trigger from webhook",
            required_fields=["webhookUrl", "method"],
            default_config={"webhookUrl": "", "method": "POST"},
        ),
        NodeTypeDefinition(
            type=NodeType.HTTP_ACTION,
            category=NodeCategory.ACTION,
            label="HTTP Request",
            description="Make HTTP API call",
            required_fields=["url", "method"],
            optional_fields=["headers", "body"],
            default_config={"url": "", "method": "GET", "headers": "{}", "body": "{}"},
        ),
        NodeTypeDefinition(
            type=NodeType.EMAIL_ACTION,
            category=NodeCategory.ACTION,
            label="Send Email",
            description="Send email notification",
            required_fields=["to", "subject", "body"],
            default_config={"to": "", "subject": "", "body": ""},
        ),
        NodeTypeDefinition(
            type=NodeType.SMS_ACTION,
            category=NodeCategory.ACTION,
            label="Send SMS",
            description="Send SMS message",
            required_fields=["phoneNumber", "message"],
            default_config={"phoneNumber": "", "message": ""},
        ),
        NodeTypeDefinition(
            type=NodeType.CONDITION,
            category=NodeCategory.LOGIC,
            label="Condition",
            description="Branch based on condition",
            required_fields=["condition", "leftValue", "operator", "rightValue"],
            default_config={"condition": "", "leftValue": "", "operator": "==", "rightValue": ""},
            branching=True,
        ),
        NodeTypeDefinition(
            type=NodeType.TRANSFORM,
            category=NodeCategory.LOGIC,
            label="Transform Data",
            description="Transform or map data",
            required_fields=["transformName", "expression"],
            default_config={"transformName": "", "expression": ""},
        ),
        NodeTypeDefinition(
            type=NodeType.DELAY,
            category=NodeCategory.LOGIC,
            label="Delay",
            description="Wait for specified time",
            required_fields=["duration", "unit"],
            default_config={"duration": 5, "unit": "seconds"},
        ),
    ]
)


def get_nodes_by_category(
    category: NodeCategory | str, catalog: NodeTypeCatalog = DEFAULT_CATALOG
) -> list[NodeTypeDefinition]:
    """List catalog entries belonging to ``category``."""
    return [
        definition
        for node_type in catalog.types()
        if (definition := catalog.lookup(node_type)) is not None
        and definition.category == category
    ]
