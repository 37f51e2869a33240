"""
Run Log - ordered, append-only record of one workflow run.

The log is the source of truth for what happened and in what order; UIs
replay it and tests assert on it. Entries are never removed or reordered.
The current status of a node is derived from it: most recent entry wins.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

SYSTEM_NODE_ID = "system"
SYSTEM_NODE_NAME = "System"


class ExecutionStatus(StrEnum):
    """Run-level status."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERROR = "error"


class NodeExecutionStatus(StrEnum):
    """Per-node status as recorded in log entries."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


class LogEntry(BaseModel):
    """One event in a run."""

    node_id: str
    node_name: str = ""
    status: NodeExecutionStatus
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    message: str = ""
    data: dict[str, Any] | None = None

    @property
    def is_system(self) -> bool:
        return self.node_id == SYSTEM_NODE_ID


class RunLog:
    """Append-only list of ``LogEntry`` plus the step counter."""

    def __init__(self) -> None:
        self._entries: list[LogEntry] = []
        self.current_step = 0

    def append(self, entry: LogEntry, advance_step: bool = False) -> None:
        self._entries.append(entry)
        if advance_step:
            self.current_step += 1

    @property
    def entries(self) -> list[LogEntry]:
        """A copy of the entries, oldest first."""
        return list(self._entries)

    def status_of(self, node_id: str, active_node_id: str | None = None) -> NodeExecutionStatus:
        """
        Current status of a node.

        ``running`` if it is the active node, else the status of its most
        recent entry, else ``pending``.
        """
        if active_node_id is not None and active_node_id == node_id:
            return NodeExecutionStatus.RUNNING
        for entry in reversed(self._entries):
            if entry.node_id == node_id:
                return entry.status
        return NodeExecutionStatus.PENDING

    def for_node(self, node_id: str) -> list[LogEntry]:
        return [e for e in self._entries if e.node_id == node_id]

    def trace(self) -> list[tuple[str, NodeExecutionStatus]]:
        """(node_id, status) pairs in order; handy for comparing runs."""
        return [(e.node_id, e.status) for e in self._entries]

    def to_dicts(self) -> list[dict[str, Any]]:
        return [e.model_dump(mode="json") for e in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(list(self._entries))


@dataclass
class ExecutionState:
    """Run state owned by the scheduler; replaced with a fresh value per run."""

    status: ExecutionStatus = ExecutionStatus.IDLE
    active_node_id: str | None = None
    log: RunLog = field(default_factory=RunLog)

    @property
    def logs(self) -> list[LogEntry]:
        return self.log.entries

    @property
    def current_step(self) -> int:
        return self.log.current_step

    def node_status(self, node_id: str) -> NodeExecutionStatus:
        return self.log.status_of(node_id, self.active_node_id)
