"""Runtime state of workflow runs: the run log and lifecycle events."""

from flowgraph.runtime.event_bus import EventBus, EventType, WorkflowEvent
from flowgraph.runtime.run_log import (
    ExecutionState,
    ExecutionStatus,
    LogEntry,
    NodeExecutionStatus,
    RunLog,
)

__all__ = [
    "EventBus",
    "EventType",
    "WorkflowEvent",
    "ExecutionState",
    "ExecutionStatus",
    "LogEntry",
    "NodeExecutionStatus",
    "RunLog",
]
