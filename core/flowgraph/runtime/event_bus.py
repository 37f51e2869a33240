"""
Event Bus - pub/sub notifications about workflow runs.

Lets observers (an editor canvas, a log pane, tests) react to run
lifecycle changes without polling the scheduler:
- Publish events as the run progresses
- Subscribe by event type, optionally filtered to one run or node
- Keep a bounded history for debugging
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class EventType(StrEnum):
    """Types of events that can be published."""

    # Run lifecycle
    EXECUTION_STARTED = "execution_started"
    EXECUTION_PAUSED = "execution_paused"
    EXECUTION_RESUMED = "execution_resumed"
    EXECUTION_COMPLETED = "execution_completed"
    EXECUTION_STOPPED = "execution_stopped"
    EXECUTION_FAILED = "execution_failed"

    # Node lifecycle
    NODE_STARTED = "node_started"
    NODE_COMPLETED = "node_completed"
    NODE_FAILED = "node_failed"
    NODE_SKIPPED = "node_skipped"

    # Conditional branching
    DECISION_REQUESTED = "decision_requested"
    DECISION_RESOLVED = "decision_resolved"


@dataclass
class WorkflowEvent:
    """An event in a workflow run."""

    type: EventType
    run_id: str | None = None
    node_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "run_id": self.run_id,
            "node_id": self.node_id,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }


EventHandler = Callable[[WorkflowEvent], Awaitable[None]]


@dataclass
class Subscription:
    """A subscription to events."""

    id: str
    event_types: set[EventType]
    handler: EventHandler
    filter_run: str | None = None
    filter_node: str | None = None


class EventBus:
    """
    Pub/sub event bus for run observers.

    Example:
        bus = EventBus()

        async def on_failed(event: WorkflowEvent):
            print(f"{event.node_id} failed: {event.data['error']}")

        bus.subscribe([EventType.NODE_FAILED], on_failed)
        executor = WorkflowExecutor(..., event_bus=bus)
    """

    def __init__(self, max_history: int = 1000):
        self._subscriptions: dict[str, Subscription] = {}
        self._event_history: list[WorkflowEvent] = []
        self._max_history = max_history
        self._subscription_counter = 0

    def subscribe(
        self,
        event_types: list[EventType],
        handler: EventHandler,
        filter_run: str | None = None,
        filter_node: str | None = None,
    ) -> str:
        """Register ``handler`` and return its subscription ID."""
        self._subscription_counter += 1
        sub_id = f"sub_{self._subscription_counter}"
        self._subscriptions[sub_id] = Subscription(
            id=sub_id,
            event_types=set(event_types),
            handler=handler,
            filter_run=filter_run,
            filter_node=filter_node,
        )
        logger.debug(f"Subscription {sub_id} registered for {event_types}")
        return sub_id

    def unsubscribe(self, subscription_id: str) -> bool:
        if subscription_id in self._subscriptions:
            del self._subscriptions[subscription_id]
            logger.debug(f"Subscription {subscription_id} removed")
            return True
        return False

    async def publish(self, event: WorkflowEvent) -> None:
        """Record the event and run all matching handlers concurrently."""
        self._event_history.append(event)
        if len(self._event_history) > self._max_history:
            self._event_history = self._event_history[-self._max_history :]

        handlers = [s.handler for s in self._subscriptions.values() if self._matches(s, event)]
        if handlers:
            await asyncio.gather(*[self._run_handler(h, event) for h in handlers])

    def _matches(self, subscription: Subscription, event: WorkflowEvent) -> bool:
        if event.type not in subscription.event_types:
            return False
        if subscription.filter_run and subscription.filter_run != event.run_id:
            return False
        if subscription.filter_node and subscription.filter_node != event.node_id:
            return False
        return True

    async def _run_handler(self, handler: EventHandler, event: WorkflowEvent) -> None:
        try:
            await handler(event)
        except Exception as e:
            logger.error(f"Handler error for {event.type}: {e}")

    async def emit(
        self,
        event_type: EventType,
        run_id: str | None = None,
        node_id: str | None = None,
        **data: Any,
    ) -> None:
        """Convenience publisher used by the scheduler."""
        await self.publish(
            WorkflowEvent(type=event_type, run_id=run_id, node_id=node_id, data=data)
        )

    def get_history(
        self,
        event_type: EventType | None = None,
        run_id: str | None = None,
        limit: int = 100,
    ) -> list[WorkflowEvent]:
        """Most recent events first, optionally filtered."""
        events = self._event_history[::-1]
        if event_type is not None:
            events = [e for e in events if e.type == event_type]
        if run_id is not None:
            events = [e for e in events if e.run_id == run_id]
        return events[:limit]

    def clear_history(self) -> None:
        self._event_history = []
