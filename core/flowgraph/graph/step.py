"""
Step Executors - how a node's work is performed.

The scheduler never does a node's work itself; it hands the node type and
its config to a ``StepExecutor`` and records the outcome. A step fails by
returning ``StepResult(success=False, error=...)`` or by raising; the
scheduler treats both the same way.

Two implementations live here:
- ``FunctionStepExecutor``: dispatch to registered per-type callables
- ``SimulatedStepExecutor``: canned results with short capped delays, for
  demos and the CLI. No network or IO is performed.
"""

import asyncio
import inspect
import logging
import random
import time
from collections.abc import Callable
from typing import Any, Protocol

from pydantic import BaseModel, Field

from flowgraph.graph.catalog import NodeType

logger = logging.getLogger(__name__)


class StepResult(BaseModel):
    """Outcome of executing one node."""

    success: bool = True
    message: str = ""
    data: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None

    @classmethod
    def ok(cls, message: str, **data: Any) -> "StepResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def failed(cls, error: str) -> "StepResult":
        return cls(success=False, message=error, error=error)


class StepExecutor(Protocol):
    """Performs the work of a node. May suspend."""

    async def execute(self, node_type: str, config: dict[str, Any]) -> StepResult: ...


StepFunction = Callable[[dict[str, Any]], Any]


class FunctionStepExecutor:
    """
    Dispatch node types to plain functions (sync or async).

    A function may return a ``StepResult``, a dict (treated as result data),
    a string (treated as the message) or None.

    Example:
        steps = FunctionStepExecutor()

        @steps.register("http-action")
        async def call(config):
            return StepResult.ok(f"called {config['url']}")
    """

    def __init__(self, functions: dict[str, StepFunction] | None = None):
        self._functions: dict[str, StepFunction] = dict(functions or {})

    def register(self, node_type: str) -> Callable[[StepFunction], StepFunction]:
        def decorator(fn: StepFunction) -> StepFunction:
            self._functions[node_type] = fn
            return fn

        return decorator

    async def execute(self, node_type: str, config: dict[str, Any]) -> StepResult:
        fn = self._functions.get(node_type)
        if fn is None:
            return StepResult.failed(f"No step registered for node type '{node_type}'")

        result = fn(config)
        if inspect.isawaitable(result):
            result = await result

        if isinstance(result, StepResult):
            return result
        if isinstance(result, dict):
            return StepResult(success=True, message="Node executed", data=result)
        if isinstance(result, str):
            return StepResult(success=True, message=result)
        return StepResult(success=True, message="Node executed")


_UNIT_SECONDS = {"seconds": 1, "minutes": 60, "hours": 3600}


class SimulatedStepExecutor:
    """Stand-in executor producing plausible results for each built-in type."""

    def __init__(self, max_delay: float = 2.0, rng: random.Random | None = None):
        self.max_delay = max_delay
        self._rng = rng or random.Random()

    async def execute(self, node_type: str, config: dict[str, Any]) -> StepResult:
        now_ms = int(time.time() * 1000)

        match node_type:
            case NodeType.MANUAL_TRIGGER:
                return StepResult.ok("Workflow triggered manually", timestamp=now_ms)
            case NodeType.WEBHOOK_TRIGGER:
                return StepResult.ok(
                    f"Webhook received from {config.get('webhookUrl')}",
                    method=config.get("method"),
                    payload={"sample": "data"},
                )
            case NodeType.HTTP_ACTION:
                return StepResult.ok(
                    f"HTTP {config.get('method')} request to {config.get('url')}",
                    status=200,
                    response={"success": True},
                )
            case NodeType.EMAIL_ACTION:
                return StepResult.ok(
                    f"Email sent to {config.get('to')}",
                    subject=config.get("subject"),
                    messageId=f"sim-{now_ms}",
                )
            case NodeType.SMS_ACTION:
                return StepResult.ok(
                    f"SMS sent to {config.get('phoneNumber')}",
                    message=config.get("message"),
                    sid=f"sim-{now_ms}",
                )
            case NodeType.CONDITION:
                return StepResult.ok(
                    "Condition evaluated: "
                    f"{config.get('leftValue')} {config.get('operator')} "
                    f"{config.get('rightValue')}",
                    conditionResult=self._rng.random() > 0.5,
                )
            case NodeType.TRANSFORM:
                return StepResult.ok(
                    f"Data transformed: {config.get('transformName')}",
                    transformed=True,
                    expression=config.get("expression"),
                )
            case NodeType.DELAY:
                duration = config.get("duration", 0)
                unit = config.get("unit", "seconds")
                try:
                    seconds = float(duration) * _UNIT_SECONDS.get(unit, 1)
                except (TypeError, ValueError):
                    return StepResult.failed(f"Invalid delay duration: {duration!r}")
                await asyncio.sleep(max(0.0, min(seconds, self.max_delay)))
                return StepResult.ok(f"Delayed for {duration} {unit}", duration=duration, unit=unit)
            case _:
                logger.debug(f"No simulation for node type '{node_type}'")
                return StepResult.ok("Node executed")
