"""
Workflow Executor - runs a validated workflow to completion.

The executor:
1. Refuses graphs that are not runnable (cycle, incomplete condition)
2. Freezes a private copy of nodes, edges and configs
3. Seeds a FIFO queue with every node that has no incoming edge
4. Runs nodes one at a time through the step executor
5. Asks the decision provider at conditional nodes and follows only the
   chosen branch
6. Records everything to the run log; unreached nodes end as ``skipped``

Run status moves idle → running ⇄ paused → completed → idle (after a short
settle delay). ``stop()`` returns the run to idle at any time; it is
cooperative and takes effect before the next node is dequeued or when an
outstanding branch decision is abandoned. A node already executing always
runs to completion. Each run owns its state and control signals, so a new
run may start while a stopped one is still finishing its node.

A failing node does not fail the run: it gets an ``error`` entry, none of
its successors are queued, and the remaining queue carries on.
"""

import asyncio
import contextlib
import copy
import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Any

from flowgraph.config import FlowgraphConfig
from flowgraph.graph.catalog import DEFAULT_CATALOG, NodeTypeLookup, is_conditional
from flowgraph.graph.decision import DecisionPrompt, DecisionProvider, RandomDecisionProvider
from flowgraph.graph.edge import WorkflowEdge
from flowgraph.graph.node import WorkflowNode
from flowgraph.graph.step import SimulatedStepExecutor, StepExecutor
from flowgraph.graph.validator import GraphLike, is_runnable, validate_workflow
from flowgraph.observability import set_trace_context
from flowgraph.runtime.event_bus import EventBus, EventType
from flowgraph.runtime.run_log import (
    SYSTEM_NODE_ID,
    SYSTEM_NODE_NAME,
    ExecutionState,
    ExecutionStatus,
    LogEntry,
    NodeExecutionStatus,
    RunLog,
)

# How often a paused loop or an outstanding decision re-checks run status,
# in addition to being woken by pause/resume/stop signals.
STATUS_POLL_INTERVAL = 0.1


class InvalidWorkflowError(ValueError):
    """Raised by ``start`` when the workflow is not runnable."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(f"Workflow is not runnable: {'; '.join(errors) or 'unknown reason'}")


@dataclass
class ExecutionResult:
    """Summary of one run. The run log holds the full detail."""

    success: bool
    status: ExecutionStatus
    run_id: str = ""
    path: list[str] = field(default_factory=list)  # Node IDs executed, in order
    failed_nodes: list[str] = field(default_factory=list)
    skipped_nodes: list[str] = field(default_factory=list)
    decisions: dict[str, bool] = field(default_factory=dict)  # {condition_node_id: branch}
    steps_executed: int = 0
    stopped: bool = False
    error: str | None = None


@dataclass
class _RunPlan:
    """Frozen inputs, control signals and bookkeeping for one run."""

    nodes: list[WorkflowNode]
    configs: dict[str, dict[str, Any]]
    outgoing: dict[str, list[WorkflowEdge]]
    by_id: dict[str, WorkflowNode]
    run_id: str = ""
    state: ExecutionState = field(default_factory=ExecutionState)
    stop_signal: asyncio.Event = field(default_factory=asyncio.Event)
    resume_signal: asyncio.Event = field(default_factory=asyncio.Event)
    pause_requested: bool = False
    executed: set[str] = field(default_factory=set)
    path: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    decisions: dict[str, bool] = field(default_factory=dict)

    @property
    def stopped(self) -> bool:
        return self.stop_signal.is_set() or self.state.status == ExecutionStatus.IDLE


class WorkflowExecutor:
    """
    Single-lane scheduler for workflow runs.

    Example:
        executor = WorkflowExecutor(
            step_executor=SimulatedStepExecutor(),
            decision_provider=StaticDecisionProvider(True),
        )
        result = await executor.start(graph)
        for entry in executor.log:
            print(entry.node_id, entry.status, entry.message)

    ``pause()``, ``resume()`` and ``stop()`` are plain methods meant to be
    called from other tasks on the same event loop while ``start`` runs.
    They act on the current run only. A stopped run that is still finishing
    its in-flight node writes to its own detached state, never to the state
    of a run started after it.
    """

    def __init__(
        self,
        step_executor: StepExecutor | None = None,
        decision_provider: DecisionProvider | None = None,
        catalog: NodeTypeLookup = DEFAULT_CATALOG,
        event_bus: EventBus | None = None,
        config: FlowgraphConfig | None = None,
    ):
        """
        Initialize the executor.

        Args:
            step_executor: Performs each node's work (default: simulated)
            decision_provider: Chooses condition branches (default: coin flip)
            catalog: Node type lookup used to recognise conditional nodes
            event_bus: Optional bus receiving run and node lifecycle events
            config: Engine settings (settle delay, step pacing)
        """
        self.config = config or FlowgraphConfig()
        self.step_executor = step_executor or SimulatedStepExecutor(
            max_delay=self.config.max_simulated_delay
        )
        self.decision_provider = decision_provider or RandomDecisionProvider()
        self.catalog = catalog
        self.logger = logging.getLogger(__name__)
        self._event_bus = event_bus

        self.state = ExecutionState()
        self._current: _RunPlan | None = None
        self._settle_handle: asyncio.TimerHandle | None = None

    # === READ ACCESS ===

    @property
    def run_id(self) -> str:
        return self._current.run_id if self._current is not None else ""

    @property
    def status(self) -> ExecutionStatus:
        return self.state.status

    @property
    def log(self) -> RunLog:
        return self.state.log

    @property
    def is_running(self) -> bool:
        return self.state.status == ExecutionStatus.RUNNING

    @property
    def is_paused(self) -> bool:
        return self.state.status == ExecutionStatus.PAUSED

    @property
    def is_completed(self) -> bool:
        return self.state.status == ExecutionStatus.COMPLETED

    def node_status(self, node_id: str) -> NodeExecutionStatus:
        return self.state.node_status(node_id)

    # === CONTROL SIGNALS ===

    def pause(self) -> None:
        """Hold the queue before the next node. Work in progress is not interrupted."""
        plan = self._current
        if plan is None or plan.state.status not in (
            ExecutionStatus.RUNNING,
            ExecutionStatus.PAUSED,
        ):
            return
        plan.pause_requested = True
        plan.state.status = ExecutionStatus.PAUSED
        plan.resume_signal.clear()
        self.logger.info("⏸ Pause requested - holding before next node")

    def resume(self) -> None:
        plan = self._current
        if plan is None or plan.state.status not in (
            ExecutionStatus.RUNNING,
            ExecutionStatus.PAUSED,
        ):
            return
        plan.pause_requested = False
        plan.state.status = ExecutionStatus.RUNNING
        plan.resume_signal.set()
        self.logger.info("▶ Resume requested")

    def stop(self) -> None:
        """
        Cancel the run. Status returns to idle immediately; the loop notices
        at its next checkpoint. The log is kept until the next ``start``.
        """
        self._cancel_settle()
        if self.state.status != ExecutionStatus.IDLE:
            self.logger.info("⏹ Stop requested")
        if self._current is not None:
            self._halt(self._current)

    @staticmethod
    def _halt(plan: _RunPlan) -> None:
        plan.pause_requested = False
        plan.stop_signal.set()
        plan.resume_signal.set()
        plan.state.status = ExecutionStatus.IDLE
        plan.state.active_node_id = None

    # === RUN ===

    async def start(
        self,
        graph: GraphLike,
        node_configs: dict[str, dict[str, Any]] | None = None,
    ) -> ExecutionResult:
        """
        Run a workflow to completion (or until stopped).

        Args:
            graph: A ``WorkflowGraph``, ``HistorySnapshot`` or anything with
                ``nodes`` and ``edges``. It is copied; later edits to it do
                not affect this run.
            node_configs: Per-node config. Defaults to ``graph.node_configs``.

        Raises:
            InvalidWorkflowError: the graph has a cycle or an incomplete condition
            RuntimeError: a run is already in progress
        """
        if self.state.status in (ExecutionStatus.RUNNING, ExecutionStatus.PAUSED):
            raise RuntimeError("A workflow run is already in progress")

        if not is_runnable(graph, self.catalog):
            errors = validate_workflow(graph, self.catalog)
            self.logger.error(f"❌ Refusing to run invalid workflow: {errors}")
            raise InvalidWorkflowError(errors)

        if node_configs is None:
            node_configs = getattr(graph, "node_configs", None) or {}
        plan = self._freeze(graph, node_configs)

        self._cancel_settle()
        plan.run_id = uuid.uuid4().hex
        plan.state.status = ExecutionStatus.RUNNING
        plan.resume_signal.set()
        self._current = plan
        self.state = plan.state

        set_trace_context(run_id=plan.run_id, node_id=None)
        self.logger.info(f"🚀 Starting workflow run with {len(plan.nodes)} node(s)")
        self._system_entry(plan, NodeExecutionStatus.RUNNING, "Execution started")
        await self._emit(plan, EventType.EXECUTION_STARTED, node_count=len(plan.nodes))

        try:
            return await self._run(plan)
        except asyncio.CancelledError:
            self.logger.warning("Run task cancelled")
            if self._current is plan:
                self._cancel_settle()
            self._halt(plan)
            raise
        except Exception as e:
            self.logger.exception(f"Workflow run failed: {e}")
            plan.state.status = ExecutionStatus.ERROR
            plan.state.active_node_id = None
            self._system_entry(plan, NodeExecutionStatus.ERROR, f"Execution failed: {e}")
            await self._emit(plan, EventType.EXECUTION_FAILED, error=str(e))
            raise
        finally:
            set_trace_context(node_id=None)

    def _freeze(self, graph: GraphLike, node_configs: dict[str, dict[str, Any]]) -> _RunPlan:
        nodes = [node.model_copy(deep=True) for node in graph.nodes]
        outgoing: dict[str, list[WorkflowEdge]] = {node.id: [] for node in nodes}
        for edge in graph.edges:
            outgoing.setdefault(edge.source, []).append(edge.model_copy(deep=True))

        return _RunPlan(
            nodes=nodes,
            configs=copy.deepcopy(dict(node_configs)),
            outgoing=outgoing,
            by_id={node.id: node for node in nodes},
        )

    async def _run(self, plan: _RunPlan) -> ExecutionResult:
        in_degree = {node.id: 0 for node in plan.nodes}
        for edges in plan.outgoing.values():
            for edge in edges:
                in_degree[edge.target] = in_degree.get(edge.target, 0) + 1

        queue: deque[WorkflowNode] = deque(n for n in plan.nodes if in_degree[n.id] == 0)

        while queue:
            node = queue.popleft()
            if plan.stopped:
                return await self._finish_stopped(plan)
            if node.id in plan.executed:
                continue

            if plan.state.status == ExecutionStatus.PAUSED:
                await self._wait_while_paused(plan)
                if plan.stopped:
                    return await self._finish_stopped(plan)

            targets = await self._process_node(node, plan)
            plan.state.active_node_id = None
            plan.executed.add(node.id)
            plan.path.append(node.id)
            if targets is None:
                return await self._finish_stopped(plan)

            for target_id in targets:
                target = plan.by_id.get(target_id)
                if target is not None:
                    queue.append(target)

        if plan.stopped:
            return await self._finish_stopped(plan)
        return await self._finish_completed(plan)

    async def _process_node(self, node: WorkflowNode, plan: _RunPlan) -> list[str] | None:
        """
        Execute one node.

        Returns the node IDs to enqueue ([] after a failure), or None when
        the run was stopped during a branch decision.
        """
        plan.state.active_node_id = node.id
        set_trace_context(node_id=node.id)
        config = plan.configs.get(node.id, {})
        name = node.display_name

        plan.state.log.append(
            LogEntry(
                node_id=node.id,
                node_name=name,
                status=NodeExecutionStatus.RUNNING,
                message=f"Started {node.type}",
                data={"config": copy.deepcopy(config)},
            )
        )
        await self._emit(plan, EventType.NODE_STARTED, node_id=node.id, node_type=node.type)

        try:
            result = await self.step_executor.execute(node.type, copy.deepcopy(config))
            if not result.success:
                raise RuntimeError(result.error or result.message or "Step reported failure")
        except Exception as e:
            return await self._record_failure(node, config, plan, str(e) or type(e).__name__)

        plan.state.log.append(
            LogEntry(
                node_id=node.id,
                node_name=name,
                status=NodeExecutionStatus.SUCCESS,
                message=result.message,
                data={"config": copy.deepcopy(config), "result": result.data},
            ),
            advance_step=True,
        )
        self.logger.info(f"✓ {name}: {result.message}", extra={"node_id": node.id})
        await self._emit(plan, EventType.NODE_COMPLETED, node_id=node.id, message=result.message)

        outgoing = plan.outgoing.get(node.id, [])
        if is_conditional(self.catalog, node.type):
            targets = await self._branch(node, config, outgoing, plan)
        else:
            targets = [edge.target for edge in outgoing]

        if targets is not None and self.config.step_delay > 0:
            await asyncio.sleep(self.config.step_delay)
        return targets

    async def _branch(
        self,
        node: WorkflowNode,
        config: dict[str, Any],
        outgoing: list[WorkflowEdge],
        plan: _RunPlan,
    ) -> list[str] | None:
        """Suspend for a decision and pick the edges of the chosen branch."""
        if plan.stopped:
            return None

        name = node.display_name
        plan.state.log.append(
            LogEntry(
                node_id=node.id,
                node_name=name,
                status=NodeExecutionStatus.RUNNING,
                message="Awaiting condition decision...",
            )
        )
        prompt = DecisionPrompt.for_condition(node.id, name, config.get("condition"))
        plan.state.status = ExecutionStatus.PAUSED
        await self._emit(
            plan, EventType.DECISION_REQUESTED, node_id=node.id, message=prompt.message
        )

        try:
            decision = await self._await_decision(plan, prompt)
        except Exception as e:
            if not plan.stopped:
                plan.state.status = self._status_after_suspension(plan)
            self.logger.error(f"Decision for '{node.id}' failed: {e}")
            return await self._record_failure(node, config, plan, f"Decision failed: {e}")

        if decision is None:
            return None
        plan.state.status = self._status_after_suspension(plan)

        plan.decisions[node.id] = decision
        plan.state.log.append(
            LogEntry(
                node_id=node.id,
                node_name=name,
                status=NodeExecutionStatus.SUCCESS,
                message=f"Branch: {'TRUE' if decision else 'FALSE'}",
                data={"decision": decision},
            )
        )
        await self._emit(plan, EventType.DECISION_RESOLVED, node_id=node.id, decision=decision)

        # A lone edge is an unconditional continuation, whatever its tag.
        if len(outgoing) == 1:
            return [outgoing[0].target]
        return [edge.target for edge in outgoing if edge.matches_decision(decision)]

    @staticmethod
    def _status_after_suspension(plan: _RunPlan) -> ExecutionStatus:
        if plan.pause_requested:
            return ExecutionStatus.PAUSED
        return ExecutionStatus.RUNNING

    async def _await_decision(self, plan: _RunPlan, prompt: DecisionPrompt) -> bool | None:
        """Wait for the provider's answer; None if the run is stopped first."""
        decision_task = asyncio.ensure_future(self.decision_provider.decide(prompt))
        stop_task = asyncio.ensure_future(self._wait_for_stop(plan))
        try:
            await asyncio.wait({decision_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_task.cancel()
            if plan.stopped or not decision_task.done():
                decision_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await stop_task

        if plan.stopped:
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await decision_task
            self.logger.info(f"Decision for '{prompt.node_id}' abandoned by stop")
            return None
        return decision_task.result()

    @staticmethod
    async def _wait_for_stop(plan: _RunPlan) -> None:
        while not plan.stopped:
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(plan.stop_signal.wait(), timeout=STATUS_POLL_INTERVAL)

    async def _wait_while_paused(self, plan: _RunPlan) -> None:
        """Block until resumed or stopped, without spinning."""
        await self._emit(plan, EventType.EXECUTION_PAUSED)
        self.logger.info("⏸ Run paused")
        while plan.state.status == ExecutionStatus.PAUSED and not plan.stop_signal.is_set():
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(plan.resume_signal.wait(), timeout=STATUS_POLL_INTERVAL)
        if not plan.stopped:
            self.logger.info("▶ Run resumed")
            await self._emit(plan, EventType.EXECUTION_RESUMED)

    async def _record_failure(
        self,
        node: WorkflowNode,
        config: dict[str, Any],
        plan: _RunPlan,
        message: str,
    ) -> list[str]:
        plan.state.log.append(
            LogEntry(
                node_id=node.id,
                node_name=node.display_name,
                status=NodeExecutionStatus.ERROR,
                message=f"Error: {message}",
                data={"config": copy.deepcopy(config)},
            ),
            advance_step=True,
        )
        plan.failed.append(node.id)
        self.logger.warning(f"✗ {node.display_name} failed: {message}", extra={"node_id": node.id})
        await self._emit(plan, EventType.NODE_FAILED, node_id=node.id, error=message)
        return []

    async def _finish_completed(self, plan: _RunPlan) -> ExecutionResult:
        skipped = [node.id for node in plan.nodes if node.id not in plan.executed]
        for node_id in skipped:
            node = plan.by_id[node_id]
            plan.state.log.append(
                LogEntry(
                    node_id=node.id,
                    node_name=node.display_name,
                    status=NodeExecutionStatus.SKIPPED,
                    message="Skipped (not selected by branch)",
                )
            )
            await self._emit(plan, EventType.NODE_SKIPPED, node_id=node.id)

        if plan.stopped:
            return await self._finish_stopped(plan)

        plan.state.active_node_id = None
        set_trace_context(node_id=None)
        self._system_entry(plan, NodeExecutionStatus.SUCCESS, "Execution completed")
        plan.state.status = ExecutionStatus.COMPLETED
        self._schedule_settle(plan)

        self.logger.info(
            f"✓ Run complete: {len(plan.path)} executed, "
            f"{len(plan.failed)} failed, {len(skipped)} skipped"
        )
        await self._emit(
            plan,
            EventType.EXECUTION_COMPLETED,
            executed=list(plan.path),
            failed=list(plan.failed),
            skipped=skipped,
        )
        return ExecutionResult(
            success=not plan.failed,
            status=ExecutionStatus.COMPLETED,
            run_id=plan.run_id,
            path=list(plan.path),
            failed_nodes=list(plan.failed),
            skipped_nodes=skipped,
            decisions=dict(plan.decisions),
            steps_executed=plan.state.current_step,
        )

    async def _finish_stopped(self, plan: _RunPlan) -> ExecutionResult:
        plan.state.active_node_id = None
        set_trace_context(node_id=None)
        self._system_entry(plan, NodeExecutionStatus.SKIPPED, "Execution stopped")
        self.logger.info(f"⏹ Run stopped after {len(plan.path)} node(s)")
        await self._emit(plan, EventType.EXECUTION_STOPPED, executed=list(plan.path))
        return ExecutionResult(
            success=False,
            status=plan.state.status,
            run_id=plan.run_id,
            path=list(plan.path),
            failed_nodes=list(plan.failed),
            decisions=dict(plan.decisions),
            steps_executed=plan.state.current_step,
            stopped=True,
            error="Execution stopped",
        )

    # === HELPERS ===

    @staticmethod
    def _system_entry(plan: _RunPlan, status: NodeExecutionStatus, message: str) -> None:
        plan.state.log.append(
            LogEntry(
                node_id=SYSTEM_NODE_ID,
                node_name=SYSTEM_NODE_NAME,
                status=status,
                message=message,
            )
        )

    def _schedule_settle(self, plan: _RunPlan) -> None:
        """Return a completed run to idle after the settle delay."""
        self._cancel_settle()
        loop = asyncio.get_running_loop()
        self._settle_handle = loop.call_later(
            max(0.0, self.config.settle_delay), self._settle, plan
        )

    def _settle(self, plan: _RunPlan) -> None:
        self._settle_handle = None
        if plan.state.status == ExecutionStatus.COMPLETED:
            plan.state.status = ExecutionStatus.IDLE
            plan.state.active_node_id = None

    def _cancel_settle(self) -> None:
        if self._settle_handle is not None:
            self._settle_handle.cancel()
            self._settle_handle = None

    async def _emit(
        self,
        plan: _RunPlan,
        event_type: EventType,
        node_id: str | None = None,
        **data: Any,
    ) -> None:
        if self._event_bus is None:
            return
        await self._event_bus.emit(event_type, run_id=plan.run_id, node_id=node_id, **data)
