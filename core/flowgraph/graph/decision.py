"""
Decision Providers - who decides which branch a condition takes.

When the scheduler reaches a conditional node it suspends and asks a
``DecisionProvider`` for a boolean. The provider may answer immediately
(a fixed value, a scripted sequence, a coin flip) or wait for a human.

Human-in-the-loop flow:

1. Scheduler: ``await provider.decide(prompt)``
2. Provider: creates a ``DecisionRequest`` and exposes it as ``pending``
3. UI / test: ``provider.choose_pass()`` or ``request.resolve(False)``
4. Scheduler resumes with the answer

Each request owns its own future, so at most one answer ever reaches the
caller that asked, and a second concurrent ``decide()`` is refused rather
than silently replacing the first.
"""

import asyncio
import itertools
import logging
import random
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass
class DecisionPrompt:
    """What the decider is asked."""

    message: str
    node_id: str = ""
    title: str = "Condition Decision"
    pass_text: str = "Pass (TRUE)"
    fail_text: str = "Fail (FALSE)"

    @classmethod
    def for_condition(
        cls, node_id: str, label: str, condition: str | None = None
    ) -> "DecisionPrompt":
        condition_text = f" ({condition})" if condition else ""
        return cls(
            message=f'Choose outcome for "{label}"{condition_text}.',
            node_id=node_id,
        )


class DecisionProvider(Protocol):
    """Answers a true/false branch question. May suspend indefinitely."""

    async def decide(self, prompt: DecisionPrompt) -> bool: ...


@dataclass
class DecisionRequest:
    """One outstanding question and the future its answer goes to."""

    prompt: DecisionPrompt
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    _future: asyncio.Future[bool] = field(
        default_factory=lambda: asyncio.get_running_loop().create_future(),
        repr=False,
    )

    @property
    def done(self) -> bool:
        return self._future.done()

    def resolve(self, decision: bool) -> None:
        if self._future.done():
            raise RuntimeError(f"Decision request {self.request_id} already resolved")
        self._future.set_result(bool(decision))

    def choose_pass(self) -> None:
        self.resolve(True)

    def choose_fail(self) -> None:
        self.resolve(False)

    def cancel(self) -> bool:
        return self._future.cancel()

    async def wait(self, timeout: float | None = None) -> bool:
        if timeout is not None:
            return await asyncio.wait_for(asyncio.shield(self._future), timeout=timeout)
        return await self._future


class InteractiveDecisionProvider:
    """
    Decision provider backed by an explicit request/response channel.

    Example:
        provider = InteractiveDecisionProvider()
        task = asyncio.create_task(executor.start(graph))
        ...
        provider.pending.prompt.message   # 'Choose outcome for "Check".'
        provider.choose_pass()
    """

    def __init__(self, timeout: float | None = None):
        self._timeout = timeout
        self._pending: DecisionRequest | None = None
        self._request_posted = asyncio.Event()

    @property
    def pending(self) -> DecisionRequest | None:
        """The outstanding request, if any."""
        return self._pending

    async def wait_for_request(self, timeout: float | None = None) -> DecisionRequest:
        """Block until a request is outstanding (for UIs and tests)."""
        if self._pending is None:
            await asyncio.wait_for(self._request_posted.wait(), timeout=timeout)
        if self._pending is None:
            raise RuntimeError("Decision request was withdrawn before it could be read")
        return self._pending

    async def decide(self, prompt: DecisionPrompt) -> bool:
        if self._pending is not None:
            raise RuntimeError(
                f"Decision already pending for node '{self._pending.prompt.node_id}'"
            )

        request = DecisionRequest(prompt=prompt)
        self._pending = request
        self._request_posted.set()
        logger.info(f"Awaiting decision: {prompt.message}", extra={"node_id": prompt.node_id})

        try:
            return await request.wait(self._timeout)
        finally:
            self._pending = None
            self._request_posted.clear()

    def _require_pending(self) -> DecisionRequest:
        if self._pending is None:
            raise RuntimeError("No decision is pending")
        return self._pending

    def choose_pass(self) -> None:
        self._require_pending().choose_pass()

    def choose_fail(self) -> None:
        self._require_pending().choose_fail()


class StaticDecisionProvider:
    """Always answers the same way."""

    def __init__(self, value: bool):
        self.value = value
        self.prompts: list[DecisionPrompt] = []

    async def decide(self, prompt: DecisionPrompt) -> bool:
        self.prompts.append(prompt)
        return self.value


class ScriptedDecisionProvider:
    """Answers from a fixed sequence; raises once exhausted unless cycling."""

    def __init__(self, answers: Iterable[bool], cycle: bool = False):
        answers = list(answers)
        self._answers = itertools.cycle(answers) if cycle else iter(answers)
        self.prompts: list[DecisionPrompt] = []

    async def decide(self, prompt: DecisionPrompt) -> bool:
        self.prompts.append(prompt)
        try:
            return next(self._answers)
        except StopIteration:
            raise RuntimeError("Scripted decisions exhausted") from None


class RandomDecisionProvider:
    """Coin flip. Seed it for reproducible runs."""

    def __init__(self, seed: int | None = None):
        self._rng = random.Random(seed)

    async def decide(self, prompt: DecisionPrompt) -> bool:
        decision = self._rng.random() > 0.5
        logger.debug(f"Random decision for '{prompt.node_id}': {decision}")
        return decision
