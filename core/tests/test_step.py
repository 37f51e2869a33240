"""Tests for step executors."""

import random
import time

import pytest

from flowgraph.graph.step import FunctionStepExecutor, SimulatedStepExecutor, StepResult


class TestFunctionStepExecutor:
    @pytest.mark.asyncio
    async def test_dispatches_sync_and_async_functions(self):
        steps = FunctionStepExecutor()

        @steps.register("http-action")
        async def call(config):
            return StepResult.ok(f"called {config['url']}", status=200)

        @steps.register("transform")
        def transform(config):
            return {"value": config["expression"].upper()}

        http = await steps.execute("http-action", {"url": "https://example.com"})
        assert http.success is True
        assert http.message == "called https://example.com"
        assert http.data == {"status": 200}

        mapped = await steps.execute("transform", {"expression": "abc"})
        assert mapped.success is True
        assert mapped.data == {"value": "ABC"}

    @pytest.mark.asyncio
    async def test_string_and_none_results(self):
        steps = FunctionStepExecutor(
            {"sms-action": lambda config: "sent", "delay": lambda config: None}
        )
        assert (await steps.execute("sms-action", {})).message == "sent"
        assert (await steps.execute("delay", {})).message == "Node executed"

    @pytest.mark.asyncio
    async def test_unknown_type_fails(self):
        result = await FunctionStepExecutor().execute("email-action", {})
        assert result.success is False
        assert "email-action" in result.error


class TestSimulatedStepExecutor:
    @pytest.mark.asyncio
    async def test_messages_per_type(self):
        steps = SimulatedStepExecutor(max_delay=0.0, rng=random.Random(1))

        http = await steps.execute("http-action", {"method": "POST", "url": "https://x.test"})
        assert http.message == "HTTP POST request to https://x.test"
        assert http.data["status"] == 200

        email = await steps.execute("email-action", {"to": "ops@example.com", "subject": "Hi"})
        assert email.message == "Email sent to ops@example.com"

        condition = await steps.execute(
            "condition", {"leftValue": "a", "operator": "==", "rightValue": "b"}
        )
        assert condition.message == "Condition evaluated: a == b"
        assert isinstance(condition.data["conditionResult"], bool)

        other = await steps.execute("custom", {})
        assert other.message == "Node executed"

    @pytest.mark.asyncio
    async def test_delay_is_capped(self):
        steps = SimulatedStepExecutor(max_delay=0.01)

        started = time.monotonic()
        result = await steps.execute("delay", {"duration": 5, "unit": "minutes"})

        assert result.message == "Delayed for 5 minutes"
        assert result.data == {"duration": 5, "unit": "minutes"}
        assert time.monotonic() - started < 1.0

    @pytest.mark.asyncio
    async def test_invalid_delay_fails(self):
        result = await SimulatedStepExecutor(max_delay=0.0).execute("delay", {"duration": "soon"})
        assert result.success is False
        assert "Invalid delay duration" in result.error
