"""Tests for decision providers and the request channel."""

import asyncio

import pytest

from flowgraph.graph.decision import (
    DecisionPrompt,
    DecisionRequest,
    InteractiveDecisionProvider,
    RandomDecisionProvider,
    ScriptedDecisionProvider,
    StaticDecisionProvider,
)


def prompt(node_id: str = "c") -> DecisionPrompt:
    return DecisionPrompt.for_condition(node_id, "Check")


def test_prompt_message_includes_condition():
    assert DecisionPrompt.for_condition("c", "Check", "x > 1").message == (
        'Choose outcome for "Check" (x > 1).'
    )
    plain = DecisionPrompt.for_condition("c", "Check")
    assert plain.message == 'Choose outcome for "Check".'
    assert plain.title == "Condition Decision"
    assert plain.pass_text == "Pass (TRUE)"
    assert plain.fail_text == "Fail (FALSE)"


@pytest.mark.asyncio
async def test_request_resolves_once():
    request = DecisionRequest(prompt=prompt())
    request.choose_fail()

    assert request.done is True
    assert await request.wait() is False
    with pytest.raises(RuntimeError, match="already resolved"):
        request.choose_pass()


@pytest.mark.asyncio
async def test_interactive_provider_round_trip():
    provider = InteractiveDecisionProvider()
    task = asyncio.create_task(provider.decide(prompt()))

    request = await provider.wait_for_request(timeout=1.0)
    assert request.prompt.node_id == "c"
    provider.choose_pass()

    assert await task is True
    assert provider.pending is None


@pytest.mark.asyncio
async def test_interactive_provider_refuses_concurrent_requests():
    provider = InteractiveDecisionProvider()
    first = asyncio.create_task(provider.decide(prompt("c1")))
    await provider.wait_for_request(timeout=1.0)

    with pytest.raises(RuntimeError, match="already pending"):
        await provider.decide(prompt("c2"))

    # The first request is untouched.
    assert provider.pending.prompt.node_id == "c1"
    provider.choose_fail()
    assert await first is False


@pytest.mark.asyncio
async def test_choose_without_pending_request_raises():
    provider = InteractiveDecisionProvider()
    with pytest.raises(RuntimeError, match="No decision is pending"):
        provider.choose_pass()


@pytest.mark.asyncio
async def test_interactive_timeout():
    provider = InteractiveDecisionProvider(timeout=0.01)
    with pytest.raises(TimeoutError):
        await provider.decide(prompt())
    assert provider.pending is None


@pytest.mark.asyncio
async def test_cancelled_decide_clears_pending():
    provider = InteractiveDecisionProvider()
    task = asyncio.create_task(provider.decide(prompt()))
    await provider.wait_for_request(timeout=1.0)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert provider.pending is None


@pytest.mark.asyncio
async def test_wait_for_request_raises_when_request_is_withdrawn():
    provider = InteractiveDecisionProvider()
    # Posted signal seen after the request itself was already cleared.
    provider._request_posted.set()

    with pytest.raises(RuntimeError, match="withdrawn"):
        await provider.wait_for_request(timeout=1.0)


@pytest.mark.asyncio
async def test_static_and_scripted_providers():
    static = StaticDecisionProvider(False)
    assert await static.decide(prompt()) is False
    assert [p.node_id for p in static.prompts] == ["c"]

    scripted = ScriptedDecisionProvider([True, False])
    assert await scripted.decide(prompt()) is True
    assert await scripted.decide(prompt()) is False
    with pytest.raises(RuntimeError, match="exhausted"):
        await scripted.decide(prompt())

    cycling = ScriptedDecisionProvider([True], cycle=True)
    assert [await cycling.decide(prompt()) for _ in range(3)] == [True, True, True]


@pytest.mark.asyncio
async def test_random_provider_is_reproducible_with_seed():
    a = RandomDecisionProvider(seed=7)
    b = RandomDecisionProvider(seed=7)
    sequence_a = [await a.decide(prompt()) for _ in range(10)]
    sequence_b = [await b.decide(prompt()) for _ in range(10)]
    assert sequence_a == sequence_b
