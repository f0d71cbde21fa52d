"""Tests for the agent loop's cycle state machine."""

import pytest

from automaton.agent.loop import AgentLoop
from automaton.agent.tools.registry import POLICY_BLOCK_PREFIX
from automaton.errors import InferenceCallError
from automaton.providers.base import LLMResponse, ToolCallRequest
from automaton.state.types import AgentState
from automaton.survival.funding import FinancialSnapshot, StaticFundingSource
from automaton.utils.helpers import now_iso


def _tool_call(name: str, call_id: str = "call-1", **arguments) -> LLMResponse:
    return LLMResponse(
        content=f"calling {name}",
        tool_calls=[ToolCallRequest(id=call_id, name=name, arguments=arguments)],
        usage={"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    )


class RecordingStore:
    """Wraps a StateStore and records agent-state writes."""

    def __init__(self, inner):
        self._inner = inner
        self.state_writes: list[AgentState] = []

    def set_agent_state(self, state):
        self.state_writes.append(state)
        self._inner.set_agent_state(state)

    def __getattr__(self, name):
        return getattr(self._inner, name)


def _make_loop(config, identity, store, provider, funding=None) -> AgentLoop:
    return AgentLoop(
        config=config,
        identity=identity,
        store=store,
        provider=provider,
        funding=funding or StaticFundingSource(FinancialSnapshot(credits_cents=10_000)),
    )


@pytest.mark.asyncio
async def test_dead_tier_makes_no_inference_call(config, identity, store, make_provider) -> None:
    provider = make_provider()
    recording = RecordingStore(store)
    loop = _make_loop(config, identity, recording, provider, StaticFundingSource(FinancialSnapshot()))

    state = await loop.run_cycle()

    assert state == AgentState.DEAD
    assert provider.calls == []
    assert recording.state_writes == [AgentState.DEAD]
    assert store.get_agent_state() == AgentState.DEAD
    assert store.get_turn_count() == 0


@pytest.mark.asyncio
async def test_no_tool_calls_ends_cycle_on_same_round(config, identity, store, make_provider) -> None:
    provider = make_provider([LLMResponse(content="All good, resting."), _tool_call("system_synopsis")])
    loop = _make_loop(config, identity, store, provider)

    state = await loop.run_cycle()

    assert len(provider.calls) == 1
    assert state == AgentState.SLEEPING
    [turn] = store.get_turns()
    assert turn.thinking == "All good, resting."
    assert turn.tool_calls == []


@pytest.mark.asyncio
async def test_plain_completion_backend_runs_single_round(config, identity, store, make_provider) -> None:
    provider = make_provider([_tool_call("system_synopsis")], supports_tools=False)
    loop = _make_loop(config, identity, store, provider)

    await loop.run_cycle()

    assert len(provider.calls) == 1
    assert provider.calls[0]["tools"] is None
    [turn] = store.get_turns()
    assert turn.tool_calls == []


@pytest.mark.asyncio
async def test_max_rounds_forces_sleep_in_future(config, identity, store, make_provider) -> None:
    config.agent.max_rounds = 3
    provider = make_provider([_tool_call("system_synopsis", call_id=f"c{i}") for i in range(10)])
    loop = _make_loop(config, identity, store, provider)

    before = now_iso()
    state = await loop.run_cycle()

    assert state == AgentState.SLEEPING
    assert len(provider.calls) == 3
    assert store.get_turn_count() == 3
    assert store.get_agent_state() == AgentState.SLEEPING
    assert store.get_sleep_until() > before


@pytest.mark.asyncio
async def test_sleep_tool_stops_cycle(config, identity, store, make_provider) -> None:
    provider = make_provider([
        _tool_call("sleep", duration_seconds=3600, reason="done"),
        _tool_call("system_synopsis"),
    ])
    loop = _make_loop(config, identity, store, provider)

    state = await loop.run_cycle()

    assert state == AgentState.SLEEPING
    assert len(provider.calls) == 1
    assert store.get_turn_count() == 1
    # The tool's deadline is kept, not replaced by the default delay
    assert store.get_sleep_until() > now_iso()
    [turn] = store.get_turns()
    assert turn.tool_calls[0].name == "sleep"


@pytest.mark.asyncio
async def test_inference_failure_aborts_without_turn(config, identity, store, make_provider) -> None:
    provider = make_provider([InferenceCallError("connection refused")])
    loop = _make_loop(config, identity, store, provider)

    with pytest.raises(InferenceCallError):
        await loop.run_cycle()

    assert store.get_turn_count() == 0


@pytest.mark.asyncio
async def test_tool_errors_are_fed_back(config, identity, store, make_provider) -> None:
    provider = make_provider([
        _tool_call("read_file", path="missing.txt"),
        _tool_call("exec", call_id="c2", command=f"rm -f {store.db_path}"),
        LLMResponse(content="ok, giving up"),
    ])
    loop = _make_loop(config, identity, store, provider)

    await loop.run_cycle()

    assert len(provider.calls) == 3
    second_messages = provider.calls[1]["messages"]
    tool_msg = second_messages[-1]
    assert tool_msg["role"] == "tool"
    assert tool_msg["tool_call_id"] == "call-1"
    assert "File not found" in tool_msg["content"]

    third_messages = provider.calls[2]["messages"]
    assert third_messages[-1]["content"].startswith(POLICY_BLOCK_PREFIX)
    assert store.db_path.exists()

    turns = store.get_turns()
    assert [len(t.tool_calls) for t in turns] == [1, 1, 0]
    assert turns[0].tool_calls[0].error is not None


@pytest.mark.asyncio
async def test_tool_calls_run_sequentially_in_order(config, identity, store, make_provider) -> None:
    response = LLMResponse(
        content="two steps",
        tool_calls=[
            ToolCallRequest(id="a", name="write_file", arguments={"path": "step.txt", "content": "1"}),
            ToolCallRequest(id="b", name="read_file", arguments={"path": "step.txt"}),
        ],
    )
    provider = make_provider([response, LLMResponse(content="done")])
    loop = _make_loop(config, identity, store, provider)

    await loop.run_cycle()

    [first, _] = store.get_turns()
    assert [tc.id for tc in first.tool_calls] == ["a", "b"]
    assert first.tool_calls[1].result == "1"


@pytest.mark.asyncio
async def test_low_funds_use_cheap_model(config, identity, store, make_provider) -> None:
    provider = make_provider([LLMResponse(content="saving money")])
    funding = StaticFundingSource(FinancialSnapshot(credits_cents=200))
    loop = _make_loop(config, identity, store, provider, funding)

    await loop.run_cycle()

    assert provider.calls[0]["model"] == "cheap-model"
    assert store.get_kv("current_tier") == "low_compute"


@pytest.mark.asyncio
async def test_first_run_prompt_and_wake_reason(config, identity, store, make_provider) -> None:
    config.creator_message = "Build something useful."
    provider = make_provider([LLMResponse(content="hello world")])
    loop = _make_loop(config, identity, store, provider)
    await loop.run_cycle()

    system, user = provider.calls[0]["messages"][:2]
    assert "MESSAGE FROM YOUR CREATOR" in system["content"]
    assert "[DANGEROUS]" in system["content"]
    assert "first moment" in user["content"]

    provider.responses = [LLMResponse(content="awake")]
    await loop.run_cycle(wake_reason="Funds low", input_source="heartbeat")

    user = provider.calls[1]["messages"][1]
    assert "woken early: Funds low" in user["content"]
    assert store.get_turns()[-1].input_source == "heartbeat"


@pytest.mark.asyncio
async def test_stop_request_ends_cycle_between_rounds(config, identity, store, make_provider) -> None:
    provider = make_provider([_tool_call("system_synopsis", call_id=f"c{i}") for i in range(5)])
    loop = _make_loop(config, identity, store, provider)
    loop.request_stop()

    state = await loop.run_cycle()

    assert provider.calls == []
    assert state == AgentState.SLEEPING
