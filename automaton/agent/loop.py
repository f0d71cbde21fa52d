"""Agent loop: the think/act/observe engine."""

import json
from typing import Literal

from loguru import logger

from automaton.agent.context import ContextBuilder
from automaton.agent.tools import ToolContext, ToolRegistry, create_registry
from automaton.config.schema import Config
from automaton.identity import AutomatonIdentity
from automaton.providers.base import LLMProvider, LLMResponse
from automaton.state.database import StateStore
from automaton.state.types import AgentState, TokenUsage, ToolCallResult, TurnRecord
from automaton.survival.funding import FundingSource
from automaton.survival.tiers import apply_tier_restrictions, can_run_inference, determine_tier
from automaton.utils.helpers import iso_in

InputSource = Literal["self", "heartbeat", "creator", "external"]


class AgentLoop:
    """
    Runs one bounded wake cycle at a time.

    A cycle:
    1. Reads the funding snapshot; a dead tier sets ``dead`` and returns
       without any reasoning call
    2. Sets ``running`` and applies the tier's model restrictions
    3. Runs up to ``max_rounds`` rounds of reasoning plus sequential tool calls,
       persisting one TurnRecord per round
    4. Stops early when a tool put the agent to sleep (or killed it), and
       otherwise leaves it ``sleeping`` with a short wake delay

    InferenceCallError is not retried here; it aborts the cycle and the
    runtime backs off. Tool failures become observations for the next round.
    """

    def __init__(
        self,
        config: Config,
        identity: AutomatonIdentity,
        store: StateStore,
        provider: LLMProvider,
        funding: FundingSource,
        tools: ToolRegistry | None = None,
    ):
        self.config = config
        self.identity = identity
        self.store = store
        self.provider = provider
        self.funding = funding
        self.tools = tools or create_registry(config)
        self.context = ContextBuilder(config, identity, store, self.tools)
        self.max_rounds = config.agent.max_rounds
        self._stop_requested = False

    def request_stop(self) -> None:
        """Finish the current round, then end the cycle."""
        self._stop_requested = True

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def _tool_context(self) -> ToolContext:
        return ToolContext(
            identity=self.identity,
            config=self.config,
            store=self.store,
            provider=self.provider,
            funding=self.funding,
        )

    async def run_cycle(
        self,
        wake_reason: str | None = None,
        input_source: InputSource = "self",
    ) -> AgentState:
        """Run one wake cycle and return the state it left behind."""
        snapshot = await self.funding.get_snapshot()
        tier = determine_tier(snapshot)
        if not can_run_inference(tier):
            logger.warning(f"Funds exhausted (${snapshot.total_usd:.2f}); entering dead state")
            self.store.set_agent_state(AgentState.DEAD)
            return AgentState.DEAD

        self.store.set_agent_state(AgentState.RUNNING)
        model = apply_tier_restrictions(tier, self.provider, self.store)
        logger.info(f"Cycle start: tier={tier.value} model={model} balance=${snapshot.total_usd:.2f}")

        is_first_run = self.store.get_turn_count() == 0
        messages = self.context.build_messages(
            self.context.build_system_prompt(snapshot, tier, AgentState.RUNNING, model, is_first_run),
            self.context.build_wakeup_prompt(snapshot, wake_reason),
        )
        use_tools = self.provider.supports_tools
        tool_defs = self.tools.get_definitions() if use_tools else None
        ctx = self._tool_context()

        rounds = 0
        finished = False
        while rounds < self.max_rounds:
            if self._stop_requested:
                logger.info("Stop requested; ending cycle between rounds")
                finished = True
                break
            rounds += 1

            response = await self.provider.chat(messages, tools=tool_defs, model=model)
            usage = TokenUsage.from_dict(response.usage)

            if not use_tools or not response.has_tool_calls:
                self.context.add_assistant_message(messages, response.content)
                self._record_turn(response, [], usage, input_source)
                finished = True
                break

            tool_call_dicts = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {"name": tc.name, "arguments": json.dumps(tc.arguments)},
                }
                for tc in response.tool_calls
            ]
            self.context.add_assistant_message(messages, response.content, tool_call_dicts)

            results: list[ToolCallResult] = []
            for tool_call in response.tool_calls:
                logger.debug(f"Executing tool: {tool_call.name} with arguments: {json.dumps(tool_call.arguments)}")
                result = await self.tools.execute(tool_call.id, tool_call.name, tool_call.arguments, ctx)
                results.append(result)
                self.context.add_tool_result(messages, tool_call.id, tool_call.name, result.observation)

            self._record_turn(response, results, usage, input_source)
            input_source = "self"

            state = self.store.get_agent_state()
            if state in (AgentState.SLEEPING, AgentState.DEAD):
                logger.info(f"Cycle ended by tool: state={state.value}")
                return state

        if not finished:
            logger.warning(f"Reached {self.max_rounds} rounds without sleeping; forcing sleep")

        sleep_s = self.config.agent.default_sleep_seconds
        self.store.set_sleep_until(iso_in(sleep_s))
        self.store.set_agent_state(AgentState.SLEEPING)
        logger.info(f"Cycle complete after {rounds} round(s); sleeping {sleep_s}s")
        return AgentState.SLEEPING

    def _record_turn(
        self,
        response: LLMResponse,
        results: list[ToolCallResult],
        usage: TokenUsage,
        input_source: InputSource,
    ) -> TurnRecord:
        turn = TurnRecord(
            thinking=response.content or "",
            tool_calls=results,
            token_usage=usage,
            input_source=input_source,
        )
        self.store.insert_turn(turn)
        logger.info(f"Turn {turn.id}: {len(results)} tools, {usage.total_tokens} tokens")
        return turn
