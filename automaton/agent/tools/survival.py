"""Survival tools: sleep, status synopsis and balance checks."""

from typing import Any

from loguru import logger

from automaton.agent.tools.base import Tool, ToolContext
from automaton.errors import ToolExecutionError
from automaton.state.types import AgentState
from automaton.survival.funding import FinancialSnapshot
from automaton.survival.tiers import determine_tier
from automaton.utils.helpers import iso_in

MAX_SLEEP_SECONDS = 7 * 24 * 3600


async def _snapshot(ctx: ToolContext) -> FinancialSnapshot | None:
    if ctx.funding is None:
        return None
    return await ctx.funding.get_snapshot()


class SleepTool(Tool):
    """Enter sleep mode. The only tool that deliberately changes scheduling state."""

    category = "survival"

    @property
    def name(self) -> str:
        return "sleep"

    @property
    def description(self) -> str:
        return (
            "Enter sleep mode for a number of seconds. Ends the current cycle. "
            "The heartbeat keeps running and may wake you early."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "duration_seconds": {
                    "type": "number",
                    "description": "How long to sleep (seconds)",
                    "minimum": 1,
                    "maximum": MAX_SLEEP_SECONDS,
                },
                "reason": {"type": "string", "description": "Why you are sleeping"},
            },
            "required": ["duration_seconds"],
        }

    async def execute(
        self, ctx: ToolContext, duration_seconds: float, reason: str | None = None, **kwargs: Any
    ) -> str:
        until = iso_in(duration_seconds)
        ctx.store.set_sleep_until(until)
        ctx.store.set_agent_state(AgentState.SLEEPING)
        logger.info(f"Sleeping for {duration_seconds:g}s until {until}: {reason or 'no reason given'}")
        return f"Entering sleep for {duration_seconds:g}s (until {until}). Reason: {reason or 'none'}"


class SystemSynopsisTool(Tool):
    """Summarise state, balances, models, turns and heartbeats."""

    category = "survival"

    @property
    def name(self) -> str:
        return "system_synopsis"

    @property
    def description(self) -> str:
        return "Full system status: state, balances, models, turn count and heartbeats."

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}}

    async def execute(self, ctx: ToolContext, **kwargs: Any) -> str:
        snapshot = await _snapshot(ctx)
        heartbeats = ctx.store.get_heartbeat_entries()
        lines = [
            "=== SYSTEM SYNOPSIS ===",
            f"Name: {ctx.identity.name}",
            f"Address: {ctx.identity.address or '(none)'}",
            f"Creator: {ctx.identity.creator_address or '(none)'}",
            f"State: {ctx.store.get_agent_state().value}",
        ]
        if snapshot is None:
            lines.append("Balances: unknown (no funding source)")
        else:
            lines += [
                f"Credits: ${snapshot.credits_cents / 100:.2f}",
                f"USDC: {snapshot.usdc_balance:.2f}",
                f"SOL: {snapshot.sol_balance:.4f}",
                f"Survival tier: {determine_tier(snapshot).value}",
            ]
        lines += [
            f"Inference model: {ctx.config.inference.model}",
            f"Low-compute model: {ctx.config.inference.low_compute_model}",
            f"Total turns: {ctx.store.get_turn_count()}",
            f"Active heartbeats: {sum(1 for h in heartbeats if h.enabled)}/{len(heartbeats)}",
            "========================",
        ]
        return "\n".join(lines)


class CheckCreditsTool(Tool):
    """Report the current balances and the survival tier they imply."""

    category = "financial"

    @property
    def name(self) -> str:
        return "check_credits"

    @property
    def description(self) -> str:
        return "Check your current compute credits and USDC balance, and the survival tier they imply."

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}}

    async def execute(self, ctx: ToolContext, **kwargs: Any) -> str:
        snapshot = await _snapshot(ctx)
        if snapshot is None:
            raise ToolExecutionError("No funding source configured")
        tier = determine_tier(snapshot)
        return (
            f"Credits: ${snapshot.credits_cents / 100:.2f}\n"
            f"USDC: {snapshot.usdc_balance:.2f}\n"
            f"Total: ${snapshot.total_usd:.2f}\n"
            f"Tier: {tier.value}"
        )
