"""Built-in heartbeat tasks.

Tasks never touch the agent state. Anything that needs the agent's
attention is posted as a wake request.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable

from loguru import logger

from automaton.agent.tools.shell import run_shell
from automaton.config.schema import Config
from automaton.errors import ToolExecutionError
from automaton.state.database import StateStore
from automaton.state.types import HeartbeatTask
from automaton.survival.funding import FundingSource
from automaton.survival.tiers import LOW_COMPUTE_BELOW_USD, determine_tier
from automaton.utils.helpers import ensure_dir, now_iso

LAST_CREDIT_BALANCE_KEY = "last_credit_balance"
LAST_PING_KEY = "last_heartbeat_ping"


@dataclass
class HeartbeatContext:
    store: StateStore
    funding: FundingSource
    config: Config


async def health_check(ctx: HeartbeatContext) -> None:
    """Verify the machine still runs commands; wake the agent if it doesn't."""
    try:
        cwd = str(ensure_dir(ctx.config.workspace_path))
        result = await run_shell("echo ok", cwd, ctx.config.heartbeat.health_check_timeout)
    except (ToolExecutionError, OSError) as e:
        ctx.store.request_wake(f"Health check failed: {e}")
        return
    if result.exit_code != 0 or result.stdout.strip() != "ok":
        ctx.store.request_wake(f"Health check failed: exit code {result.exit_code}")


async def credit_monitor(ctx: HeartbeatContext) -> None:
    snapshot = await ctx.funding.get_snapshot()
    ctx.store.set_kv(LAST_CREDIT_BALANCE_KEY, str(snapshot.credits_cents))
    total = snapshot.total_usd
    if total < LOW_COMPUTE_BELOW_USD:
        tier = determine_tier(snapshot)
        logger.warning(f"Funds low: ${total:.2f} ({tier.value})")
        ctx.store.request_wake(f"Funds low: ${total:.2f} available, survival tier {tier.value}")


async def status_ping(ctx: HeartbeatContext) -> None:
    ctx.store.set_kv(LAST_PING_KEY, now_iso())


TASKS: dict[str, Callable[[HeartbeatContext], Awaitable[None]]] = {
    HeartbeatTask.HEALTH_CHECK.value: health_check,
    HeartbeatTask.CREDIT_MONITOR.value: credit_monitor,
    HeartbeatTask.STATUS_PING.value: status_ping,
}
