"""Tests for the heartbeat daemon and its tasks."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from automaton.heartbeat.daemon import HeartbeatDaemon, is_due, last_run_key
from automaton.state.types import AgentState, HeartbeatEntry
from automaton.survival.funding import FinancialSnapshot, StaticFundingSource
from automaton.utils.helpers import format_ts

NOW = datetime(2030, 6, 1, 12, 3, 0, tzinfo=timezone.utc)


def _daemon(store, config, funding=None, interval_s=None) -> HeartbeatDaemon:
    return HeartbeatDaemon(
        store,
        funding or StaticFundingSource(FinancialSnapshot(credits_cents=10_000)),
        config,
        interval_s=interval_s,
    )


def test_is_due() -> None:
    entry = HeartbeatEntry(name="x", schedule="*/5 * * * *", task="status_ping")
    assert is_due(entry, None, NOW)
    assert is_due(entry, NOW - timedelta(minutes=6), NOW)
    # Last fire was 12:00, already covered by a run at 12:01
    assert not is_due(entry, NOW - timedelta(minutes=2), NOW)


@pytest.mark.asyncio
async def test_entry_runs_once_then_not_again(store, config) -> None:
    store.upsert_heartbeat_entry(HeartbeatEntry(name="ping", schedule="*/5 * * * *", task="status_ping"))
    store.set_kv(last_run_key("ping"), format_ts(NOW - timedelta(minutes=6)))
    daemon = _daemon(store, config)

    assert await daemon.tick(NOW) == ["ping"]
    assert store.get_kv(last_run_key("ping")) == format_ts(NOW)
    first_ping = store.get_kv("last_heartbeat_ping")
    assert first_ping is not None

    assert await daemon.tick(NOW + timedelta(seconds=30)) == []
    assert store.get_kv("last_heartbeat_ping") == first_ping


@pytest.mark.asyncio
async def test_disabled_entries_are_skipped(store, config) -> None:
    store.upsert_heartbeat_entry(
        HeartbeatEntry(name="ping", schedule="* * * * *", task="status_ping", enabled=False)
    )
    assert await _daemon(store, config).tick(NOW) == []
    assert store.get_kv("last_heartbeat_ping") is None


@pytest.mark.asyncio
async def test_failing_entry_does_not_block_others(store, config) -> None:
    store.upsert_heartbeat_entry(HeartbeatEntry(name="a_bad_cron", schedule="not a cron", task="status_ping"))
    store.upsert_heartbeat_entry(HeartbeatEntry(name="b_unknown", schedule="* * * * *", task="dance"))
    store.upsert_heartbeat_entry(HeartbeatEntry(name="c_ping", schedule="* * * * *", task="status_ping"))

    executed = await _daemon(store, config).tick(NOW)

    assert executed == ["c_ping"]
    assert store.get_kv(last_run_key("a_bad_cron")) is None
    assert store.get_kv(last_run_key("b_unknown")) is None


@pytest.mark.asyncio
async def test_last_run_never_moves_backwards(store, config) -> None:
    store.upsert_heartbeat_entry(HeartbeatEntry(name="ping", schedule="* * * * *", task="status_ping"))
    daemon = _daemon(store, config)

    await daemon.tick(NOW)
    await daemon.tick(NOW - timedelta(hours=1))

    assert store.get_kv(last_run_key("ping")) == format_ts(NOW)


@pytest.mark.asyncio
async def test_credit_monitor_raises_wake_when_low(store, config) -> None:
    store.upsert_heartbeat_entry(HeartbeatEntry(name="credits", schedule="*/10 * * * *", task="credit_monitor"))
    store.set_agent_state(AgentState.SLEEPING)
    poor = StaticFundingSource(FinancialSnapshot(credits_cents=150))

    await _daemon(store, config, poor).tick(NOW)

    assert store.get_kv("last_credit_balance") == "150"
    reason = store.get_wake_request()
    assert reason is not None and "$1.50" in reason
    # The heartbeat never writes agent state
    assert store.get_agent_state() == AgentState.SLEEPING


@pytest.mark.asyncio
async def test_credit_monitor_quiet_when_funded(store, config) -> None:
    store.upsert_heartbeat_entry(HeartbeatEntry(name="credits", schedule="*/10 * * * *", task="credit_monitor"))
    await _daemon(store, config).tick(NOW)
    assert store.get_kv("last_credit_balance") == "10000"
    assert store.get_wake_request() is None


@pytest.mark.asyncio
async def test_health_check_passes(store, config) -> None:
    store.upsert_heartbeat_entry(HeartbeatEntry(name="health", schedule="*/5 * * * *", task="health_check"))
    assert await _daemon(store, config).tick(NOW) == ["health"]
    assert store.get_wake_request() is None


@pytest.mark.asyncio
async def test_health_check_failure_requests_wake(store, config, monkeypatch) -> None:
    import automaton.heartbeat.tasks as tasks
    from automaton.errors import ToolExecutionError

    async def broken_shell(command, cwd, timeout):
        raise ToolExecutionError("Command timed out after 5 seconds")

    monkeypatch.setattr(tasks, "run_shell", broken_shell)
    store.upsert_heartbeat_entry(HeartbeatEntry(name="health", schedule="*/5 * * * *", task="health_check"))

    assert await _daemon(store, config).tick(NOW) == ["health"]
    assert "Health check failed" in store.get_wake_request()


@pytest.mark.asyncio
async def test_start_ticks_immediately_and_stop_is_idempotent(store, config) -> None:
    store.upsert_heartbeat_entry(HeartbeatEntry(name="ping", schedule="* * * * *", task="status_ping"))
    daemon = _daemon(store, config, interval_s=3600)

    await daemon.start()
    assert daemon.running
    assert store.get_kv("last_heartbeat_ping") is not None

    daemon.stop()
    daemon.stop()
    assert not daemon.running


@pytest.mark.asyncio
async def test_interval_timer_keeps_ticking(store, config) -> None:
    daemon = _daemon(store, config, interval_s=0.01)
    ticks = 0
    original = daemon.tick

    async def counting_tick(now=None):
        nonlocal ticks
        ticks += 1
        return await original(now)

    daemon.tick = counting_tick
    await daemon.start()
    await asyncio.sleep(0.1)
    daemon.stop()

    assert ticks >= 3


@pytest.mark.asyncio
async def test_health_check_uncreatable_workspace_requests_wake(store, config, tmp_path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")
    config.agent.workspace = str(blocker / "workspace")
    store.upsert_heartbeat_entry(HeartbeatEntry(name="health", schedule="*/5 * * * *", task="health_check"))

    assert await _daemon(store, config).tick(NOW) == ["health"]
    assert "Health check failed" in store.get_wake_request()
