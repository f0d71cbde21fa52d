"""Tests for sleep, synopsis, credit and self-modification tools."""

import pytest

from automaton.agent.tools.self_mod import EditOwnFileTool, InstallPackageTool, ModifyHeartbeatTool
from automaton.agent.tools.survival import CheckCreditsTool, SleepTool, SystemSynopsisTool
from automaton.errors import PolicyViolation, ToolExecutionError
from automaton.heartbeat.config import load_heartbeat_config
from automaton.state.types import AgentState
from automaton.utils.helpers import now_iso


@pytest.mark.asyncio
async def test_sleep_sets_state_and_future_deadline(ctx, store) -> None:
    before = now_iso()
    out = await SleepTool().execute(ctx, duration_seconds=120, reason="nothing to do")

    assert store.get_agent_state() == AgentState.SLEEPING
    assert store.get_sleep_until() > before
    assert "nothing to do" in out


@pytest.mark.asyncio
async def test_system_synopsis(ctx, store) -> None:
    out = await SystemSynopsisTool().execute(ctx)
    assert "Name: test-bot" in out
    assert "Credits: $100.00" in out
    assert "Survival tier: normal" in out
    assert "Total turns: 0" in out


@pytest.mark.asyncio
async def test_check_credits(ctx) -> None:
    out = await CheckCreditsTool().execute(ctx)
    assert "Total: $100.00" in out
    assert "Tier: normal" in out


@pytest.mark.asyncio
async def test_check_credits_without_funding_source(ctx) -> None:
    ctx.funding = None
    with pytest.raises(ToolExecutionError):
        await CheckCreditsTool().execute(ctx)


@pytest.mark.asyncio
async def test_edit_own_file_records_diff(ctx, store) -> None:
    target = ctx.config.workspace_path / "strategy.md"
    target.write_text("plan: wait\n")

    out = await EditOwnFileTool().execute(
        ctx, path="strategy.md", content="plan: build\n", description="Change plan"
    )

    assert "audited" in out
    assert target.read_text() == "plan: build\n"
    [mod] = store.get_recent_modifications(5)
    assert mod.type == "code_edit"
    assert mod.description.startswith("Change plan")
    assert "-plan: wait" in mod.diff
    assert "+plan: build" in mod.diff


@pytest.mark.asyncio
async def test_edit_own_file_refuses_protected(ctx, store) -> None:
    with pytest.raises(PolicyViolation):
        await EditOwnFileTool().execute(ctx, path="wallet.json", content="{}", description="x")
    assert store.get_recent_modifications(5) == []


@pytest.mark.asyncio
async def test_install_package_success_is_audited(ctx, store) -> None:
    out = await InstallPackageTool(timeout=5).execute(ctx, command="true")
    assert out == "Success: true"
    [mod] = store.get_recent_modifications(5)
    assert mod.type == "package_install"
    assert "exit 0" in mod.description


@pytest.mark.asyncio
async def test_install_package_failure_raises(ctx, store) -> None:
    with pytest.raises(ToolExecutionError, match="Install failed"):
        await InstallPackageTool(timeout=5).execute(ctx, command="echo bad >&2; exit 2")
    assert len(store.get_recent_modifications(5)) == 1


@pytest.mark.asyncio
async def test_install_package_uses_shell_guard(ctx, store) -> None:
    with pytest.raises(PolicyViolation):
        await InstallPackageTool(timeout=5).execute(ctx, command="pip install x && rm -rf ~/.automaton")
    assert store.get_recent_modifications(5) == []


@pytest.mark.asyncio
async def test_modify_heartbeat_upserts_and_persists(ctx, store) -> None:
    out = await ModifyHeartbeatTool().execute(
        ctx, name="fast_credits", schedule="*/2 * * * *", task="credit_monitor"
    )
    assert "fast_credits" in out

    entries = {e.name: e for e in store.get_heartbeat_entries()}
    assert entries["fast_credits"].schedule == "*/2 * * * *"

    on_disk = {e.name for e in load_heartbeat_config(ctx.config.heartbeat_config_file)}
    assert "fast_credits" in on_disk

    [mod] = store.get_recent_modifications(5)
    assert mod.type == "heartbeat_change"


@pytest.mark.asyncio
async def test_modify_heartbeat_rejects_bad_cron(ctx, store) -> None:
    with pytest.raises(ToolExecutionError, match="Invalid cron"):
        await ModifyHeartbeatTool().execute(ctx, name="x", schedule="every minute", task="status_ping")
    assert store.get_heartbeat_entries() == []


@pytest.mark.asyncio
async def test_install_package_protects_relocated_state(ctx, store, tmp_path) -> None:
    db = tmp_path / "brain.sqlite"
    db.write_bytes(b"state")
    ctx.config.db_path = str(db)

    with pytest.raises(PolicyViolation):
        await InstallPackageTool(timeout=5).execute(ctx, command=f"pip install x; unlink {db}")
    assert db.exists()


@pytest.mark.asyncio
async def test_edit_own_file_times_out(ctx, store, monkeypatch) -> None:
    import time

    import automaton.agent.tools.self_mod as self_mod

    def stuck(file_path, content, path):
        time.sleep(0.5)
        return ""

    monkeypatch.setattr(self_mod, "_replace_contents", stuck)

    with pytest.raises(ToolExecutionError, match="timed out"):
        await EditOwnFileTool().execute(
            ctx, path="plan.md", content="x", description="Slow disk", timeout=0.05
        )
    assert store.get_recent_modifications(5) == []
