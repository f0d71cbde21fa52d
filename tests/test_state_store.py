"""Tests for the SQLite state store."""

import sqlite3

import pytest

from automaton.errors import StateStoreError
from automaton.state.database import StateStore
from automaton.state.types import (
    AgentState,
    HeartbeatEntry,
    ModificationRecord,
    TokenUsage,
    ToolCallResult,
    TurnRecord,
)


def test_agent_state_defaults_to_sleeping(store) -> None:
    assert store.get_agent_state() == AgentState.SLEEPING
    store.set_agent_state(AgentState.RUNNING)
    assert store.get_agent_state() == AgentState.RUNNING


def test_unknown_agent_state_reads_as_sleeping(store) -> None:
    store.set_kv("agent_state", "hibernating")
    assert store.get_agent_state() == AgentState.SLEEPING


def test_state_survives_reopen(config, store) -> None:
    store.set_agent_state(AgentState.DEAD)
    store.request_wake("low funds")

    reopened = StateStore(config.db_file)
    assert reopened.get_agent_state() == AgentState.DEAD
    assert reopened.get_wake_request() == "low funds"


def test_wake_request_is_level_triggered(store) -> None:
    store.request_wake("first")
    store.request_wake("second")
    assert store.get_wake_request() == "second"

    store.clear_wake_request()
    assert store.get_wake_request() is None
    # Clearing twice is a no-op
    store.clear_wake_request()
    assert store.get_wake_request() is None


def test_sleep_until_roundtrip(store) -> None:
    store.set_sleep_until("2030-01-01T00:00:00.000+00:00")
    assert store.get_sleep_until() == "2030-01-01T00:00:00.000+00:00"
    store.clear_sleep_until()
    assert store.get_sleep_until() is None


def test_advance_kv_only_moves_forward(store) -> None:
    assert store.advance_kv("heartbeat_last_x", "2030-01-01T00:10:00.000+00:00") is True
    assert store.advance_kv("heartbeat_last_x", "2030-01-01T00:05:00.000+00:00") is False
    assert store.get_kv("heartbeat_last_x") == "2030-01-01T00:10:00.000+00:00"
    assert store.advance_kv("heartbeat_last_x", "2030-01-01T00:15:00.000+00:00") is True
    assert store.get_kv("heartbeat_last_x") == "2030-01-01T00:15:00.000+00:00"


def test_turns_returned_in_creation_order_with_ties(store) -> None:
    ts = "2030-01-01T00:00:00.000+00:00"
    ids = []
    for i in range(5):
        turn = TurnRecord(timestamp=ts, thinking=f"turn {i}")
        ids.append(turn.id)
        store.insert_turn(turn)

    turns = store.get_turns()
    assert [t.thinking for t in turns] == [f"turn {i}" for i in range(5)]
    assert [t.id for t in turns] == ids
    assert store.get_turn_count() == 5


def test_turns_for_multiple_cycles_are_ordered(store) -> None:
    for _ in range(3):
        for _ in range(2):
            store.insert_turn(TurnRecord(thinking="round"))

    turns = store.get_turns()
    assert len(turns) == 6
    timestamps = [t.timestamp for t in turns]
    assert timestamps == sorted(timestamps)


def test_recent_turns_are_last_n_oldest_first(store) -> None:
    for i in range(5):
        store.insert_turn(TurnRecord(timestamp=f"2030-01-01T00:00:0{i}.000+00:00", thinking=str(i)))
    assert [t.thinking for t in store.get_recent_turns(3)] == ["2", "3", "4"]


def test_turn_preserves_tool_calls_and_usage(store) -> None:
    turn = TurnRecord(
        thinking="checking",
        tool_calls=[
            ToolCallResult(id="c1", name="exec", arguments={"command": "ls"}, result="a\nb", duration_ms=12),
            ToolCallResult(id="c2", name="nope", error="Unknown tool: nope"),
        ],
        token_usage=TokenUsage(prompt_tokens=10, completion_tokens=5, total_tokens=15),
        input_source="heartbeat",
    )
    store.insert_turn(turn)

    [loaded] = store.get_turns()
    assert loaded == turn
    assert loaded.tool_calls[1].ok is False
    assert loaded.tool_calls[1].observation == "Unknown tool: nope"


def test_modifications_append_only(store) -> None:
    store.insert_modification(ModificationRecord(type="code_edit", description="one", diff="--- a\n+++ b"))
    store.insert_modification(ModificationRecord(type="package_install", description="two", reversible=False))

    mods = store.get_recent_modifications(10)
    assert [m.description for m in mods] == ["one", "two"]
    assert mods[0].diff == "--- a\n+++ b"
    assert mods[1].reversible is False


def test_heartbeat_entries_upsert_by_name(store) -> None:
    store.upsert_heartbeat_entry(HeartbeatEntry(name="ping", schedule="0 * * * *", task="status_ping"))
    store.upsert_heartbeat_entry(
        HeartbeatEntry(name="ping", schedule="*/15 * * * *", task="status_ping", enabled=False)
    )

    [entry] = store.get_heartbeat_entries()
    assert entry.schedule == "*/15 * * * *"
    assert entry.enabled is False


def test_identity_roundtrip(store, identity) -> None:
    identity.persist(store)
    assert store.get_identity("name") == "test-bot"
    assert store.get_identity("creator") == "creator-123"
    created = store.get_identity("created_at")

    identity.persist(store)
    assert store.get_identity("created_at") == created


def test_closed_store_raises(config) -> None:
    s = StateStore(config.db_file)
    s.close()
    with pytest.raises(StateStoreError):
        s.get_agent_state()


def test_sqlite_failure_becomes_state_store_error(tmp_path) -> None:
    db = tmp_path / "broken.db"
    db.write_bytes(b"this is not a sqlite database" * 100)
    with pytest.raises(StateStoreError):
        StateStore(db)


def test_schema_tables_exist(store) -> None:
    con = sqlite3.connect(str(store.db_path))
    names = {r[0] for r in con.execute("SELECT name FROM sqlite_master WHERE type='table'")}
    con.close()
    assert {"turns", "modifications", "heartbeat_entries", "kv", "identity"} <= names


def test_ids_sort_in_creation_order() -> None:
    from automaton.utils.helpers import new_id

    ids = [new_id() for _ in range(2000)]
    assert ids == sorted(ids)
    assert len(set(ids)) == len(ids)
    assert all(len(i) == 25 for i in ids)
