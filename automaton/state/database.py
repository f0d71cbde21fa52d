"""
SQLite-backed state store.

Holds everything the automaton must survive a restart with:
- the scalar agent state and scratch key/value signals (``kv``)
- the append-only turn log and self-modification audit log
- heartbeat entries keyed by name
- identity facts (name, address, creator)

Every public method is one independent single-key statement. Writes are
serialised by a process-local lock: the agent loop and the heartbeat daemon
share one store inside one event loop, so this is a single-writer design and
cross-process writers are not supported.

Any sqlite failure surfaces as StateStoreError. There is no safe way to keep
running without state or audit, so callers are expected to let it propagate.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from loguru import logger

from automaton.errors import StateStoreError
from automaton.state.types import (
    AgentState,
    HeartbeatEntry,
    ModificationRecord,
    TokenUsage,
    ToolCallResult,
    TurnRecord,
)
from automaton.utils.helpers import now_iso

SCHEMA_VERSION = 1

_SCHEMA = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS identity (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS turns (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    timestamp TEXT NOT NULL,
    thinking TEXT NOT NULL,
    tool_calls TEXT NOT NULL DEFAULT '[]',
    token_usage TEXT NOT NULL DEFAULT '{}',
    input_source TEXT
);

CREATE TABLE IF NOT EXISTS modifications (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    timestamp TEXT NOT NULL,
    type TEXT NOT NULL,
    description TEXT NOT NULL,
    diff TEXT,
    reversible INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS heartbeat_entries (
    name TEXT PRIMARY KEY,
    schedule TEXT NOT NULL,
    task TEXT NOT NULL,
    enabled INTEGER NOT NULL DEFAULT 1,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_turns_timestamp ON turns(timestamp, seq);
"""

# Well-known kv keys
AGENT_STATE_KEY = "agent_state"
WAKE_REQUEST_KEY = "wake_request"
SLEEP_UNTIL_KEY = "sleep_until"


class StateStore:
    """Durable key/value and append-only record storage."""

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self._lock = threading.Lock()
        self._closed = False
        self._init_db()

    # ----- plumbing -----

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        if self._closed:
            raise StateStoreError(f"State store {self.db_path} is closed")
        try:
            con = sqlite3.connect(str(self.db_path), timeout=30.0)
        except sqlite3.Error as e:
            raise StateStoreError(f"Cannot open state store {self.db_path}: {e}") from e
        con.row_factory = sqlite3.Row
        try:
            con.execute("PRAGMA journal_mode=WAL;")
            con.execute("PRAGMA synchronous=NORMAL;")
            yield con
            con.commit()
        except sqlite3.Error as e:
            con.rollback()
            raise StateStoreError(f"State store failure ({self.db_path}): {e}") from e
        finally:
            con.close()

    def _init_db(self) -> None:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        except OSError as e:
            raise StateStoreError(f"Cannot create state directory: {e}") from e

        with self._lock, self._connect() as con:
            con.executescript(_SCHEMA)
            row = con.execute("SELECT MAX(version) AS v FROM schema_version").fetchone()
            current = row["v"] if row and row["v"] is not None else 0
            if current < SCHEMA_VERSION:
                con.execute(
                    "INSERT OR REPLACE INTO schema_version (version, applied_at) VALUES (?, ?)",
                    (SCHEMA_VERSION, now_iso()),
                )
        logger.debug(f"State store ready at {self.db_path}")

    def close(self) -> None:
        """Mark the store closed; further calls raise StateStoreError."""
        self._closed = True

    # ----- identity -----

    def set_identity(self, key: str, value: str) -> None:
        with self._lock, self._connect() as con:
            con.execute("INSERT OR REPLACE INTO identity (key, value) VALUES (?, ?)", (key, value))

    def get_identity(self, key: str) -> str | None:
        with self._connect() as con:
            row = con.execute("SELECT value FROM identity WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    # ----- key/value scratch -----

    def get_kv(self, key: str) -> str | None:
        with self._connect() as con:
            row = con.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def set_kv(self, key: str, value: str) -> None:
        with self._lock, self._connect() as con:
            con.execute(
                "INSERT OR REPLACE INTO kv (key, value, updated_at) VALUES (?, ?, ?)",
                (key, value, now_iso()),
            )

    def delete_kv(self, key: str) -> None:
        with self._lock, self._connect() as con:
            con.execute("DELETE FROM kv WHERE key = ?", (key,))

    def advance_kv(self, key: str, value: str) -> bool:
        """Write ``value`` only if it sorts after the stored value.

        Used for timestamps that must never move backwards. Returns True
        when the value was written.
        """
        with self._lock, self._connect() as con:
            cur = con.execute(
                "INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at "
                "WHERE excluded.value > kv.value",
                (key, value, now_iso()),
            )
            return cur.rowcount > 0

    # ----- agent state -----

    def get_agent_state(self) -> AgentState:
        raw = self.get_kv(AGENT_STATE_KEY)
        if raw is None:
            return AgentState.SLEEPING
        try:
            return AgentState(raw)
        except ValueError:
            logger.warning(f"Unknown agent state {raw!r} in store, treating as sleeping")
            return AgentState.SLEEPING

    def set_agent_state(self, state: AgentState) -> None:
        self.set_kv(AGENT_STATE_KEY, AgentState(state).value)

    # ----- wake / sleep signalling -----

    def request_wake(self, reason: str) -> None:
        """Raise the level-triggered wake flag. Later reasons overwrite earlier ones."""
        self.set_kv(WAKE_REQUEST_KEY, reason)

    def get_wake_request(self) -> str | None:
        return self.get_kv(WAKE_REQUEST_KEY)

    def clear_wake_request(self) -> None:
        self.delete_kv(WAKE_REQUEST_KEY)

    def set_sleep_until(self, timestamp: str) -> None:
        self.set_kv(SLEEP_UNTIL_KEY, timestamp)

    def get_sleep_until(self) -> str | None:
        return self.get_kv(SLEEP_UNTIL_KEY)

    def clear_sleep_until(self) -> None:
        self.delete_kv(SLEEP_UNTIL_KEY)

    # ----- turns -----

    def insert_turn(self, turn: TurnRecord) -> None:
        with self._lock, self._connect() as con:
            con.execute(
                "INSERT INTO turns (id, timestamp, thinking, tool_calls, token_usage, input_source) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    turn.id,
                    turn.timestamp,
                    turn.thinking,
                    json.dumps([tc.model_dump() for tc in turn.tool_calls]),
                    turn.token_usage.model_dump_json(),
                    turn.input_source,
                ),
            )

    @staticmethod
    def _row_to_turn(row: sqlite3.Row) -> TurnRecord:
        return TurnRecord(
            id=row["id"],
            timestamp=row["timestamp"],
            thinking=row["thinking"],
            tool_calls=[ToolCallResult(**tc) for tc in json.loads(row["tool_calls"] or "[]")],
            token_usage=TokenUsage(**json.loads(row["token_usage"] or "{}")),
            input_source=row["input_source"],
        )

    def get_recent_turns(self, count: int) -> list[TurnRecord]:
        """Last ``count`` turns, oldest first."""
        with self._connect() as con:
            rows = con.execute(
                "SELECT * FROM turns ORDER BY timestamp DESC, seq DESC LIMIT ?", (count,)
            ).fetchall()
        return [self._row_to_turn(r) for r in reversed(rows)]

    def get_turns(self, limit: int | None = None) -> list[TurnRecord]:
        """All turns in creation order (audit replay)."""
        sql = "SELECT * FROM turns ORDER BY timestamp ASC, seq ASC"
        params: tuple = ()
        if limit is not None:
            sql += " LIMIT ?"
            params = (limit,)
        with self._connect() as con:
            rows = con.execute(sql, params).fetchall()
        return [self._row_to_turn(r) for r in rows]

    def get_turn_count(self) -> int:
        with self._connect() as con:
            row = con.execute("SELECT COUNT(*) AS n FROM turns").fetchone()
        return row["n"]

    # ----- modifications -----

    def insert_modification(self, mod: ModificationRecord) -> None:
        with self._lock, self._connect() as con:
            con.execute(
                "INSERT INTO modifications (id, timestamp, type, description, diff, reversible) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (mod.id, mod.timestamp, mod.type, mod.description, mod.diff, 1 if mod.reversible else 0),
            )

    def get_recent_modifications(self, count: int) -> list[ModificationRecord]:
        with self._connect() as con:
            rows = con.execute(
                "SELECT * FROM modifications ORDER BY timestamp DESC, seq DESC LIMIT ?", (count,)
            ).fetchall()
        return [
            ModificationRecord(
                id=r["id"],
                timestamp=r["timestamp"],
                type=r["type"],
                description=r["description"],
                diff=r["diff"],
                reversible=bool(r["reversible"]),
            )
            for r in reversed(rows)
        ]

    # ----- heartbeat entries -----

    def upsert_heartbeat_entry(self, entry: HeartbeatEntry) -> None:
        with self._lock, self._connect() as con:
            con.execute(
                "INSERT OR REPLACE INTO heartbeat_entries (name, schedule, task, enabled, updated_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (entry.name, entry.schedule, entry.task, 1 if entry.enabled else 0, now_iso()),
            )

    def get_heartbeat_entries(self) -> list[HeartbeatEntry]:
        with self._connect() as con:
            rows = con.execute("SELECT * FROM heartbeat_entries ORDER BY name").fetchall()
        return [
            HeartbeatEntry(
                name=r["name"], schedule=r["schedule"], task=r["task"], enabled=bool(r["enabled"])
            )
            for r in rows
        ]
