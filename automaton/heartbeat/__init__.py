"""Heartbeat: background scheduled probes that can wake the agent."""

from automaton.heartbeat.config import (
    default_entries,
    load_heartbeat_config,
    save_heartbeat_config,
    sync_heartbeat_to_store,
    write_default_heartbeat_config,
)
from automaton.heartbeat.daemon import HeartbeatDaemon, is_due, last_run_key

__all__ = [
    "HeartbeatDaemon",
    "default_entries",
    "is_due",
    "last_run_key",
    "load_heartbeat_config",
    "save_heartbeat_config",
    "sync_heartbeat_to_store",
    "write_default_heartbeat_config",
]
