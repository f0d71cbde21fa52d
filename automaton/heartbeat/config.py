"""Heartbeat schedule file (``heartbeat.yml``).

Sample:

    entries:
      - name: health_check
        schedule: "*/5 * * * *"
        task: health_check
        enabled: true
      - name: credit_monitor
        schedule: "*/10 * * * *"
        task: credit_monitor
"""

from pathlib import Path

import yaml
from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from automaton.state.database import StateStore
from automaton.state.types import HeartbeatEntry, HeartbeatTask


class HeartbeatFile(BaseModel):
    entries: list[HeartbeatEntry] = Field(default_factory=list)


def default_entries() -> list[HeartbeatEntry]:
    return [
        HeartbeatEntry(name="health_check", schedule="*/5 * * * *", task=HeartbeatTask.HEALTH_CHECK.value),
        HeartbeatEntry(name="credit_monitor", schedule="*/10 * * * *", task=HeartbeatTask.CREDIT_MONITOR.value),
        HeartbeatEntry(name="status_ping", schedule="0 * * * *", task=HeartbeatTask.STATUS_PING.value),
    ]


def load_heartbeat_config(path: Path) -> list[HeartbeatEntry]:
    """Read heartbeat entries; missing or invalid files yield the defaults."""
    if not path.is_file():
        return default_entries()

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ValueError(f"YAML root must be a mapping, got {type(data).__name__}")
        return HeartbeatFile(**data).entries
    except (OSError, yaml.YAMLError, ValueError, ValidationError) as e:
        logger.warning(f"Invalid heartbeat config {path}, using defaults: {e}")
        return default_entries()


def save_heartbeat_config(path: Path, entries: list[HeartbeatEntry]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    content = yaml.safe_dump(
        {"entries": [e.model_dump() for e in entries]},
        sort_keys=False,
    )
    path.write_text(content, encoding="utf-8")
    path.chmod(0o600)


def write_default_heartbeat_config(path: Path) -> bool:
    """Create ``path`` with the default entries unless it already exists."""
    if path.exists():
        return False
    save_heartbeat_config(path, default_entries())
    return True


def sync_heartbeat_to_store(entries: list[HeartbeatEntry], store: StateStore) -> None:
    for entry in entries:
        store.upsert_heartbeat_entry(entry)
    logger.debug(f"Synced {len(entries)} heartbeat entries to the state store")
