"""Small shared helpers: paths, timestamps, ids."""

import os
import secrets
import threading
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path

_ID_RANDOM_BITS = 48
_id_lock = threading.Lock()
_last_id_ms = -1
_last_id_seq = 0


def ensure_dir(path: Path) -> Path:
    """Create a directory (and parents) if missing and return it."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_path() -> Path:
    """Automaton home (``AUTOMATON_HOME`` or ``~/.automaton``). Not created."""
    home = os.environ.get("AUTOMATON_HOME")
    return Path(home).expanduser() if home else Path.home() / ".automaton"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_ts(dt: datetime) -> str:
    """Fixed-width UTC ISO-8601 string; lexical order equals time order."""
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds")


def now_iso() -> str:
    return format_ts(utcnow())


def iso_in(seconds: float) -> str:
    """Timestamp ``seconds`` from now."""
    return format_ts(utcnow() + timedelta(seconds=seconds))


def parse_ts(value: str) -> datetime:
    """Parse a stored timestamp; naive values are treated as UTC."""
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def new_id() -> str:
    """Time-prefixed id: 13-digit epoch ms + 12 hex chars.

    Within one process ids sort in creation order: the hex part starts
    random for each new millisecond and is incremented for ids created in
    the same (or an earlier, after a clock step back) millisecond.
    """
    global _last_id_ms, _last_id_seq
    with _id_lock:
        ms = int(time.time() * 1000)
        if ms > _last_id_ms:
            _last_id_ms = ms
            # Leave headroom so increments within one millisecond don't overflow
            _last_id_seq = secrets.randbits(_ID_RANDOM_BITS - 1)
        else:
            _last_id_seq += 1
            if _last_id_seq >= 1 << _ID_RANDOM_BITS:
                _last_id_ms += 1
                _last_id_seq = 0
        return f"{_last_id_ms:013d}{_last_id_seq:012x}"


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + f"\n... (truncated, {len(text) - limit} more chars)"
