"""Utility functions for automaton."""

from automaton.utils.helpers import ensure_dir, new_id, now_iso, parse_ts

__all__ = ["ensure_dir", "new_id", "now_iso", "parse_ts"]
