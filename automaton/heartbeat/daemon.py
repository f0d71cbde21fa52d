"""Heartbeat daemon: cron-scheduled background probes.

Runs independently of the agent loop and talks to it only through the
state store (last-run timestamps and the wake request key).
"""

import asyncio
from datetime import datetime, timezone

from croniter import croniter
from loguru import logger

from automaton.config.schema import Config
from automaton.errors import StateStoreError
from automaton.heartbeat.tasks import TASKS, HeartbeatContext
from automaton.state.database import StateStore
from automaton.state.types import HeartbeatEntry
from automaton.survival.funding import FundingSource
from automaton.utils.helpers import format_ts, parse_ts, utcnow

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def last_run_key(name: str) -> str:
    return f"heartbeat_last_{name}"


def is_due(entry: HeartbeatEntry, last_run: datetime | None, now: datetime) -> bool:
    """True if the schedule fired after ``last_run`` (at or before ``now``)."""
    prev = croniter(entry.schedule, now).get_prev(datetime)
    return prev > (last_run or _EPOCH)


class HeartbeatDaemon:
    """Fixed-interval ticker evaluating heartbeat entries from the store."""

    def __init__(
        self,
        store: StateStore,
        funding: FundingSource,
        config: Config,
        interval_s: float | None = None,
    ):
        self.store = store
        self.config = config
        self.interval_s = interval_s if interval_s is not None else config.heartbeat.interval_seconds
        self._ctx = HeartbeatContext(store=store, funding=funding, config=config)
        self._running = False
        self._timer_task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Fire one immediate tick, then arm the interval timer."""
        if self._running:
            return
        self._running = True
        await self.tick()
        if self._running:
            self._timer_task = asyncio.create_task(self._run())
        logger.info(f"Heartbeat started (every {self.interval_s:g}s)")

    def stop(self) -> None:
        """Cancel the timer. Safe to call repeatedly."""
        if not self._running and self._timer_task is None:
            return
        self._running = False
        if self._timer_task:
            self._timer_task.cancel()
            self._timer_task = None
        logger.info("Heartbeat stopped")

    async def _run(self) -> None:
        while self._running:
            await asyncio.sleep(self.interval_s)
            if not self._running:
                break
            try:
                await self.tick()
            except StateStoreError as e:
                logger.critical(f"Heartbeat halted, state store unavailable: {e}")
                self._running = False
                break

    async def tick(self, now: datetime | None = None) -> list[str]:
        """Run every due entry once. Returns the names that ran successfully.

        A failing entry is logged and keeps its old last-run time, so it is
        retried next tick. Only StateStoreError escapes.
        """
        now = now or utcnow()
        executed: list[str] = []
        for entry in self.store.get_heartbeat_entries():
            if not entry.enabled:
                continue
            if await self._run_entry(entry, now):
                executed.append(entry.name)
        return executed

    async def _run_entry(self, entry: HeartbeatEntry, now: datetime) -> bool:
        key = last_run_key(entry.name)
        try:
            raw = self.store.get_kv(key)
            if not is_due(entry, parse_ts(raw) if raw else None, now):
                return False

            task = TASKS.get(entry.task)
            if task is None:
                raise ValueError(f"unknown heartbeat task {entry.task!r}")

            logger.debug(f"Heartbeat: running {entry.name} ({entry.task})")
            await task(self._ctx)
            self.store.advance_kv(key, format_ts(now))
            return True
        except StateStoreError:
            raise
        except Exception as e:
            logger.error(f"Heartbeat entry '{entry.name}' failed: {e}")
            return False
