"""Process driver: alternates agent cycles with sleep and dead waits."""

import asyncio
import signal

from loguru import logger

from automaton.agent.loop import AgentLoop
from automaton.agent.tools import ToolRegistry
from automaton.config.schema import Config
from automaton.errors import InferenceCallError, StateStoreError
from automaton.heartbeat import HeartbeatDaemon, load_heartbeat_config, sync_heartbeat_to_store
from automaton.identity import AutomatonIdentity
from automaton.providers.base import LLMProvider
from automaton.providers.litellm_provider import create_provider
from automaton.state.database import StateStore
from automaton.state.types import AgentState
from automaton.survival.funding import FundingSource, create_funding_source
from automaton.utils.helpers import parse_ts, utcnow


class AutomatonRuntime:
    """
    Owns the store, the agent loop and the heartbeat for one process.

    ``run_forever`` runs until ``request_stop`` (or SIGINT/SIGTERM). The
    round in flight is allowed to finish; the last observable action is
    setting the agent state to ``sleeping``.
    """

    def __init__(
        self,
        config: Config,
        store: StateStore | None = None,
        provider: LLMProvider | None = None,
        funding: FundingSource | None = None,
        tools: ToolRegistry | None = None,
    ):
        self.config = config
        self.store = store or StateStore(config.db_file)
        self.identity = AutomatonIdentity.from_config(config)
        self.provider = provider or create_provider(config)
        self.funding = funding or create_funding_source(config)
        self.agent = AgentLoop(
            config=config,
            identity=self.identity,
            store=self.store,
            provider=self.provider,
            funding=self.funding,
            tools=tools,
        )
        self.heartbeat = HeartbeatDaemon(self.store, self.funding, config)
        self._stop_event = asyncio.Event()
        self._pending_wake: str | None = None
        self._shut_down = False

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    async def start(self) -> None:
        """Persist identity, load heartbeat entries and start the daemon."""
        self.identity.persist(self.store)
        entries = load_heartbeat_config(self.config.heartbeat_config_file)
        sync_heartbeat_to_store(entries, self.store)
        if self.config.heartbeat.enabled:
            await self.heartbeat.start()
        logger.info(f"Automaton '{self.identity.name}' started")

    async def run_forever(self) -> None:
        await self.start()
        self._install_signal_handlers()
        try:
            while not self.stopping:
                await self.run_once()
        finally:
            self.shutdown()

    async def run_once(self) -> AgentState | None:
        """Run one cycle, then wait according to the state it left.

        Returns the resulting state, or None if the cycle failed.
        """
        reason, self._pending_wake = self._pending_wake, None
        try:
            state = await self.agent.run_cycle(
                wake_reason=reason,
                input_source="heartbeat" if reason else "self",
            )
        except StateStoreError:
            raise
        except InferenceCallError as e:
            logger.error(f"Cycle aborted: {e}")
            await self._wait(self.config.runtime.error_backoff_seconds)
            return None
        except Exception as e:
            logger.exception(f"Cycle failed unexpectedly: {e}")
            await self._wait(self.config.runtime.error_backoff_seconds)
            return None

        if state == AgentState.DEAD:
            logger.warning("Automaton is dead. Waiting for funding.")
            await self._wait(self.config.runtime.dead_wait_seconds)
        elif state == AgentState.SLEEPING:
            await self.sleep_until_due()
        return state

    async def sleep_until_due(self) -> str | None:
        """Wait until ``sleep_until``, waking early on a wake request.

        Returns the wake reason if the sleep was cut short by one.
        """
        rt = self.config.runtime
        sleep_s = self._seconds_until_wake()
        interval = min(sleep_s, rt.wake_poll_seconds)
        logger.info(f"Sleeping for {sleep_s:.0f}s")

        slept = 0.0
        while slept < sleep_s:
            step = min(interval, sleep_s - slept)
            if await self._wait(step):
                return None
            slept += step
            reason = self.store.get_wake_request()
            if reason:
                logger.info(f"Woken by heartbeat: {reason}")
                self.store.clear_wake_request()
                self.store.clear_sleep_until()
                self._pending_wake = reason
                return reason

        self.store.clear_sleep_until()
        return None

    def _seconds_until_wake(self) -> float:
        rt = self.config.runtime
        raw = self.store.get_sleep_until()
        remaining = float(self.config.agent.default_sleep_seconds)
        if raw:
            try:
                remaining = (parse_ts(raw) - utcnow()).total_seconds()
            except ValueError:
                logger.warning(f"Unreadable sleep_until {raw!r}; using default")
        return max(remaining, rt.min_sleep_seconds)

    async def _wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; returns True if a stop was requested."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    def request_stop(self) -> None:
        if self.stopping:
            return
        logger.info("Shutting down after the current round...")
        self._stop_event.set()
        self.agent.request_stop()

    def shutdown(self) -> None:
        """Stop the heartbeat, leave the agent sleeping and close the store."""
        if self._shut_down:
            return
        self._shut_down = True
        self.heartbeat.stop()
        try:
            self.store.set_agent_state(AgentState.SLEEPING)
        except StateStoreError as e:
            logger.error(f"Could not record final state: {e}")
        self.store.close()
        logger.info("Automaton stopped")

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_stop)
            except (NotImplementedError, RuntimeError):
                logger.debug(f"Signal handler for {sig.name} unavailable on this platform")
