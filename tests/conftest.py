"""Shared fixtures: isolated home, config, store and scripted fakes."""

from typing import Any

import pytest

from automaton.agent.tools import ToolContext
from automaton.config.schema import AgentConfig, Config, HeartbeatConfig
from automaton.identity import AutomatonIdentity
from automaton.providers.base import LLMProvider, LLMResponse
from automaton.state.database import StateStore
from automaton.survival.funding import FinancialSnapshot, StaticFundingSource


class FakeProvider(LLMProvider):
    """Replays scripted responses; an Exception in the script is raised."""

    def __init__(self, responses: list[Any] | None = None, supports_tools: bool = True):
        super().__init__("primary-model", "cheap-model")
        self.responses = list(responses or [])
        self.calls: list[dict[str, Any]] = []
        self._supports_tools = supports_tools

    @property
    def supports_tools(self) -> bool:
        return self._supports_tools

    async def chat(self, messages, tools=None, model=None) -> LLMResponse:
        self.calls.append({"messages": list(messages), "tools": tools, "model": model})
        if not self.responses:
            return LLMResponse(content="Nothing left to do.")
        nxt = self.responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt


@pytest.fixture(autouse=True)
def automaton_home(tmp_path, monkeypatch):
    """Keep every test away from the real ~/.automaton."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("AUTOMATON_HOME", str(home))
    return home


@pytest.fixture
def config(tmp_path, automaton_home) -> Config:
    return Config(
        name="test-bot",
        creator_address="creator-123",
        db_path=str(tmp_path / "state.db"),
        agent=AgentConfig(workspace=str(tmp_path / "workspace")),
        heartbeat=HeartbeatConfig(config_path=str(automaton_home / "heartbeat.yml")),
    )


@pytest.fixture
def store(config):
    s = StateStore(config.db_file)
    yield s
    s.close()


@pytest.fixture
def identity(config) -> AutomatonIdentity:
    return AutomatonIdentity.from_config(config)


@pytest.fixture
def rich_funding() -> StaticFundingSource:
    return StaticFundingSource(FinancialSnapshot(credits_cents=10_000))


@pytest.fixture
def ctx(config, store, identity, rich_funding) -> ToolContext:
    config.workspace_path.mkdir(parents=True, exist_ok=True)
    return ToolContext(identity=identity, config=config, store=store, funding=rich_funding)


@pytest.fixture
def make_provider():
    return FakeProvider
