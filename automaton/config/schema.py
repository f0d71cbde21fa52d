"""Configuration schema using Pydantic."""

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from automaton.utils.helpers import get_data_path


def resolve_path(p: str) -> Path:
    """Expand ``~`` and return an absolute path."""
    return Path(p).expanduser()


def _in_home(name: str) -> str:
    """Default location under the automaton home, resolved when the config is built."""
    return str(get_data_path() / name)


class InferenceConfig(BaseModel):
    """Reasoning service configuration."""
    model: str = "anthropic/claude-opus-4-5"
    low_compute_model: str = "openai/gpt-4o-mini"  # Used by every degraded survival tier
    api_key: str = ""
    api_base: str | None = None
    max_tokens_per_turn: int = Field(default=4096, ge=1)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)


class AgentConfig(BaseModel):
    """Agent loop configuration."""
    workspace: str = Field(default_factory=lambda: _in_home("workspace"))
    max_rounds: int = Field(default=10, ge=1, le=100)
    default_sleep_seconds: int = Field(default=60, ge=1)


class ExecToolConfig(BaseModel):
    """Shell tool configuration."""
    timeout: int = Field(default=30, ge=1)  # seconds
    install_timeout: int = Field(default=120, ge=1)
    file_timeout: float = Field(default=10.0, gt=0)  # per file-tool call
    max_output_chars: int = 10000


class FundingConfig(BaseModel):
    """Where the financial snapshot comes from."""
    credits_api_url: str = ""  # e.g. https://api.example.com/v1/credits/balance
    credits_api_key: str = ""
    request_timeout: float = 10.0
    static_credits_cents: int | None = None  # Offline mode: fixed balance, no HTTP


class HeartbeatConfig(BaseModel):
    """Heartbeat daemon configuration."""
    enabled: bool = True
    interval_seconds: float = Field(default=30.0, gt=0)
    config_path: str = Field(default_factory=lambda: _in_home("heartbeat.yml"))
    health_check_timeout: float = 5.0


class RuntimeConfig(BaseModel):
    """Top-level driver timings (seconds)."""
    dead_wait_seconds: float = 300.0
    error_backoff_seconds: float = 30.0
    min_sleep_seconds: float = 10.0
    wake_poll_seconds: float = 30.0


class Config(BaseSettings):
    """Root configuration for automaton."""
    model_config = SettingsConfigDict(
        env_prefix="AUTOMATON_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    name: str = "automaton"
    genesis_prompt: str = ""
    creator_address: str = ""
    creator_message: str | None = None
    address: str = ""
    db_path: str = Field(default_factory=lambda: _in_home("state.db"))
    log_level: str = "INFO"

    inference: InferenceConfig = Field(default_factory=InferenceConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    exec: ExecToolConfig = Field(default_factory=ExecToolConfig)
    funding: FundingConfig = Field(default_factory=FundingConfig)
    heartbeat: HeartbeatConfig = Field(default_factory=HeartbeatConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)

    @property
    def workspace_path(self) -> Path:
        """Get expanded workspace path."""
        return resolve_path(self.agent.workspace)

    @property
    def db_file(self) -> Path:
        return resolve_path(self.db_path)

    @property
    def heartbeat_config_file(self) -> Path:
        return resolve_path(self.heartbeat.config_path)
