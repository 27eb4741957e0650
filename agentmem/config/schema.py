"""Configuration schema using Pydantic."""

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from agentmem.memory.daily import DEFAULT_DAILY_SECTIONS
from agentmem.memory.facts import DEFAULT_SECTIONS


class CompactionConfig(BaseModel):
    """Token budgets for transcript compaction."""
    context_window: int = 100_000
    reserve_tokens: int = 4_000  # Reserved for the model's response
    soft_threshold_tokens: int = 10_000  # Headroom for the pre-compaction flush
    keep_recent_tokens: int = 20_000  # Kept verbatim after compaction


class SummarizerConfig(BaseModel):
    """LLM used to summarize compacted conversation."""
    model: str = "anthropic/claude-sonnet-4-5"
    api_key: str = ""
    max_tokens: int = 2048
    temperature: float = 0.3


class Config(BaseSettings):
    """Root configuration for agentmem."""
    model_config = SettingsConfigDict(env_prefix="AGENTMEM_", env_nested_delimiter="__")

    storage_path: str = "~/.agentmem"
    agent_id: str = "default"
    sections: list[str] = Field(default_factory=lambda: list(DEFAULT_SECTIONS))
    daily_sections: list[str] = Field(default_factory=lambda: list(DEFAULT_DAILY_SECTIONS))
    compaction: CompactionConfig = Field(default_factory=CompactionConfig)
    summarizer: SummarizerConfig = Field(default_factory=SummarizerConfig)

    @property
    def storage_dir(self) -> Path:
        """Get expanded storage root."""
        return Path(self.storage_path).expanduser()

    @property
    def memory_file(self) -> Path:
        return self.storage_dir / "MEMORY.md"

    @property
    def daily_dir(self) -> Path:
        return self.storage_dir / "memory"
