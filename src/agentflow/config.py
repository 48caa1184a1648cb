"""Configuration models for the agentflow core."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CorpusConfig(BaseModel):
    """Configures chunking thresholds and corpus retention caps."""

    min_chunk_chars: int = Field(default=20, ge=0)
    past_work_cap: int = Field(default=10, ge=1)
    notes_cap: int = Field(default=20, ge=1)
    overview_list_cap: int = Field(default=20, ge=1)
    max_entry_chars: int = Field(default=400, ge=40)


class RetrievalConfig(BaseModel):
    """Configures lexical search defaults."""

    limit: int = Field(default=5, ge=1)
    threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    context_k: int = Field(default=3, ge=0)


class AgentConfig(BaseModel):
    """Configures the execution loop bounds."""

    max_turns: int = Field(default=10, ge=1)
    max_sub_agent_depth: int = Field(default=2, ge=0)
    feedback_examples: int = Field(default=3, ge=0)
    placeholder_output: str = "No response"


class AppSettings(BaseSettings):
    """Environment-driven settings for the API process."""

    model_config = SettingsConfigDict(
        env_prefix="AGENTFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    corpus_path: Path = Field(default=Path("data/company.md"))
    openai_model: str = Field(default="gpt-4o-mini")
    log_level: str = Field(default="INFO")
    custom_tool_timeout_seconds: float = Field(default=15.0, gt=0.0)
