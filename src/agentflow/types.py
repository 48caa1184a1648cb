"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, Field

ChunkType = Literal["goal", "problem", "learning", "general"]
TaskPriority = Literal["low", "medium", "high", "critical"]


@dataclass(frozen=True, slots=True)
class Chunk:
    """A metadata-tagged segment of the knowledge corpus."""

    id: str
    content: str
    section: str
    department: str | None
    type: ChunkType


@dataclass(slots=True)
class ScoredChunk:
    """A retrieval result with its cosine similarity."""

    chunk: Chunk
    score: float
    rank: int = 0


@dataclass(slots=True)
class ToolTrace:
    """Trace record for an executed tool call."""

    name: str
    input_payload: dict[str, Any]
    output_preview: str
    latency_ms: float
    is_error: bool = False


class Agent(BaseModel):
    """A named instruction set bound to the language model backend."""

    name: str = Field(min_length=1)
    instructions: str = ""
    tools_enabled: bool = False


class Department(BaseModel):
    """Roster entry supplied by callers; used as a routing target."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: str = ""
    agent: Agent | None = None


class ProposedTask(BaseModel):
    """A task routed from a request or proposed for a department."""

    task_text: str = Field(min_length=1)
    target_department: str
    reasoning: str = ""
    priority: TaskPriority | None = None


class Feedback(BaseModel):
    """Reviewer feedback attached to a past execution."""

    rating: int = Field(ge=1, le=5)
    comment: str | None = None


class PastExecution(BaseModel):
    """A previous task and the feedback it received."""

    task_text: str
    feedback: Feedback | None = None


class StrategyPlan(BaseModel):
    """Workflow-strategy guidance injected into the system prompt."""

    workflow: str
    reasoning: str = ""
    steps: list[str] = Field(default_factory=list)
