"""Error taxonomy shared across the core."""

from __future__ import annotations


class AgentflowError(Exception):
    """Base class for errors raised by the agentflow core."""


class CorpusUnavailableError(AgentflowError):
    """The knowledge corpus could not be read or written."""


class ToolExecutionError(AgentflowError):
    """A tool handler failed; the message is fed back to the model."""


class SubAgentDepthError(ToolExecutionError):
    """A sub-agent was requested beyond the configured nesting depth."""

    def __init__(self, depth: int, max_depth: int) -> None:
        super().__init__(
            f"Sub-agent depth {depth} exceeds the maximum of {max_depth}; "
            "complete this task directly instead of delegating."
        )
        self.depth = depth
        self.max_depth = max_depth


class LLMOutputParseError(AgentflowError):
    """Structured model output could not be recovered."""
