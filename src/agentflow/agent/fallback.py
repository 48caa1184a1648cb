"""Deterministic chat model used when no external LLM is configured."""

from __future__ import annotations

import re
from typing import Any

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from agentflow.agent.parsing import message_text

_CITATION_LINE = re.compile(r"^\[(?P<cid>[^\]]+)\]\s+\((?P<label>[^)]*)\)\s+(?P<body>.+)$")


class OfflineChatModel:
    """Answers from the knowledge context in the system prompt, never calls tools.

    It exposes the small slice of the LangChain chat-model surface the core
    relies on (`bind_tools` and `invoke`), so the execution loop, the router
    and the dispatcher run unchanged in local and offline environments where
    `OPENAI_API_KEY` is not set. Routing prompts arrive without a system
    message and are answered with `NONE`, which drives the router down its
    deterministic fallback chain.
    """

    def __init__(self, max_citations: int = 3) -> None:
        self.max_citations = max_citations

    def bind_tools(self, tools: Any, **kwargs: Any) -> "OfflineChatModel":
        del tools, kwargs
        return self

    def invoke(self, messages: Any, **kwargs: Any) -> AIMessage:
        del kwargs
        system, prompt = _split_messages(messages)
        if system is None:
            return AIMessage(content="NONE")
        citations = _parse_citations(system)[: self.max_citations]

        lines = ["Offline mode: no language model is configured.", f"Task: {prompt}"]
        if citations:
            lines.append("Relevant company knowledge:")
            lines.extend(
                f"{idx}. {body} [{cid}]" for idx, (cid, body) in enumerate(citations, start=1)
            )
        else:
            lines.append("No matching company knowledge was found.")
        return AIMessage(content="\n".join(lines))


def _split_messages(messages: Any) -> tuple[str | None, str]:
    if isinstance(messages, str):
        return None, messages.strip()

    system: str | None = None
    prompt = ""
    for message in messages:
        if isinstance(message, SystemMessage):
            system = message_text(message)
        elif isinstance(message, HumanMessage):
            prompt = message_text(message)
        elif isinstance(message, BaseMessage) and not prompt:
            prompt = message_text(message)
    return system, prompt


def _parse_citations(system: str) -> list[tuple[str, str]]:
    citations: list[tuple[str, str]] = []
    for line in system.splitlines():
        match = _CITATION_LINE.match(line.strip())
        if match:
            citations.append((match.group("cid"), match.group("body").strip()))
    return citations
