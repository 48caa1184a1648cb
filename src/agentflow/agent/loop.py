"""Bounded multi-turn tool-calling loop over a LangChain chat model."""

from __future__ import annotations

import logging
from collections.abc import Generator, Iterator
from time import perf_counter
from typing import Any

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage, ToolMessage
from pydantic import BaseModel, Field

from agentflow.agent.parsing import message_text
from agentflow.agent.prompts import build_system_prompt
from agentflow.agent.registry import ToolContext, ToolRegistry
from agentflow.config import AgentConfig
from agentflow.errors import CorpusUnavailableError, ToolExecutionError
from agentflow.events import (
    ActiveEvent,
    CompleteEvent,
    ErrorEvent,
    ExecutionEvent,
    ResultEvent,
    ToolEvent,
)
from agentflow.obs.tracing import ExecutionStore
from agentflow.retrieval.retriever import KnowledgeRetriever
from agentflow.types import Agent, Chunk, PastExecution, StrategyPlan, ToolTrace

logger = logging.getLogger(__name__)


class ExecutionRequest(BaseModel):
    """Everything one agent run needs besides the shared collaborators."""

    task_text: str = Field(min_length=1)
    agent: Agent
    department: str | None = None
    past_feedback: list[PastExecution] | None = None
    retrieved_context: list[str] | None = None
    strategy_plan: StrategyPlan | None = None


class ExecutionLoop:
    """Runs one agent conversation and streams its lifecycle as events.

    Every run yields exactly one `ActiveEvent`, any number of `ToolEvent`s,
    exactly one `ResultEvent` or `ErrorEvent`, and finally exactly one
    `CompleteEvent`. Tool rounds are capped by `AgentConfig.max_turns`; when
    the cap is hit the loop stops calling tools and returns the most recent
    text it has, or the placeholder.
    """

    def __init__(
        self,
        *,
        llm: Any,
        tool_registry: ToolRegistry,
        retriever: KnowledgeRetriever | None = None,
        execution_store: ExecutionStore | None = None,
        config: AgentConfig | None = None,
    ) -> None:
        self.llm = llm
        self.tool_registry = tool_registry
        self.retriever = retriever
        self.execution_store = execution_store
        self.config = config or AgentConfig()

    def with_tools(self, tool_registry: ToolRegistry) -> "ExecutionLoop":
        """Same collaborators, different tool set (e.g. per-request custom tools)."""
        return ExecutionLoop(
            llm=self.llm,
            tool_registry=tool_registry,
            retriever=self.retriever,
            execution_store=self.execution_store,
            config=self.config,
        )

    def run(self, request: ExecutionRequest, depth: int = 0) -> Iterator[ExecutionEvent]:
        agent = request.agent
        yield ActiveEvent(agent=agent.name, depth=depth)

        traces: list[ToolTrace] = []
        state = {"turns": 0}
        start = perf_counter()
        try:
            output = yield from self._converse(request, depth, traces, state)
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.warning("Execution failed for agent %r: %s", agent.name, message)
            execution_id = self._record(request, depth, message, "error", state, traces, start)
            yield ErrorEvent(agent=agent.name, message=message, execution_id=execution_id)
        else:
            execution_id = self._record(request, depth, output, "ok", state, traces, start)
            yield ResultEvent(agent=agent.name, text=output, execution_id=execution_id)

        yield CompleteEvent(agent=agent.name)

    def run_to_text(self, request: ExecutionRequest, depth: int = 0) -> str:
        """Drain `run` and return the result text; an error event raises."""

        result = self.config.placeholder_output
        for event in self.run(request, depth=depth):
            if isinstance(event, ErrorEvent):
                raise ToolExecutionError(f"Agent {event.agent} failed: {event.message}")
            if isinstance(event, ResultEvent):
                result = event.text
        return result

    def system_prompt(self, request: ExecutionRequest) -> str:
        return build_system_prompt(
            request.agent.instructions,
            past_feedback=self._feedback(request),
            strategy_plan=request.strategy_plan,
            context=self._context(request),
            feedback_examples=self.config.feedback_examples,
        )

    def _converse(
        self,
        request: ExecutionRequest,
        depth: int,
        traces: list[ToolTrace],
        state: dict[str, int],
    ) -> Generator[ToolEvent, None, str]:
        agent = request.agent
        messages: list[BaseMessage] = [
            SystemMessage(content=self.system_prompt(request)),
            HumanMessage(content=request.task_text),
        ]
        tools = self.tool_registry.as_langchain_tools() if agent.tools_enabled else []
        model = self.llm.bind_tools(tools) if tools else self.llm
        context = ToolContext(agent_name=agent.name, depth=depth, loop=self)

        last_text = ""
        while True:
            response = model.invoke(messages)
            text = message_text(response)
            if text:
                last_text = text

            tool_calls = list(getattr(response, "tool_calls", None) or []) if tools else []
            if not tool_calls:
                break
            if state["turns"] >= self.config.max_turns:
                logger.warning(
                    "Agent %r reached max_turns=%d; stopping tool use",
                    agent.name,
                    self.config.max_turns,
                )
                break

            messages.append(response)
            for index, call in enumerate(tool_calls):
                content, is_error = self._dispatch(call, context, traces)
                yield ToolEvent(
                    agent=agent.name,
                    tool=str(call.get("name", "")),
                    turn=state["turns"] + 1,
                    is_error=is_error,
                )
                messages.append(
                    ToolMessage(
                        content=content,
                        tool_call_id=call.get("id") or f"call_{state['turns']}_{index}",
                        status="error" if is_error else "success",
                    )
                )
            state["turns"] += 1

        return last_text or self.config.placeholder_output

    def _dispatch(
        self, call: dict[str, Any], context: ToolContext, traces: list[ToolTrace]
    ) -> tuple[str, bool]:
        name = str(call.get("name", ""))
        payload = call.get("args") or {}
        start = perf_counter()
        try:
            output = self.tool_registry.execute(name, payload, context=context)
            is_error = False
        except Exception as exc:
            # Fed back to the model as an error-flagged tool result.
            output = f"Error executing {name}: {exc}"
            is_error = True
            logger.info("Tool %s failed for agent %r: %s", name, context.agent_name, exc)
        traces.append(
            ToolTrace(
                name=name,
                input_payload=payload,
                output_preview=output[:320],
                latency_ms=(perf_counter() - start) * 1000.0,
                is_error=is_error,
            )
        )
        return output, is_error

    def _feedback(self, request: ExecutionRequest) -> list[PastExecution]:
        if request.past_feedback is not None:
            return request.past_feedback
        if self.execution_store is None or self.config.feedback_examples == 0:
            return []
        return self.execution_store.feedback_for(
            request.agent.name, limit=self.config.feedback_examples
        )

    def _context(self, request: ExecutionRequest) -> list[Chunk]:
        if request.retrieved_context is not None:
            return [
                Chunk(
                    id=f"context_{idx}",
                    content=text,
                    section="Provided context",
                    department=None,
                    type="general",
                )
                for idx, text in enumerate(request.retrieved_context)
            ]
        if self.retriever is None or self.retriever.config.context_k == 0:
            return []
        try:
            return self.retriever.search(request.task_text, limit=self.retriever.config.context_k)
        except CorpusUnavailableError as exc:
            logger.warning("Knowledge context unavailable, continuing without it: %s", exc)
            return []

    def _record(
        self,
        request: ExecutionRequest,
        depth: int,
        output: str,
        status: str,
        state: dict[str, int],
        traces: list[ToolTrace],
        start: float,
    ) -> str | None:
        if self.execution_store is None:
            return None
        record = self.execution_store.create_record(
            agent_name=request.agent.name,
            department=request.department,
            task=request.task_text,
            output=output,
            status=status,
            depth=depth,
            turns=state["turns"],
            tool_traces=traces,
            latency_ms=(perf_counter() - start) * 1000.0,
        )
        return record.execution_id
