"""Tool registry built on Pydantic v2 models."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from time import perf_counter
from typing import TYPE_CHECKING, Any

from langchain_core.tools import StructuredTool
from pydantic import BaseModel, ConfigDict, Field

from agentflow.types import ToolTrace

if TYPE_CHECKING:
    from agentflow.agent.loop import ExecutionLoop


@dataclass(frozen=True, slots=True)
class ToolContext:
    """Per-call context threaded from the execution loop into handlers."""

    agent_name: str
    depth: int = 0
    loop: "ExecutionLoop | None" = None


class ToolSpec(BaseModel):
    """Declarative tool specification for registration and validation."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(pattern=r"^[a-zA-Z0-9_-]{1,64}$")
    description: str
    args_schema: type[BaseModel]
    handler: Callable[..., str]
    tags: list[str] = Field(default_factory=list)
    needs_context: bool = False

    def invoke(self, payload: dict[str, Any], context: ToolContext | None = None) -> str:
        data = self.args_schema.model_validate(payload)
        if self.needs_context:
            return self.handler(data, context or ToolContext(agent_name="unknown"))
        return self.handler(data)

    def declaration(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.args_schema.model_json_schema(),
        }


class ToolRegistry:
    """Stores tool specs and exports LangChain-compatible tool objects."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolSpec] = {}
        self._observer: Callable[[ToolTrace], None] | None = None

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._tools:
            raise ValueError(f"Tool already registered: {spec.name}")
        self._tools[spec.name] = spec

    def copy(self) -> "ToolRegistry":
        clone = ToolRegistry()
        clone._tools = dict(self._tools)
        clone._observer = self._observer
        return clone

    def set_observer(self, observer: Callable[[ToolTrace], None] | None) -> None:
        """Callback invoked after every execution, failed ones included."""
        self._observer = observer

    def execute(
        self,
        name: str,
        payload: dict[str, Any],
        *,
        context: ToolContext | None = None,
    ) -> str:
        spec = self._tools.get(name)
        if spec is None:
            raise KeyError(f"Unknown tool: {name}")
        return self._execute_spec(spec, payload, context)

    def as_langchain_tools(self) -> list[StructuredTool]:
        tools: list[StructuredTool] = []
        for spec in self._tools.values():
            tools.append(
                StructuredTool.from_function(
                    name=spec.name,
                    description=spec.description,
                    args_schema=spec.args_schema,
                    func=self._build_function(spec),
                )
            )
        return tools

    def declarations(self) -> list[dict[str, Any]]:
        return [spec.declaration() for spec in self._tools.values()]

    def specs(self) -> list[ToolSpec]:
        return list(self._tools.values())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def _build_function(self, spec: ToolSpec) -> Callable[..., str]:
        def _callable(**kwargs: Any) -> str:
            return self._execute_spec(spec, kwargs, None)

        return _callable

    def _execute_spec(
        self, spec: ToolSpec, payload: dict[str, Any], context: ToolContext | None
    ) -> str:
        start = perf_counter()
        try:
            output = spec.invoke(payload, context)
            if not isinstance(output, str):
                raise TypeError(f"Tool {spec.name} returned {type(output).__name__}, expected str")
        except Exception as exc:
            self._notify(spec, payload, f"{type(exc).__name__}: {exc}", start, is_error=True)
            raise
        self._notify(spec, payload, output, start)
        return output

    def _notify(
        self,
        spec: ToolSpec,
        payload: dict[str, Any],
        output: str,
        start: float,
        *,
        is_error: bool = False,
    ) -> None:
        if self._observer is None:
            return
        self._observer(
            ToolTrace(
                name=spec.name,
                input_payload=payload,
                output_preview=output[:320],
                latency_ms=(perf_counter() - start) * 1000.0,
                is_error=is_error,
            )
        )
