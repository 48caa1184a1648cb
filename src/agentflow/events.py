"""Typed event stream emitted by the execution loop and the dispatcher."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from agentflow.types import ProposedTask


class ActiveEvent(BaseModel):
    type: Literal["active"] = "active"
    agent: str
    depth: int = 0


class ToolEvent(BaseModel):
    """Progress signal for one tool call; not part of the external contract."""

    type: Literal["tool"] = "tool"
    agent: str
    tool: str
    turn: int
    is_error: bool = False


class ResultEvent(BaseModel):
    type: Literal["result"] = "result"
    agent: str
    text: str
    execution_id: str | None = None


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    agent: str
    message: str
    execution_id: str | None = None


class CompleteEvent(BaseModel):
    type: Literal["complete"] = "complete"
    agent: str


ExecutionEvent = Annotated[
    Union[ActiveEvent, ToolEvent, ResultEvent, ErrorEvent, CompleteEvent],
    Field(discriminator="type"),
]


class ClassifiedEvent(BaseModel):
    type: Literal["classified"] = "classified"
    intent: str
    rule: str
    industry: str | None = None


class RoutedEvent(BaseModel):
    type: Literal["routed"] = "routed"
    tasks: list[ProposedTask]


class TaskStartedEvent(BaseModel):
    type: Literal["task_started"] = "task_started"
    index: int
    task: ProposedTask


class FinishedEvent(BaseModel):
    type: Literal["finished"] = "finished"
    succeeded: int = 0
    failed: int = 0


DispatchEvent = Annotated[
    Union[
        ClassifiedEvent,
        RoutedEvent,
        TaskStartedEvent,
        ActiveEvent,
        ToolEvent,
        ResultEvent,
        ErrorEvent,
        CompleteEvent,
        FinishedEvent,
    ],
    Field(discriminator="type"),
]
