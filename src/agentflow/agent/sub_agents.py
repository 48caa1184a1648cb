"""The `create_sub_agent` tool: delegate a focused task to an ephemeral agent."""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from agentflow.agent.loop import ExecutionRequest
from agentflow.agent.registry import ToolContext, ToolRegistry, ToolSpec
from agentflow.errors import SubAgentDepthError, ToolExecutionError
from agentflow.types import Agent

logger = logging.getLogger(__name__)


class SubAgentInput(BaseModel):
    role: str = Field(min_length=1, description="Specialist role, e.g. 'Market researcher'.")
    task: str = Field(min_length=1, description="Self-contained task for the sub-agent.")
    tools_enabled: bool = False


def sub_agent_instructions(role: str) -> str:
    return (
        f"You are a {role}. You were created to complete one focused task for another "
        "agent. Work only on that task and answer with the finished result."
    )


def _create_sub_agent(input_data: SubAgentInput, context: ToolContext) -> str:
    if context.loop is None:
        raise ToolExecutionError("create_sub_agent is only available inside an execution loop")

    depth = context.depth + 1
    max_depth = context.loop.config.max_sub_agent_depth
    if depth > max_depth:
        raise SubAgentDepthError(depth, max_depth)

    agent = Agent(
        name=f"{context.agent_name} / {input_data.role}",
        instructions=sub_agent_instructions(input_data.role),
        tools_enabled=input_data.tools_enabled,
    )
    logger.info("Spawning sub-agent %r at depth %d", agent.name, depth)
    request = ExecutionRequest(task_text=input_data.task, agent=agent)
    return context.loop.run_to_text(request, depth=depth)


def register_sub_agent_tool(registry: ToolRegistry) -> None:
    registry.register(
        ToolSpec(
            name="create_sub_agent",
            description=(
                "Create a temporary specialist agent for a focused sub-task and return "
                "its final answer."
            ),
            args_schema=SubAgentInput,
            handler=_create_sub_agent,
            tags=["delegation"],
            needs_context=True,
        )
    )
