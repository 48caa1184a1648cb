"""Pre-execution workflow analysis that produces a `StrategyPlan`."""

from __future__ import annotations

import logging
from typing import Any

from langchain_core.messages import HumanMessage

from agentflow.agent.parsing import message_text, parse_workflow
from agentflow.agent.prompts import workflow_analysis_prompt
from agentflow.types import StrategyPlan

logger = logging.getLogger(__name__)


def analyze_workflow(
    llm: Any,
    task: str,
    *,
    agent_name: str,
    department: str | None = None,
) -> StrategyPlan | None:
    """Ask the model which workflow pattern fits `task`.

    Returns None when the model fails or its answer cannot be recovered, so
    callers simply run without strategy guidance.
    """

    prompt = workflow_analysis_prompt(task, agent_name=agent_name, department=department)
    try:
        reply = llm.invoke([HumanMessage(content=prompt)])
    except Exception as exc:
        logger.warning("Workflow analysis failed for %r: %s", agent_name, exc)
        return None

    analysis = parse_workflow(message_text(reply))
    if analysis is None:
        logger.info("No workflow analysis recovered for %r", agent_name)
        return None
    return StrategyPlan(**analysis)
