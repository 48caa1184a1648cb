"""Prompt assembly for execution and routing."""

from __future__ import annotations

from collections.abc import Sequence

from agentflow.types import Chunk, Department, PastExecution, StrategyPlan

_FEEDBACK_HEADER = "PAST CEO FEEDBACK (Learn from this to improve your work):"
_KNOWLEDGE_HEADER = "RELEVANT COMPANY KNOWLEDGE:"

_DECOMPOSE_PROMPT = """
You are an intelligent task router for a company. Analyze the user's message and break it down into individual tasks that should be sent to different departments.

Company Departments:
{departments}

User Message:
"{message}"

Respond in JSON format:
{{
  "tasks": [
    {{
      "task": "the specific task description to send to the department",
      "department": "exact department name from the list above",
      "reasoning": "brief explanation of why this department"
    }}
  ]
}}

Rules:
- If the message is a single task, return one item.
- If the message contains tasks for different departments, return one item per task.
- Each "task" must be a complete, standalone description without parts meant for other departments.
- Use the EXACT department name from the list above.

Example:
User: "A customer is angry their order is late. We need a social media campaign for Gen Z."
Response:
{{"tasks": [
  {{"task": "A customer is angry their order is late. Please handle this customer complaint and resolve the issue.", "department": "Customer Experience", "reasoning": "Customer service handles complaints and order issues"}},
  {{"task": "We need to create a social media campaign targeting Gen Z.", "department": "Marketing", "reasoning": "Marketing handles social media campaigns"}}
]}}
""".strip()

_SELECT_PROMPT = """
A task has come in that needs to be assigned to the appropriate department. Here are our departments:

{departments}

Task: "{task}"

Respond with ONLY the department ID (the part in parentheses after "ID:") of the best department to handle this task. Do not include any explanation.

If no department is suitable, respond with "NONE".
""".strip()

_PROPOSE_PROMPT = """
You are the {agent_name} for the company.

COMPANY CONTEXT:
{overview}

YOUR DEPARTMENT ({department}):
{description}

CURRENT SITUATION & GOALS:
{section}

Based on the company's goals, current problems, and your department's responsibilities, propose exactly ONE specific, actionable task that would have the most impact.

Respond with a JSON array containing exactly ONE task in this format:
[
  {{
    "action": "Brief task description (what needs to be done)",
    "reasoning": "Why this task is important and how it helps the company",
    "priority": "low" | "medium" | "high" | "critical"
  }}
]

Respond ONLY with the JSON array, no other text.
""".strip()

WORKFLOW_PATTERNS = (
    "prompt_chaining",
    "router",
    "panel_of_judges",
    "delegation",
    "parallelization",
    "debate",
    "specialization",
    "evaluator_optimizer",
)

_WORKFLOW_PROMPT = """
You are an AI workflow optimization expert. Analyze this task and determine the optimal execution workflow pattern.

TASK: "{task}"
AGENT: {agent_name} ({department} department)

AVAILABLE WORKFLOW PATTERNS: {patterns}

Respond in JSON format:
{{
  "workflow": "one of the patterns above",
  "reasoning": "Brief explanation of why this workflow is optimal for this task",
  "execution_plan": {{
    "steps": ["step 1 description", "step 2 description"]
  }}
}}

Choose the workflow that will produce the best results, considering task complexity, quality versus speed, and whether subtasks are predictable.
""".strip()

_QUERY_PROMPT = """
You are the CEO's assistant. Answer the question using the company knowledge below. If the knowledge does not cover it, say so briefly.
""".strip()


def build_system_prompt(
    instructions: str,
    *,
    past_feedback: Sequence[PastExecution] = (),
    strategy_plan: StrategyPlan | None = None,
    context: Sequence[Chunk] = (),
    feedback_examples: int = 3,
) -> str:
    """Concatenate agent instructions with the optional context blocks.

    Order: instructions, reviewer feedback, strategy guidance, knowledge.
    Empty blocks are omitted entirely.
    """

    parts = [instructions.strip()]
    feedback = format_feedback(past_feedback, limit=feedback_examples)
    if feedback:
        parts.append(feedback)
    if strategy_plan is not None:
        parts.append(format_strategy(strategy_plan))
    knowledge = format_knowledge(context)
    if knowledge:
        parts.append(knowledge)
    return "\n\n".join(part for part in parts if part)


def format_feedback(past: Sequence[PastExecution], *, limit: int = 3) -> str:
    rated = [item for item in past if item.feedback is not None][:limit]
    if not rated:
        return ""
    lines = [_FEEDBACK_HEADER]
    for idx, item in enumerate(rated, start=1):
        lines.append(f'{idx}. Previous task: "{item.task_text}"')
        lines.append(f"   CEO Rating: {item.feedback.rating}/5 stars")
        if item.feedback.comment:
            lines.append(f'   CEO Comment: "{item.feedback.comment}"')
    lines.append("Use this feedback to improve your current work.")
    return "\n".join(lines)


def format_strategy(plan: StrategyPlan) -> str:
    lines = [f"WORKFLOW STRATEGY: {plan.workflow}"]
    if plan.reasoning:
        lines.append(f"Reasoning: {plan.reasoning}")
    lines.extend(f"{idx}. {step}" for idx, step in enumerate(plan.steps, start=1))
    return "\n".join(lines)


def format_knowledge(chunks: Sequence[Chunk]) -> str:
    if not chunks:
        return ""
    lines = [_KNOWLEDGE_HEADER]
    for chunk in chunks:
        label = chunk.section if chunk.department is None else f"{chunk.department} / {chunk.section}"
        content = " ".join(chunk.content.split())
        lines.append(f"[{chunk.id}] ({label}, {chunk.type}) {content}")
    return "\n".join(lines)


def decompose_prompt(message: str, departments: Sequence[Department]) -> str:
    listing = "\n".join(f"- {dept.name}: {dept.description}" for dept in departments)
    return _DECOMPOSE_PROMPT.format(departments=listing, message=message)


def select_department_prompt(task: str, departments: Sequence[Department]) -> str:
    listing = "\n".join(
        f"- {dept.name} (ID: {dept.id}): {dept.description}" for dept in departments
    )
    return _SELECT_PROMPT.format(departments=listing, task=task)


def query_system_prompt(context: Sequence[Chunk]) -> str:
    knowledge = format_knowledge(context) or "No company knowledge is available yet."
    return f"{_QUERY_PROMPT}\n\n{knowledge}"


def propose_task_prompt(department: Department, *, overview: str, section: str) -> str:
    agent_name = department.agent.name if department.agent else f"{department.name} Agent"
    return _PROPOSE_PROMPT.format(
        agent_name=agent_name,
        overview=overview or "No company overview available.",
        department=department.name,
        description=department.description or "No description.",
        section=section or "No specific information available.",
    )


def workflow_analysis_prompt(task: str, *, agent_name: str, department: str | None) -> str:
    return _WORKFLOW_PROMPT.format(
        task=task,
        agent_name=agent_name,
        department=department or "General",
        patterns=", ".join(WORKFLOW_PATTERNS),
    )
