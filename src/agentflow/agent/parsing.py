"""Helpers for reading text and structured data out of model replies."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from agentflow.errors import LLMOutputParseError

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_TASK_FIELDS = re.compile(
    r'"task"\s*:\s*"(?P<task>(?:[^"\\]|\\.)*)"\s*,\s*'
    r'"department"\s*:\s*"(?P<department>(?:[^"\\]|\\.)*)"'
    r'(?:\s*,\s*"reasoning"\s*:\s*"(?P<reasoning>(?:[^"\\]|\\.)*)")?'
)
_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")
_STRING = r'"((?:[^"\\]|\\.)*)"'
_PROPOSAL_FIELDS = re.compile(
    rf'"action"\s*:\s*{_STRING}'
    rf'(?:\s*,\s*"reasoning"\s*:\s*{_STRING})?'
    rf'(?:\s*,\s*"priority"\s*:\s*{_STRING})?'
)
_WORKFLOW_FIELD = re.compile(rf'"workflow"\s*:\s*{_STRING}')
_REASONING_FIELD = re.compile(rf'"reasoning"\s*:\s*{_STRING}')
_STEPS_FIELD = re.compile(r'"steps"\s*:\s*\[(?P<body>[^\]]*)\]')
_PRIORITIES = ("low", "medium", "high", "critical")


def message_text(message: Any) -> str:
    """Return the plain text of a chat message; content may be a block list."""

    content = getattr(message, "content", message)
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict):
                if item.get("type", "text") == "text" and "text" in item:
                    parts.append(str(item["text"]))
            else:
                parts.append(str(item))
        return " ".join(parts).strip()
    return str(content or "").strip()


def extract_json(text: str) -> dict[str, Any]:
    match = _JSON_OBJECT.search(text)
    if match is None:
        raise LLMOutputParseError("No JSON object found in model output")
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise LLMOutputParseError(f"Malformed JSON in model output: {exc}") from exc
    if not isinstance(parsed, dict):
        raise LLMOutputParseError("Model output JSON is not an object")
    return parsed


def parse_task_list(text: str) -> list[dict[str, str]]:
    """Parse `{"tasks": [{task, department, reasoning}]}`.

    Malformed JSON falls back to regex field recovery; the result may be empty
    but this never raises.
    """

    try:
        data = extract_json(text)
    except LLMOutputParseError as exc:
        logger.info("Recovering task list by field extraction: %s", exc)
        return _recover_tasks(text)

    tasks = data.get("tasks")
    if not isinstance(tasks, list):
        return _recover_tasks(text)

    parsed: list[dict[str, str]] = []
    for item in tasks:
        if not isinstance(item, dict):
            continue
        task = str(item.get("task") or "").strip()
        department = str(item.get("department") or "").strip()
        if task:
            parsed.append(
                {
                    "task": task,
                    "department": department,
                    "reasoning": str(item.get("reasoning") or "").strip(),
                }
            )
    return parsed


def _recover_tasks(text: str) -> list[dict[str, str]]:
    recovered = []
    for match in _TASK_FIELDS.finditer(text):
        recovered.append(
            {
                "task": _unescape(match.group("task")),
                "department": _unescape(match.group("department")),
                "reasoning": _unescape(match.group("reasoning") or ""),
            }
        )
    return [item for item in recovered if item["task"]]


def _unescape(value: str) -> str:
    return value.replace('\\"', '"').replace("\\n", " ").strip()


def parse_proposals(text: str) -> list[dict[str, str | None]]:
    """Parse `[{action, reasoning, priority}]`; unknown priorities become None."""

    parsed: Any = None
    match = _JSON_ARRAY.search(text)
    if match is not None:
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError:
            parsed = None

    if isinstance(parsed, list):
        items = [item for item in parsed if isinstance(item, dict)]
    else:
        logger.info("Recovering proposals by field extraction")
        items = [
            dict(
                zip(
                    ("action", "reasoning", "priority"),
                    (_unescape(value or "") for value in found.groups()),
                )
            )
            for found in _PROPOSAL_FIELDS.finditer(text)
        ]

    proposals: list[dict[str, str | None]] = []
    for item in items:
        action = str(item.get("action") or "").strip()
        if not action:
            continue
        priority = str(item.get("priority") or "").strip().lower()
        proposals.append(
            {
                "action": action,
                "reasoning": str(item.get("reasoning") or "").strip(),
                "priority": priority if priority in _PRIORITIES else None,
            }
        )
    return proposals


def parse_workflow(text: str) -> dict[str, Any] | None:
    """Parse `{workflow, reasoning, execution_plan: {steps}}` or return None."""

    try:
        data = extract_json(text)
    except LLMOutputParseError as exc:
        logger.info("Recovering workflow analysis by field extraction: %s", exc)
        return _recover_workflow(text)

    workflow = str(data.get("workflow") or "").strip()
    if not workflow:
        return None
    plan = data.get("execution_plan")
    steps = plan.get("steps") if isinstance(plan, dict) else data.get("steps")
    if not isinstance(steps, list):
        steps = []
    return {
        "workflow": workflow,
        "reasoning": str(data.get("reasoning") or "").strip(),
        "steps": [str(step).strip() for step in steps if str(step).strip()],
    }


def _recover_workflow(text: str) -> dict[str, Any] | None:
    workflow = _WORKFLOW_FIELD.search(text)
    if workflow is None or not workflow.group(1).strip():
        return None
    reasoning = _REASONING_FIELD.search(text)
    steps = _STEPS_FIELD.search(text)
    return {
        "workflow": _unescape(workflow.group(1)),
        "reasoning": _unescape(reasoning.group(1)) if reasoning else "",
        "steps": [
            _unescape(step)
            for step in re.findall(_STRING, steps.group("body") if steps else "")
            if step.strip()
        ],
    }
