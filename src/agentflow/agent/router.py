"""Splits executable requests into tasks and assigns each one a department."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import Any

from langchain_core.messages import HumanMessage

from agentflow.agent.parsing import message_text, parse_task_list
from agentflow.agent.prompts import decompose_prompt, select_department_prompt
from agentflow.types import Department, ProposedTask

logger = logging.getLogger(__name__)

_LIST_MARKER = re.compile(r"^\s*(?:\d+[.)]\s*|[-•*]\s*)")
_MIN_LIST_ITEM = 10


class TaskRouter:
    """Decomposition with a fallback chain that never drops a task.

    1. Ask the model to decompose the message into `{task, department}` pairs.
    2. Any pair naming an unknown department is re-routed with
       `select_department`; with no pairs at all, the message (or its
       numbered/bulleted items) goes through `select_department`.
    3. When selection answers `NONE` or fails, the task goes to the first
       department that has an agent.
    """

    def __init__(self, llm: Any, departments: Sequence[Department]) -> None:
        self.llm = llm
        self.departments = list(departments)

    def route(self, text: str) -> list[ProposedTask]:
        if not self.departments:
            return []

        proposed = self.decompose(text)
        if not proposed:
            proposed = [
                ProposedTask(task_text=item, target_department="")
                for item in self.split_lines(text)
            ]

        routed: list[ProposedTask] = []
        for task in proposed:
            department = self.find_department(task.target_department)
            reasoning = task.reasoning
            if department is None:
                department = self.select_department(task.task_text)
                reasoning = f"Routed to {department.name} by department selection." if department else ""
            if department is None:
                department = self.default_department()
                reasoning = f"No department matched; defaulted to {department.name}."
            routed.append(
                ProposedTask(
                    task_text=task.task_text,
                    target_department=department.name,
                    reasoning=reasoning,
                )
            )
        logger.info("Routed %d task(s): %s", len(routed), [t.target_department for t in routed])
        return routed

    def decompose(self, text: str) -> list[ProposedTask]:
        try:
            reply = self.llm.invoke([HumanMessage(content=decompose_prompt(text, self.departments))])
        except Exception as exc:
            logger.warning("Task decomposition failed: %s", exc)
            return []

        return [
            ProposedTask(
                task_text=item["task"],
                target_department=item["department"],
                reasoning=item["reasoning"],
            )
            for item in parse_task_list(message_text(reply))
        ]

    def select_department(self, task: str) -> Department | None:
        if not self.departments:
            return None
        try:
            reply = self.llm.invoke(
                [HumanMessage(content=select_department_prompt(task, self.departments))]
            )
        except Exception as exc:
            logger.warning("Department selection failed: %s", exc)
            return None

        answer = message_text(reply).strip().strip("\"'`.").strip()
        if not answer or answer.upper() == "NONE":
            return None
        for department in self.departments:
            if department.id == answer:
                return department
        return self.find_department(answer)

    def find_department(self, name: str) -> Department | None:
        """Exact name, then case-insensitive name or id, then substring."""

        name = name.strip()
        if not name:
            return None
        for department in self.departments:
            if department.name == name:
                return department
        lowered = name.lower()
        for department in self.departments:
            if lowered in (department.name.lower(), department.id.lower()):
                return department
        for department in self.departments:
            candidate = department.name.lower()
            if lowered in candidate or candidate in lowered:
                return department
        return None

    def default_department(self) -> Department:
        for department in self.departments:
            if department.agent is not None:
                return department
        return self.departments[0]

    @staticmethod
    def split_lines(text: str) -> list[str]:
        """Split numbered or bulleted multi-line input into separate tasks."""

        lines = [line for line in text.splitlines() if line.strip()]
        if len(lines) <= 1:
            return [text.strip()]
        if sum(1 for line in lines if _LIST_MARKER.match(line)) <= 1:
            return [text.strip()]

        items = [_LIST_MARKER.sub("", line).strip() for line in lines]
        items = [item for item in items if len(item) > _MIN_LIST_ITEM]
        return items or [text.strip()]
