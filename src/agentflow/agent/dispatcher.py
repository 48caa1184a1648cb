"""End-to-end handling of one free-text request from the CEO chat."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from datetime import datetime, timezone
from typing import Any

from langchain_core.messages import HumanMessage, SystemMessage

from agentflow.agent.classifier import Classification, IntentClassifier
from agentflow.agent.loop import ExecutionLoop, ExecutionRequest
from agentflow.agent.parsing import message_text, parse_proposals
from agentflow.agent.prompts import propose_task_prompt, query_system_prompt
from agentflow.agent.router import TaskRouter
from agentflow.agent.workflow import analyze_workflow
from agentflow.corpus.mutator import (
    AppendPastWork,
    SetOverviewField,
    company_overview,
    department_section,
)
from agentflow.corpus.store import CorpusStore
from agentflow.errors import CorpusUnavailableError
from agentflow.events import (
    ActiveEvent,
    ClassifiedEvent,
    CompleteEvent,
    DispatchEvent,
    ErrorEvent,
    FinishedEvent,
    ResultEvent,
    RoutedEvent,
    TaskStartedEvent,
)
from agentflow.retrieval.retriever import KnowledgeRetriever
from agentflow.types import Agent, Department, ProposedTask

logger = logging.getLogger(__name__)

DISPATCHER_AGENT = "CEO Assistant"
_SUMMARY_CHARS = 160


def department_agent(department: Department) -> Agent:
    if department.agent is not None:
        return department.agent
    return Agent(
        name=f"{department.name} Agent",
        instructions=f"You work in the {department.name} department. {department.description}".strip(),
    )


class TaskDispatcher:
    """Classify, route, execute and record.

    Tasks from one request run sequentially. A failed task is reported by
    its own `ErrorEvent` and the remaining tasks still run. Every successful
    result is written back to its department's past work, which invalidates
    the retrieval index before the next task searches it.
    """

    def __init__(
        self,
        *,
        llm: Any,
        loop: ExecutionLoop,
        store: CorpusStore,
        retriever: KnowledgeRetriever | None = None,
        classifier: IntentClassifier | None = None,
        router_factory: Callable[[Any, Sequence[Department]], TaskRouter] = TaskRouter,
        analyze_workflows: bool = False,
    ) -> None:
        self.llm = llm
        self.loop = loop
        self.store = store
        self.retriever = retriever
        self.classifier = classifier or IntentClassifier()
        self.router_factory = router_factory
        self.analyze_workflows = analyze_workflows

    def dispatch(self, text: str, departments: Sequence[Department]) -> Iterator[DispatchEvent]:
        classification = self.classifier.classify(text)
        logger.info("Classified request as %s (%s)", classification.intent, classification.matched_rule)
        yield ClassifiedEvent(
            intent=classification.intent,
            rule=classification.matched_rule,
            industry=classification.industry,
        )

        counts = {"succeeded": 0, "failed": 0}
        if classification.intent == "task_execution" and departments:
            yield from self._execute_tasks(text, departments, counts)
        elif classification.intent == "task_generation" and departments:
            tasks = self.propose_tasks(departments)
            counts["succeeded"] += len(tasks)
            counts["failed"] += sum(1 for dept in departments if dept.agent is not None) - len(tasks)
            yield RoutedEvent(tasks=tasks)
        elif classification.intent == "company_creation":
            yield from self._create_company(classification, counts)
        elif classification.intent == "org_unit_creation":
            yield ResultEvent(
                agent=DISPATCHER_AGENT,
                text="I'll help you create that department. Add it to the roster to start routing tasks to it.",
            )
            counts["succeeded"] += 1
        else:
            yield from self._answer_query(text, counts)

        yield FinishedEvent(**counts)

    def propose_tasks(self, departments: Sequence[Department]) -> list[ProposedTask]:
        """Ask each staffed department for the one task it would do next.

        The prompt carries the company overview and the department's own
        corpus section. A department whose call fails or whose answer cannot
        be parsed is skipped; the others still get their proposal.
        """

        try:
            corpus = self.store.read()
        except CorpusUnavailableError as exc:
            logger.warning("Proposing tasks without corpus context: %s", exc)
            corpus = ""
        overview = company_overview(corpus)

        proposed: list[ProposedTask] = []
        for department in departments:
            if department.agent is None:
                continue
            prompt = propose_task_prompt(
                department,
                overview=overview,
                section=department_section(corpus, department.name),
            )
            try:
                reply = self.llm.invoke([HumanMessage(content=prompt)])
            except Exception as exc:
                logger.warning("Task proposal failed for %s: %s", department.name, exc)
                continue

            proposals = parse_proposals(message_text(reply))
            if not proposals:
                logger.info("No task proposal recovered for %s", department.name)
                continue
            first = proposals[0]
            proposed.append(
                ProposedTask(
                    task_text=first["action"],
                    target_department=department.name,
                    reasoning=first["reasoning"] or "",
                    priority=first["priority"],
                )
            )
        return proposed

    def _execute_tasks(
        self, text: str, departments: Sequence[Department], counts: dict[str, int]
    ) -> Iterator[DispatchEvent]:
        router = self.router_factory(self.llm, departments)
        tasks = router.route(text)
        yield RoutedEvent(tasks=tasks)

        for index, task in enumerate(tasks):
            yield TaskStartedEvent(index=index, task=task)
            department = router.find_department(task.target_department) or router.default_department()
            agent = department_agent(department)
            strategy = None
            if self.analyze_workflows:
                strategy = analyze_workflow(
                    self.llm, task.task_text, agent_name=agent.name, department=department.name
                )
            request = ExecutionRequest(
                task_text=task.task_text,
                agent=agent,
                department=department.name,
                strategy_plan=strategy,
            )
            result: str | None = None
            for event in self.loop.run(request):
                if isinstance(event, ResultEvent):
                    result = event.text
                yield event

            if result is None:
                counts["failed"] += 1
                continue
            counts["succeeded"] += 1
            self._record_past_work(department.name, task, result)

    def _record_past_work(self, department: str, task: ProposedTask, result: str) -> None:
        summary = " ".join(result.split())
        if len(summary) > _SUMMARY_CHARS:
            summary = summary[: _SUMMARY_CHARS - 3] + "..."
        entry = f"{datetime.now(timezone.utc):%Y-%m-%d}: {task.task_text} -> {summary}"
        try:
            self.store.apply(AppendPastWork(department=department, entry=entry))
        except (CorpusUnavailableError, ValueError) as exc:
            logger.warning("Could not record past work for %s: %s", department, exc)

    def _create_company(
        self, classification: Classification, counts: dict[str, int]
    ) -> Iterator[DispatchEvent]:
        industry = classification.industry
        if not industry:
            yield ResultEvent(agent=DISPATCHER_AGENT, text="Which industry should the company be in?")
            counts["succeeded"] += 1
            return
        try:
            self.store.apply(SetOverviewField(key="industry", value=industry))
        except CorpusUnavailableError as exc:
            counts["failed"] += 1
            yield ErrorEvent(agent=DISPATCHER_AGENT, message=str(exc))
            return
        counts["succeeded"] += 1
        yield ResultEvent(
            agent=DISPATCHER_AGENT,
            text=f"I'll help you create a {industry} company. The overview now lists the industry.",
        )

    def _answer_query(self, text: str, counts: dict[str, int]) -> Iterator[DispatchEvent]:
        yield ActiveEvent(agent=DISPATCHER_AGENT)
        context = []
        if self.retriever is not None:
            try:
                context = self.retriever.search(text, limit=self.retriever.config.context_k)
            except CorpusUnavailableError as exc:
                logger.warning("Answering without knowledge context: %s", exc)

        try:
            reply = self.llm.invoke(
                [SystemMessage(content=query_system_prompt(context)), HumanMessage(content=text)]
            )
        except Exception as exc:
            counts["failed"] += 1
            yield ErrorEvent(agent=DISPATCHER_AGENT, message=str(exc) or type(exc).__name__)
        else:
            counts["succeeded"] += 1
            yield ResultEvent(agent=DISPATCHER_AGENT, text=message_text(reply))
        yield CompleteEvent(agent=DISPATCHER_AGENT)
