"""FastAPI entrypoint for execution, dispatch, knowledge and execution-history endpoints.

The app is built by `create_app()`; run it with an ASGI server in factory mode.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Iterator
from dataclasses import asdict
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from agentflow.agent.classifier import IntentClassifier
from agentflow.agent.custom_tools import CustomToolDefinition, register_custom_tools
from agentflow.agent.dispatcher import TaskDispatcher
from agentflow.agent.fallback import OfflineChatModel
from agentflow.agent.loop import ExecutionLoop, ExecutionRequest
from agentflow.agent.registry import ToolRegistry
from agentflow.agent.router import TaskRouter
from agentflow.agent.sub_agents import register_sub_agent_tool
from agentflow.agent.tools import register_builtin_tools
from agentflow.agent.workflow import analyze_workflow
from agentflow.config import AgentConfig, AppSettings, CorpusConfig, RetrievalConfig
from agentflow.corpus.mutator import CorpusMutation
from agentflow.corpus.store import CorpusStore
from agentflow.errors import CorpusUnavailableError
from agentflow.obs.logging import configure_logging
from agentflow.obs.tracing import ExecutionStore, ToolUsageStats
from agentflow.retrieval.retriever import KnowledgeRetriever
from agentflow.types import ChunkType, Department, Feedback


def _create_llm(settings: AppSettings) -> Any:
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        return OfflineChatModel()

    from langchain_openai import ChatOpenAI

    return ChatOpenAI(model=settings.openai_model, temperature=0)


class ExecuteRequest(ExecutionRequest):
    custom_tools: list[CustomToolDefinition] = Field(default_factory=list)
    analyze_workflow: bool = False


class DispatchRequest(BaseModel):
    message: str = Field(min_length=1)
    departments: list[Department] = Field(default_factory=list)
    custom_tools: list[CustomToolDefinition] = Field(default_factory=list)
    analyze_workflows: bool = False


class ClassifyRequest(BaseModel):
    text: str = Field(min_length=1)


class RouteTaskRequest(BaseModel):
    task: str = Field(min_length=1)
    departments: list[Department] = Field(min_length=1)


class ParseTasksRequest(BaseModel):
    message: str = Field(min_length=1)
    departments: list[Department] = Field(min_length=1)


class GenerateTasksRequest(BaseModel):
    departments: list[Department] = Field(min_length=1)


class AnalyzeWorkflowRequest(BaseModel):
    task: str = Field(min_length=1)
    agent_name: str = Field(min_length=1)
    department: str | None = None


class KnowledgeUpdateRequest(BaseModel):
    operations: list[CorpusMutation] = Field(min_length=1)


class RagSearchRequest(BaseModel):
    query: str = Field(min_length=1)
    department: str | None = None
    type: ChunkType | None = None
    limit: int = Field(default=5, ge=1, le=20)
    threshold: float = Field(default=0.1, ge=0.0, le=1.0)


def _sse(events: Iterable[BaseModel]) -> StreamingResponse:
    def _encode() -> Iterator[str]:
        for event in events:
            yield f"data: {event.model_dump_json()}\n\n"

    return StreamingResponse(
        _encode(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


def create_app(
    settings: AppSettings | None = None,
    *,
    llm: Any | None = None,
    http_client: httpx.Client | None = None,
) -> FastAPI:
    settings = settings or AppSettings()
    configure_logging(settings.log_level)

    app = FastAPI(title="Agentflow", version="0.1.0")

    store = CorpusStore(settings.corpus_path, CorpusConfig())
    retriever = KnowledgeRetriever(store, config=RetrievalConfig())
    executions = ExecutionStore()
    tool_usage = ToolUsageStats()
    model = llm if llm is not None else _create_llm(settings)
    client = http_client or httpx.Client(timeout=settings.custom_tool_timeout_seconds)

    registry = ToolRegistry()
    register_builtin_tools(registry, retriever, http_client=client)
    register_sub_agent_tool(registry)
    registry.set_observer(tool_usage.observe)

    loop = ExecutionLoop(
        llm=model,
        tool_registry=registry,
        retriever=retriever,
        execution_store=executions,
        config=AgentConfig(),
    )
    classifier = IntentClassifier()

    app.state.store = store
    app.state.retriever = retriever
    app.state.executions = executions
    app.state.registry = registry

    def _loop_for(custom_tools: list[CustomToolDefinition]) -> ExecutionLoop:
        if not custom_tools:
            return loop
        request_registry = registry.copy()
        try:
            register_custom_tools(
                request_registry,
                custom_tools,
                client=client,
                timeout_seconds=settings.custom_tool_timeout_seconds,
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return loop.with_tools(request_registry)

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "llm_configured": not isinstance(model, OfflineChatModel),
            "corpus_path": str(store.path),
            "tools": [spec.name for spec in registry.specs()],
            "execution_count": len(executions.list_recent(limit=1000)),
        }

    @app.post("/execute")
    def execute(request: ExecuteRequest) -> StreamingResponse:
        run_loop = _loop_for(request.custom_tools)
        if request.analyze_workflow and request.strategy_plan is None:
            request.strategy_plan = analyze_workflow(
                model,
                request.task_text,
                agent_name=request.agent.name,
                department=request.department,
            )
        return _sse(run_loop.run(request))

    @app.post("/dispatch")
    def dispatch(request: DispatchRequest) -> StreamingResponse:
        dispatcher = TaskDispatcher(
            llm=model,
            loop=_loop_for(request.custom_tools),
            store=store,
            retriever=retriever,
            classifier=classifier,
            analyze_workflows=request.analyze_workflows,
        )
        return _sse(dispatcher.dispatch(request.message, request.departments))

    @app.post("/classify")
    def classify(request: ClassifyRequest) -> dict[str, Any]:
        result = classifier.classify(request.text)
        return {"intent": result.intent, "rule": result.matched_rule, "industry": result.industry}

    @app.post("/route-task")
    def route_task(request: RouteTaskRequest) -> dict[str, Any]:
        department = TaskRouter(model, request.departments).select_department(request.task)
        if department is None:
            return {
                "department_id": None,
                "department_name": None,
                "reasoning": "No suitable department found for this task.",
            }
        return {
            "department_id": department.id,
            "department_name": department.name,
            "reasoning": f"Task routed to {department.name} department.",
        }

    @app.post("/parse-tasks")
    def parse_tasks(request: ParseTasksRequest) -> dict[str, Any]:
        tasks = TaskRouter(model, request.departments).route(request.message)
        return {"tasks": [task.model_dump() for task in tasks]}

    @app.post("/generate-tasks")
    def generate_tasks(request: GenerateTasksRequest) -> dict[str, Any]:
        dispatcher = TaskDispatcher(llm=model, loop=loop, store=store, retriever=retriever)
        tasks = dispatcher.propose_tasks(request.departments)
        return {"tasks": [task.model_dump() for task in tasks], "count": len(tasks)}

    @app.post("/analyze-workflow")
    def analyze(request: AnalyzeWorkflowRequest) -> dict[str, Any]:
        plan = analyze_workflow(
            model, request.task, agent_name=request.agent_name, department=request.department
        )
        return {"analysis": plan.model_dump() if plan is not None else None}

    @app.get("/knowledge")
    def knowledge() -> dict[str, Any]:
        try:
            return {"content": store.read()}
        except CorpusUnavailableError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc

    @app.get("/knowledge/departments/{name}")
    def knowledge_department(name: str) -> dict[str, Any]:
        try:
            section = store.department_section(name)
        except CorpusUnavailableError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        if not section:
            raise HTTPException(status_code=404, detail=f"Department not found: {name}")
        return {"department": name, "content": section}

    @app.post("/knowledge/update")
    def knowledge_update(request: KnowledgeUpdateRequest) -> dict[str, Any]:
        try:
            content = store.apply_many(request.operations)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except CorpusUnavailableError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return {"applied": [op.kind for op in request.operations], "content": content}

    @app.post("/knowledge/reset")
    def knowledge_reset() -> dict[str, Any]:
        try:
            store.reset()
            return {"status": "reset", "content": store.read()}
        except CorpusUnavailableError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc

    @app.post("/rag-search")
    def rag_search(request: RagSearchRequest) -> dict[str, Any]:
        try:
            hits = retriever.search_scored(
                request.query,
                department=request.department,
                type=request.type,
                limit=request.limit,
                threshold=request.threshold,
            )
        except CorpusUnavailableError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return {"items": [{**asdict(hit.chunk), "score": hit.score} for hit in hits]}

    @app.get("/rag-search/departments/{department}")
    def rag_department(department: str) -> dict[str, Any]:
        try:
            chunks = retriever.department_chunks(department)
        except CorpusUnavailableError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return {"items": [asdict(chunk) for chunk in chunks]}

    @app.get("/executions")
    def list_executions(limit: int = 20) -> dict[str, Any]:
        return {"items": [asdict(record) for record in executions.list_recent(limit=limit)]}

    @app.get("/executions/{execution_id}")
    def execution_detail(execution_id: str) -> dict[str, Any]:
        try:
            record = executions.get(execution_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return asdict(record)

    @app.post("/executions/{execution_id}/feedback")
    def execution_feedback(execution_id: str, feedback: Feedback) -> dict[str, Any]:
        try:
            record = executions.add_feedback(execution_id, feedback)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return asdict(record)

    @app.get("/metrics")
    def metrics() -> dict[str, Any]:
        summary: dict[str, Any] = dict(executions.summary())
        try:
            summary["index"] = retriever.index().stats()
        except CorpusUnavailableError:
            summary["index"] = None
        summary["index_rebuilds"] = retriever.rebuild_count
        summary["tool_usage"] = tool_usage.snapshot()
        return summary

    return app
