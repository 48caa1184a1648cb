"""Execution records, reviewer feedback and token estimates."""

from __future__ import annotations

import re
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from agentflow.types import Feedback, PastExecution, ToolTrace

_TOKEN_PATTERN = re.compile(r"\w+|[^\w\s]", flags=re.UNICODE)


@dataclass(slots=True)
class ExecutionRecord:
    execution_id: str
    timestamp_utc: str
    agent_name: str
    department: str | None
    task: str
    output: str
    status: str
    depth: int
    turns: int
    tool_traces: list[ToolTrace]
    latency_ms: float
    input_tokens: int
    output_tokens: int
    feedback: Feedback | None = field(default=None)


class ExecutionStore:
    """In-memory history of loop runs for the API and feedback context."""

    def __init__(self) -> None:
        self._records: dict[str, ExecutionRecord] = {}
        self._lock = threading.Lock()

    def create_record(
        self,
        *,
        agent_name: str,
        department: str | None,
        task: str,
        output: str,
        status: str,
        depth: int,
        turns: int,
        tool_traces: list[ToolTrace],
        latency_ms: float,
    ) -> ExecutionRecord:
        record = ExecutionRecord(
            execution_id=str(uuid.uuid4()),
            timestamp_utc=datetime.now(timezone.utc).isoformat(),
            agent_name=agent_name,
            department=department,
            task=task,
            output=output,
            status=status,
            depth=depth,
            turns=turns,
            tool_traces=tool_traces,
            latency_ms=latency_ms,
            input_tokens=estimate_token_count(task),
            output_tokens=estimate_token_count(output),
        )
        with self._lock:
            self._records[record.execution_id] = record
        return record

    def get(self, execution_id: str) -> ExecutionRecord:
        with self._lock:
            record = self._records.get(execution_id)
        if record is None:
            raise KeyError(f"Execution not found: {execution_id}")
        return record

    def list_recent(self, limit: int = 20) -> list[ExecutionRecord]:
        with self._lock:
            return list(self._records.values())[-limit:]

    def add_feedback(self, execution_id: str, feedback: Feedback) -> ExecutionRecord:
        record = self.get(execution_id)
        record.feedback = feedback
        return record

    def feedback_for(self, agent_name: str, limit: int = 3) -> list[PastExecution]:
        """Most recent rated top-level runs of `agent_name`, newest first."""
        with self._lock:
            records = list(self._records.values())
        rated = [
            PastExecution(task_text=record.task, feedback=record.feedback)
            for record in reversed(records)
            if record.agent_name == agent_name and record.feedback is not None and record.depth == 0
        ]
        return rated[:limit]

    def summary(self) -> dict[str, float | int]:
        with self._lock:
            records = list(self._records.values())
        total = len(records)
        if total == 0:
            return {
                "total_executions": 0,
                "failed_executions": 0,
                "avg_latency_ms": 0.0,
                "p95_latency_ms": 0.0,
                "avg_turns": 0.0,
                "total_tool_calls": 0,
                "total_input_tokens": 0,
                "total_output_tokens": 0,
                "avg_rating": 0.0,
            }

        latencies = sorted(record.latency_ms for record in records)
        p95_index = max(0, int((len(latencies) * 0.95) - 1))
        ratings = [record.feedback.rating for record in records if record.feedback is not None]
        return {
            "total_executions": total,
            "failed_executions": sum(1 for record in records if record.status == "error"),
            "avg_latency_ms": sum(latencies) / total,
            "p95_latency_ms": latencies[p95_index],
            "avg_turns": sum(record.turns for record in records) / total,
            "total_tool_calls": sum(len(record.tool_traces) for record in records),
            "total_input_tokens": sum(record.input_tokens for record in records),
            "total_output_tokens": sum(record.output_tokens for record in records),
            "avg_rating": sum(ratings) / len(ratings) if ratings else 0.0,
        }


class ToolUsageStats:
    """Per-tool call counts and latency, fed by `ToolRegistry.set_observer`.

    Only running totals are kept; traces and their payloads are not retained.
    """

    def __init__(self) -> None:
        self._totals: dict[str, dict[str, float]] = {}
        self._lock = threading.Lock()

    def observe(self, trace: ToolTrace) -> None:
        with self._lock:
            totals = self._totals.setdefault(
                trace.name, {"calls": 0, "errors": 0, "latency_ms": 0.0}
            )
            totals["calls"] += 1
            totals["errors"] += int(trace.is_error)
            totals["latency_ms"] += trace.latency_ms

    def snapshot(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            totals = {name: dict(values) for name, values in self._totals.items()}
        return {
            name: {
                "calls": int(values["calls"]),
                "errors": int(values["errors"]),
                "avg_latency_ms": values["latency_ms"] / values["calls"],
            }
            for name, values in sorted(totals.items())
        }


def estimate_token_count(text: str) -> int:
    return len(_TOKEN_PATTERN.findall(text))
