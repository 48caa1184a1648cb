import gc
import weakref

import pytest
from pydantic import BaseModel

from agentflow.agent.registry import ToolRegistry, ToolSpec
from agentflow.errors import ToolExecutionError
from agentflow.obs.tracing import ToolUsageStats
from agentflow.types import ToolTrace


class LookupInput(BaseModel):
    sku: str


def _lookup(data: LookupInput) -> str:
    if data.sku == "missing":
        raise ToolExecutionError("unknown sku")
    return f"{data.sku}: 12 in stock"


def _registry(stats: ToolUsageStats) -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(
        ToolSpec(name="inventory", description="stock lookup", args_schema=LookupInput, handler=_lookup)
    )
    registry.set_observer(stats.observe)
    return registry


def test_observer_sees_successes_and_failures() -> None:
    stats = ToolUsageStats()
    registry = _registry(stats)

    assert registry.execute("inventory", {"sku": "A-1"}) == "A-1: 12 in stock"
    with pytest.raises(ToolExecutionError):
        registry.execute("inventory", {"sku": "missing"})

    usage = stats.snapshot()["inventory"]
    assert usage["calls"] == 2
    assert usage["errors"] == 1
    assert usage["avg_latency_ms"] >= 0.0


def test_copies_keep_reporting_to_the_same_observer() -> None:
    stats = ToolUsageStats()
    clone = _registry(stats).copy()

    clone.execute("inventory", {"sku": "B-2"})

    assert list(stats.snapshot()) == ["inventory"]
    assert stats.snapshot()["inventory"]["calls"] == 1


def test_non_string_results_are_rejected() -> None:
    registry = ToolRegistry()
    registry.register(
        ToolSpec(name="count", description="bad tool", args_schema=LookupInput, handler=lambda data: 3)
    )

    with pytest.raises(TypeError):
        registry.execute("count", {"sku": "x"})


class Payload(dict):
    pass


def test_usage_keeps_totals_not_traces() -> None:
    stats = ToolUsageStats()
    payload = Payload(query="confidential customer list")
    ref = weakref.ref(payload)

    stats.observe(ToolTrace(name="search", input_payload=payload, output_preview="ok", latency_ms=10.0))
    stats.observe(
        ToolTrace(name="search", input_payload={}, output_preview="boom", latency_ms=20.0, is_error=True)
    )
    del payload
    gc.collect()

    assert ref() is None
    assert stats.snapshot() == {"search": {"calls": 2, "errors": 1, "avg_latency_ms": 15.0}}
