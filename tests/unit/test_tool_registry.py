import pytest
from pydantic import BaseModel, Field, ValidationError

from agentflow.agent.registry import ToolContext, ToolRegistry, ToolSpec


class EchoInput(BaseModel):
    value: int = Field(ge=1)


def _echo_spec(name: str = "echo") -> ToolSpec:
    def _handler(data: EchoInput) -> str:
        return str(data.value)

    return ToolSpec(
        name=name,
        description="echo positive int",
        args_schema=EchoInput,
        handler=_handler,
    )


def test_tool_registry_validation() -> None:
    registry = ToolRegistry()
    registry.register(_echo_spec())

    assert registry.execute("echo", {"value": 3}) == "3"

    with pytest.raises(ValidationError):
        registry.execute("echo", {"value": 0})


def test_duplicate_tool_registration_rejected() -> None:
    registry = ToolRegistry()
    spec = _echo_spec()

    registry.register(spec)
    with pytest.raises(ValueError):
        registry.register(spec)


def test_unknown_tool_raises() -> None:
    with pytest.raises(KeyError):
        ToolRegistry().execute("missing", {})


def test_context_is_passed_only_to_context_aware_handlers() -> None:
    registry = ToolRegistry()
    seen = []

    def _handler(data: EchoInput, context: ToolContext) -> str:
        seen.append(context)
        return f"{context.agent_name}:{context.depth}:{data.value}"

    registry.register(
        ToolSpec(
            name="whoami",
            description="reports caller",
            args_schema=EchoInput,
            handler=_handler,
            needs_context=True,
        )
    )

    result = registry.execute("whoami", {"value": 2}, context=ToolContext(agent_name="Support", depth=1))

    assert result == "Support:1:2"
    assert seen[0].loop is None


def test_declarations_and_langchain_export() -> None:
    registry = ToolRegistry()
    registry.register(_echo_spec())

    declaration = registry.declarations()[0]
    assert declaration["name"] == "echo"
    assert declaration["input_schema"]["properties"]["value"]["minimum"] == 1

    tools = registry.as_langchain_tools()
    assert [tool.name for tool in tools] == ["echo"]
    assert tools[0].invoke({"value": 4}) == "4"


def test_copy_is_independent() -> None:
    registry = ToolRegistry()
    registry.register(_echo_spec())

    clone = registry.copy()
    clone.register(_echo_spec("echo_two"))

    assert "echo_two" in clone
    assert "echo_two" not in registry
    assert "echo" in clone


def test_invalid_tool_name_rejected() -> None:
    with pytest.raises(ValidationError):
        _echo_spec("has spaces")
