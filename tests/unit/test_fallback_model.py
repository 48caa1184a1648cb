from langchain_core.messages import HumanMessage, SystemMessage

from agentflow.agent.fallback import OfflineChatModel
from agentflow.agent.router import TaskRouter
from agentflow.types import Agent, Department


def test_offline_model_cites_knowledge_from_system_prompt() -> None:
    model = OfflineChatModel()
    system = "Be helpful.\n\nRELEVANT COMPANY KNOWLEDGE:\n[chunk_1] (Support / Support, learning) - Refunds take 5 days"

    reply = model.bind_tools([]).invoke([SystemMessage(content=system), HumanMessage(content="Refund policy")])

    assert "Task: Refund policy" in reply.content
    assert "- Refunds take 5 days [chunk_1]" in reply.content
    assert not reply.tool_calls


def test_offline_model_without_context() -> None:
    reply = OfflineChatModel().invoke(
        [SystemMessage(content="Be helpful."), HumanMessage(content="Summarize our goals")]
    )

    assert "No matching company knowledge" in reply.content


def test_offline_model_declines_routing_prompts() -> None:
    assert OfflineChatModel().invoke("Pick a department").content == "NONE"


def test_offline_routing_defaults_to_first_staffed_department() -> None:
    departments = [
        Department(id="ops", name="Operations"),
        Department(id="sales", name="Sales", agent=Agent(name="Sales Agent")),
    ]

    tasks = TaskRouter(OfflineChatModel(), departments).route("Prepare the quarterly pipeline review")

    assert len(tasks) == 1
    assert tasks[0].target_department == "Sales"
    assert tasks[0].task_text == "Prepare the quarterly pipeline review"
