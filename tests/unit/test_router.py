import json

from langchain_core.messages import AIMessage

from agentflow.agent.router import TaskRouter
from agentflow.types import Agent, Department


class RouterLLM:
    """Answers decomposition prompts and department-selection prompts separately."""

    def __init__(self, decompose_reply: str | Exception, select_reply: str | Exception = "NONE") -> None:
        self.decompose_reply = decompose_reply
        self.select_reply = select_reply
        self.prompts: list[str] = []

    def invoke(self, messages):
        prompt = messages[-1].content
        self.prompts.append(prompt)
        reply = self.decompose_reply if "break it down" in prompt else self.select_reply
        if isinstance(reply, Exception):
            raise reply
        return AIMessage(content=reply)


DEPARTMENTS = [
    Department(id="dept-ops", name="Operations", description="Logistics"),
    Department(
        id="dept-support",
        name="Customer Support",
        description="Complaints and refunds",
        agent=Agent(name="Support Agent", instructions="Resolve customer issues."),
    ),
    Department(
        id="dept-marketing",
        name="Marketing",
        description="Campaigns and social media",
        agent=Agent(name="Marketing Agent", instructions="Plan campaigns."),
    ),
]

MESSAGE = "Handle this customer complaint and also draft a social post for Gen Z"


def test_decomposition_routes_to_support_and_marketing() -> None:
    reply = json.dumps(
        {
            "tasks": [
                {"task": "Handle this customer complaint", "department": "Customer Support", "reasoning": "complaints"},
                {"task": "Draft a social post for Gen Z", "department": "marketing", "reasoning": "social"},
            ]
        }
    )

    tasks = TaskRouter(RouterLLM(f"Sure! Here you go:\n{reply}"), DEPARTMENTS).route(MESSAGE)

    assert [task.target_department for task in tasks] == ["Customer Support", "Marketing"]
    assert tasks[0].task_text == "Handle this customer complaint"
    assert tasks[1].reasoning == "social"


def test_unknown_department_is_reselected() -> None:
    reply = '{"tasks": [{"task": "Post on TikTok", "department": "Social Team", "reasoning": ""}]}'
    llm = RouterLLM(reply, select_reply="dept-marketing")

    tasks = TaskRouter(llm, DEPARTMENTS).route("Post on TikTok")

    assert tasks[0].target_department == "Marketing"
    assert "department selection" in tasks[0].reasoning


def test_none_sentinel_falls_back_to_first_department_with_agent() -> None:
    llm = RouterLLM("no json here", select_reply="NONE")

    tasks = TaskRouter(llm, DEPARTMENTS).route("Figure out the office plants")

    assert len(tasks) == 1
    assert tasks[0].target_department == "Customer Support"
    assert tasks[0].task_text == "Figure out the office plants"


def test_llm_failure_never_drops_tasks() -> None:
    llm = RouterLLM(RuntimeError("rate limited"), select_reply=RuntimeError("rate limited"))

    tasks = TaskRouter(llm, DEPARTMENTS).route(
        "1. Answer the refund email from Dana\n2. Schedule the spring newsletter send"
    )

    assert [task.task_text for task in tasks] == [
        "Answer the refund email from Dana",
        "Schedule the spring newsletter send",
    ]
    assert {task.target_department for task in tasks} == {"Customer Support"}


def test_malformed_json_is_recovered_by_field_extraction() -> None:
    broken = (
        '{"tasks": [{"task": "Refund order 1182", "department": "Customer Support", '
        '"reasoning": "refunds"}, {"task": "Plan launch", "department": "Marketing"'
    )

    tasks = TaskRouter(RouterLLM(broken), DEPARTMENTS).decompose("...")

    assert [(t.task_text, t.target_department) for t in tasks] == [
        ("Refund order 1182", "Customer Support"),
        ("Plan launch", "Marketing"),
    ]


def test_select_department_accepts_id_or_name() -> None:
    assert TaskRouter(RouterLLM("", "dept-ops"), DEPARTMENTS).select_department("x").name == "Operations"
    assert TaskRouter(RouterLLM("", '"Marketing"'), DEPARTMENTS).select_department("x").id == "dept-marketing"
    assert TaskRouter(RouterLLM("", "none"), DEPARTMENTS).select_department("x") is None


def test_empty_roster_routes_nothing() -> None:
    assert TaskRouter(RouterLLM("{}"), []).route(MESSAGE) == []


def test_split_lines() -> None:
    assert TaskRouter.split_lines("just one task here") == ["just one task here"]
    assert TaskRouter.split_lines("- Write the launch blog post\n- Call the venue about dates") == [
        "Write the launch blog post",
        "Call the venue about dates",
    ]
    assert TaskRouter.split_lines("First line of prose\nsecond line of prose") == [
        "First line of prose\nsecond line of prose"
    ]
