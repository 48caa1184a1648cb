from langchain_core.messages import AIMessage, HumanMessage

from agentflow.agent.workflow import analyze_workflow
from agentflow.types import StrategyPlan


class StubLLM:
    def __init__(self, reply) -> None:
        self.reply = reply
        self.messages = []

    def invoke(self, messages, **kwargs):
        self.messages.append(messages)
        if isinstance(self.reply, Exception):
            raise self.reply
        return AIMessage(content=self.reply)


def test_analysis_becomes_a_strategy_plan() -> None:
    llm = StubLLM(
        '```json\n{"workflow": "specialization", "reasoning": "needs a lawyer", '
        '"execution_plan": {"steps": ["Review clauses", "Summarize risks"]}}\n```'
    )

    plan = analyze_workflow(llm, "Review the vendor contract", agent_name="Legal Agent", department="Legal")

    assert plan == StrategyPlan(
        workflow="specialization",
        reasoning="needs a lawyer",
        steps=["Review clauses", "Summarize risks"],
    )
    (prompt,) = llm.messages[0]
    assert isinstance(prompt, HumanMessage)
    assert 'TASK: "Review the vendor contract"' in prompt.content
    assert "AGENT: Legal Agent (Legal department)" in prompt.content
    assert "evaluator_optimizer" in prompt.content


def test_unparseable_or_failed_analysis_returns_none() -> None:
    assert analyze_workflow(StubLLM("no idea"), "Plan the offsite", agent_name="Ops Agent") is None
    assert analyze_workflow(StubLLM(TimeoutError("slow")), "Plan the offsite", agent_name="Ops Agent") is None
