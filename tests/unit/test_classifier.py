import pytest

from agentflow.agent.classifier import DEFAULT_RULES, IntentClassifier


@pytest.mark.parametrize(
    ("text", "intent", "rule"),
    [
        ("What is our mission?", "query", "leading_wh_word"),
        ("Why did churn go up last month", "query", "leading_wh_word"),
        ("Can you explain the refund policy", "query", "explain_request"),
        ("Our onboarding flow needs work, right?", "query", "trailing_question_mark"),
        ("Draft our mission statement", "task_execution", "leading_task_verb"),
        ("Handle this customer complaint and also draft a social post for Gen Z", "task_execution", "leading_task_verb"),
        ("A client has a billing complaint", "task_execution", "task_content"),
        ("Please review the Q3 budget", "task_execution", "action_verb"),
        ("Add a legal department", "org_unit_creation", "department_creation"),
        ("Suggest some tasks for the marketing team", "task_generation", "task_generation"),
        ("Hello there", "query", "default"),
    ],
)
def test_classification(text: str, intent: str, rule: str) -> None:
    result = IntentClassifier().classify(text)

    assert (result.intent, result.matched_rule) == (intent, rule)


def test_company_creation_extracts_industry() -> None:
    classifier = IntentClassifier()

    assert classifier.classify("Create a dog grooming company").industry == "dog grooming"
    assert classifier.classify("Start a company for organic coffee delivery.").industry == (
        "organic coffee delivery"
    )
    assert classifier.classify("Build an e-commerce company").intent == "company_creation"


def test_question_signals_take_priority_over_task_verbs() -> None:
    result = IntentClassifier().classify("What should we build to fix onboarding?")

    assert result.intent == "query"


def test_rules_are_inspectable_and_individually_testable() -> None:
    classifier = IntentClassifier()
    names = [rule.name for rule in classifier.rules]

    assert names[:3] == ["leading_wh_word", "explain_request", "trailing_question_mark"]
    assert names.index("company_for_industry") < names.index("department_creation")
    assert classifier.rule("leading_task_verb").match("draft a memo") is not None
    assert classifier.rule("leading_task_verb").match("a draft memo") is None


def test_custom_rule_order_changes_outcome() -> None:
    reordered = [rule for rule in DEFAULT_RULES if rule.intent != "query"]

    result = IntentClassifier(reordered).classify("What should we build?")

    assert result.intent == "task_execution"
