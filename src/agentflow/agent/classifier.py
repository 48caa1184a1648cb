"""Ordered, data-driven intent classification for free-text requests."""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Literal

Intent = Literal[
    "company_creation",
    "org_unit_creation",
    "task_generation",
    "task_execution",
    "query",
]

_TASK_VERBS = (
    "help|handle|solve|fix|create|make|build|design|write|draft|develop|analyze|review|"
    "process|determine|research|find|identify|plan|prepare|generate|optimize|improve|"
    "assess|evaluate|investigate|study|explore"
)
_ACTION_VERBS = (
    "need|want|help|handle|solve|fix|create|make|process|analyze|determine|research|find|"
    "plan|design|develop|review|assess|evaluate|prepare|generate|build"
)


@dataclass(frozen=True, slots=True)
class IntentRule:
    """One pattern -> intent mapping; `extract` pulls an industry from the match."""

    name: str
    pattern: re.Pattern[str]
    intent: Intent
    extract: Callable[[re.Match[str]], str | None] | None = None

    def match(self, text: str) -> re.Match[str] | None:
        return self.pattern.search(text)


@dataclass(frozen=True, slots=True)
class Classification:
    intent: Intent
    matched_rule: str
    industry: str | None = None


def _industry(match: re.Match[str]) -> str | None:
    value = re.sub(r"^(?:a|an|the)\s+", "", match.group("industry").strip(), flags=re.IGNORECASE)
    return value.strip(" .!?") or None


def _rule(
    name: str,
    pattern: str,
    intent: Intent,
    extract: Callable[[re.Match[str]], str | None] | None = None,
) -> IntentRule:
    return IntentRule(name, re.compile(pattern, re.IGNORECASE), intent, extract)


DEFAULT_RULES: tuple[IntentRule, ...] = (
    _rule("leading_wh_word", r"^(?:what|when|where|who|why|which)\b", "query"),
    _rule(
        "explain_request",
        r"^(?:can|could|would|will) you (?:tell|show|explain|describe)\b",
        "query",
    ),
    _rule("trailing_question_mark", r"\?$", "query"),
    _rule(
        "company_for_industry",
        r"\b(?:create|make|build|start)\b.*\bcompany\b.*\b(?:for|in|about)\s+(?P<industry>[^.!?]+)",
        "company_creation",
        _industry,
    ),
    _rule(
        "industry_company",
        r"\b(?:create|make|build|start)(?:\s+an?)?\s+(?P<industry>.+?)\s+company\b",
        "company_creation",
        _industry,
    ),
    _rule(
        "department_creation",
        r"\b(?:create|make|build|add|start|need|want)\b.*\bdepartment\b",
        "org_unit_creation",
    ),
    _rule(
        "task_generation",
        r"\b(?:generate|propose|suggest)\b.*\btasks?\b",
        "task_generation",
    ),
    _rule("leading_task_verb", rf"^(?:{_TASK_VERBS})\b", "task_execution"),
    _rule(
        "task_content",
        r"(?:need|want|require).*(?:help|assistance|support|done|handled|fixed|created|analyzed)"
        r"|(?:customer|client|user).*(?:issue|problem|complaint|request|concern)"
        r"|plan.*(?:campaign|strategy|initiative)"
        r"|analyze.*(?:data|feedback|performance|results)"
        r"|create.*(?:strategy|plan|content|material)"
        r"|write.*(?:proposal|report|document|plan)"
        r"|determine.*(?:best|optimal|right|correct)"
        r"|research.*(?:market|competitor|trend|option)"
        r"|design.*(?:product|feature|system|process)",
        "task_execution",
    ),
    _rule(
        "action_verb",
        rf"^(?!(?:how are|how is|how do|how does)\b).*\b(?:{_ACTION_VERBS})\b",
        "task_execution",
    ),
)


class IntentClassifier:
    """Evaluates `rules` in order; the first match decides, otherwise `query`.

    Question signals come first so that "What should we build?" is answered
    rather than executed.
    """

    def __init__(self, rules: Sequence[IntentRule] = DEFAULT_RULES) -> None:
        self.rules = list(rules)

    def classify(self, text: str) -> Classification:
        normalized = " ".join(text.split())
        for rule in self.rules:
            match = rule.match(normalized)
            if match is None:
                continue
            industry = rule.extract(match) if rule.extract is not None else None
            return Classification(intent=rule.intent, matched_rule=rule.name, industry=industry)
        return Classification(intent="query", matched_rule="default")

    def rule(self, name: str) -> IntentRule:
        for rule in self.rules:
            if rule.name == name:
                return rule
        raise KeyError(f"Unknown intent rule: {name}")
