"""Built-in tool implementations for department agents."""

from __future__ import annotations

import ast
import operator
import re
from datetime import datetime, timezone
from typing import Any

import httpx
from pydantic import BaseModel, Field

from agentflow.agent.registry import ToolRegistry, ToolSpec
from agentflow.errors import ToolExecutionError
from agentflow.retrieval.retriever import KnowledgeRetriever
from agentflow.types import ChunkType

_FETCH_LIMIT = 5000
_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class KnowledgeSearchInput(BaseModel):
    query: str = Field(min_length=1)
    department: str | None = None
    type: ChunkType | None = None
    limit: int = Field(default=5, ge=1, le=10)


class WebSearchInput(BaseModel):
    query: str = Field(min_length=1)


class FetchUrlInput(BaseModel):
    url: str = Field(pattern=r"^https?://")


class CalculateInput(BaseModel):
    expression: str = Field(min_length=1, max_length=200)


class CurrentTimeInput(BaseModel):
    pass


class FormatEmailInput(BaseModel):
    to: str = Field(min_length=1)
    subject: str = Field(min_length=1)
    body: str = Field(min_length=1)
    tone: str = "professional"


class CsvInput(BaseModel):
    headers: list[str] = Field(min_length=1)
    rows: list[list[Any]]


class SummaryInput(BaseModel):
    content: str = Field(min_length=1)
    max_length: int = Field(default=100, ge=5, le=1000)


class ValidateEmailInput(BaseModel):
    email: str = Field(min_length=1)


class ContactInfoInput(BaseModel):
    text: str = Field(min_length=1)


_TONES = {
    "professional": ("Dear", "Best regards"),
    "friendly": ("Hi", "Cheers"),
    "urgent": ("Hello", "Urgently"),
    "casual": ("Hey", "Thanks"),
}

_OPERATORS: dict[type[ast.AST], Any] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}


def register_builtin_tools(
    registry: ToolRegistry,
    retriever: KnowledgeRetriever | None = None,
    *,
    http_client: httpx.Client | None = None,
) -> None:
    """Register the default tool set offered to tool-enabled agents.

    Tools:
    - `knowledge_search`: TF-IDF search over the company knowledge corpus.
    - `web_search` / `fetch_url`: outbound HTTP lookups.
    - `calculate`: arithmetic on numeric literals only.
    - `get_current_time`, `format_email`, `create_csv_data`,
      `generate_summary`, `validate_email`, `parse_contact_info`: local
      text utilities.
    """

    client = http_client or httpx.Client(timeout=10.0, follow_redirects=True)

    def _knowledge_search(input_data: KnowledgeSearchInput) -> str:
        if retriever is None:
            return "NO_RESULTS"
        hits = retriever.search_scored(
            input_data.query,
            department=input_data.department,
            type=input_data.type,
            limit=input_data.limit,
        )
        lines = []
        for hit in hits:
            snippet = _truncate(hit.chunk.content.replace("\n", " "), 220)
            lines.append(f"[{hit.chunk.id}] score={hit.score:.4f} ({hit.chunk.section}) {snippet}")
        if not lines:
            return "NO_RESULTS"
        return "\n".join(lines)

    def _web_search(input_data: WebSearchInput) -> str:
        try:
            response = client.get(
                "https://api.duckduckgo.com/",
                params={"q": input_data.query, "format": "json", "no_html": 1},
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ToolExecutionError(f"Web search failed: {exc}") from exc

        if data.get("AbstractText"):
            source = data.get("AbstractURL") or "DuckDuckGo"
            return f'Search results for "{input_data.query}":\n\n{data["AbstractText"]}\n\nSource: {source}'
        topics = [
            topic.get("Text") or topic.get("FirstURL")
            for topic in data.get("RelatedTopics", [])[:3]
            if isinstance(topic, dict)
        ]
        topics = [topic for topic in topics if topic]
        if topics:
            return f'Search results for "{input_data.query}":\n\n' + "\n\n".join(topics)
        return f'No detailed results found for "{input_data.query}".'

    def _fetch_url(input_data: FetchUrlInput) -> str:
        try:
            response = client.get(input_data.url)
        except httpx.HTTPError as exc:
            raise ToolExecutionError(f"Failed to fetch URL: {exc}") from exc
        if response.is_error:
            raise ToolExecutionError(
                f"Failed to fetch URL: HTTP {response.status_code} {response.reason_phrase}"
            )
        return _truncate(response.text, _FETCH_LIMIT)

    def _calculate(input_data: CalculateInput) -> str:
        try:
            value = _evaluate(ast.parse(input_data.expression, mode="eval").body)
        except (SyntaxError, ValueError, ZeroDivisionError, OverflowError) as exc:
            raise ToolExecutionError(f"Calculation error: {exc}") from exc
        return f"{input_data.expression} = {value}"

    def _current_time(input_data: CurrentTimeInput) -> str:
        del input_data
        now = datetime.now(timezone.utc)
        return f"Current date and time: {now.strftime('%A, %B %d, %Y %H:%M:%S %Z')}"

    def _format_email(input_data: FormatEmailInput) -> str:
        greeting, closing = _TONES.get(input_data.tone, _TONES["professional"])
        recipient = input_data.to.split("@")[0]
        return (
            f"To: {input_data.to}\nSubject: {input_data.subject}\n\n"
            f"{greeting} {recipient},\n\n{input_data.body}\n\n{closing},\n[Your Name]"
        )

    def _create_csv(input_data: CsvInput) -> str:
        lines = [",".join(_csv_cell(cell) for cell in input_data.headers)]
        lines.extend(",".join(_csv_cell(cell) for cell in row) for row in input_data.rows)
        return (
            "\n".join(lines)
            + f"\n\n{len(input_data.rows)} rows with {len(input_data.headers)} columns"
        )

    def _summary(input_data: SummaryInput) -> str:
        words = input_data.content.split()
        if len(words) <= input_data.max_length:
            return input_data.content.strip()
        return " ".join(words[: input_data.max_length]) + "..."

    def _validate_email(input_data: ValidateEmailInput) -> str:
        email = input_data.email.strip()
        if _EMAIL_PATTERN.match(email):
            return f"VALID: {email} (domain {email.split('@')[1]})"
        return f"INVALID: {email} does not look like an email address"

    def _parse_contact(input_data: ContactInfoInput) -> str:
        text = input_data.text
        found = {
            "emails": re.findall(r"[^\s@,;]+@[^\s@,;]+\.[A-Za-z]{2,}", text),
            "phones": re.findall(r"(?:\+?\d{1,3}[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}", text),
            "urls": re.findall(r"https?://[^\s]+", text),
            "names": re.findall(r"\b[A-Z][a-z]+\s+[A-Z][a-z]+(?:\s+[A-Z][a-z]+)?\b", text)[:3],
        }
        sections = [
            f"{label}:\n" + "\n".join(f"  - {value}" for value in values)
            for label, values in found.items()
            if values
        ]
        return "\n".join(sections) if sections else "NO_CONTACT_INFO_FOUND"

    specs = [
        ToolSpec(
            name="knowledge_search",
            description="Search the company knowledge base and return cited chunks.",
            args_schema=KnowledgeSearchInput,
            handler=_knowledge_search,
            tags=["retrieval"],
        ),
        ToolSpec(
            name="web_search",
            description="Search the web for current information.",
            args_schema=WebSearchInput,
            handler=_web_search,
            tags=["web"],
        ),
        ToolSpec(
            name="fetch_url",
            description="Fetch the text content of a URL.",
            args_schema=FetchUrlInput,
            handler=_fetch_url,
            tags=["web"],
        ),
        ToolSpec(
            name="calculate",
            description="Evaluate an arithmetic expression.",
            args_schema=CalculateInput,
            handler=_calculate,
            tags=["math"],
        ),
        ToolSpec(
            name="get_current_time",
            description="Get the current date and time (UTC).",
            args_schema=CurrentTimeInput,
            handler=_current_time,
            tags=["time"],
        ),
        ToolSpec(
            name="format_email",
            description="Format a professional email with greeting and closing for a tone.",
            args_schema=FormatEmailInput,
            handler=_format_email,
            tags=["text"],
        ),
        ToolSpec(
            name="create_csv_data",
            description="Convert headers and rows into CSV text.",
            args_schema=CsvInput,
            handler=_create_csv,
            tags=["text"],
        ),
        ToolSpec(
            name="generate_summary",
            description="Shorten long content to at most max_length words.",
            args_schema=SummaryInput,
            handler=_summary,
            tags=["text"],
        ),
        ToolSpec(
            name="validate_email",
            description="Check whether an email address is well formed.",
            args_schema=ValidateEmailInput,
            handler=_validate_email,
            tags=["text"],
        ),
        ToolSpec(
            name="parse_contact_info",
            description="Extract emails, phone numbers, URLs and names from text.",
            args_schema=ContactInfoInput,
            handler=_parse_contact,
            tags=["text"],
        ),
    ]
    for spec in specs:
        registry.register(spec)


def _evaluate(node: ast.AST) -> float | int:
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(
        node.value, bool
    ):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _OPERATORS:
        if isinstance(node.op, ast.Pow):
            exponent = _evaluate(node.right)
            if abs(exponent) > 100:
                raise ValueError("exponent too large")
            return _OPERATORS[ast.Pow](_evaluate(node.left), exponent)
        return _OPERATORS[type(node.op)](_evaluate(node.left), _evaluate(node.right))
    if isinstance(node, ast.UnaryOp) and type(node.op) in _OPERATORS:
        return _OPERATORS[type(node.op)](_evaluate(node.operand))
    raise ValueError(f"unsupported expression element: {type(node).__name__}")


def _csv_cell(value: Any) -> str:
    text = str(value)
    if any(char in text for char in ',"\n'):
        return '"' + text.replace('"', '""') + '"'
    return text


def _truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."
