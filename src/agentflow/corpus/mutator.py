"""Structure-preserving edits to the company knowledge corpus.

Every function here is a pure ``str -> str`` transform. Edits are
append-or-create: they never rewrite existing entries, and any heading they
need is created first, so the result always parses with `CorpusChunker`.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from agentflow.config import CorpusConfig

OVERVIEW_HEADING = "# Company Overview"
NOTES_HEADING = "## Notes"
PAST_WORK_HEADING = "### Past work"
GOALS_HEADING = "### Current Goals"
PROBLEMS_HEADING = "### Current Problems"
PAST_WORK_PLACEHOLDER = "No work completed yet"
UNDEFINED_VALUE = "Not yet defined"

CLEAN_TEMPLATE = (
    f"{OVERVIEW_HEADING}\n"
    f"**Industry:** {UNDEFINED_VALUE}\n"
    f"**Mission:** {UNDEFINED_VALUE}\n"
)


class SetOverviewField(BaseModel):
    kind: Literal["set_overview"] = "set_overview"
    key: Literal["industry", "mission"]
    value: str = Field(min_length=1)


class CreateDepartment(BaseModel):
    kind: Literal["create_department"] = "create_department"
    name: str = Field(min_length=1)


class AppendPastWork(BaseModel):
    kind: Literal["append_past_work"] = "append_past_work"
    department: str = Field(min_length=1)
    entry: str = Field(min_length=1)


class AppendNote(BaseModel):
    kind: Literal["append_note"] = "append_note"
    text: str = Field(min_length=1)


class AddGoal(BaseModel):
    kind: Literal["add_goal"] = "add_goal"
    text: str = Field(min_length=1)


class AddProblem(BaseModel):
    kind: Literal["add_problem"] = "add_problem"
    text: str = Field(min_length=1)


CorpusMutation = Annotated[
    Union[SetOverviewField, CreateDepartment, AppendPastWork, AppendNote, AddGoal, AddProblem],
    Field(discriminator="kind"),
]


def apply_mutation(corpus: str, op: CorpusMutation, config: CorpusConfig | None = None) -> str:
    """Apply one mutation and return the new corpus text."""

    config = config or CorpusConfig()
    if isinstance(op, SetOverviewField):
        return set_overview_field(corpus, op.key, _single_line(op.value, config))
    if isinstance(op, CreateDepartment):
        return create_department(corpus, _single_line(op.name, config))
    if isinstance(op, AppendPastWork):
        return append_past_work(
            corpus,
            _single_line(op.department, config),
            _single_line(op.entry, config),
            cap=config.past_work_cap,
        )
    if isinstance(op, AppendNote):
        return append_note(corpus, _single_line(op.text, config), cap=config.notes_cap)
    if isinstance(op, AddGoal):
        return add_overview_item(
            corpus, GOALS_HEADING, _single_line(op.text, config), cap=config.overview_list_cap
        )
    if isinstance(op, AddProblem):
        return add_overview_item(
            corpus, PROBLEMS_HEADING, _single_line(op.text, config), cap=config.overview_list_cap
        )
    raise TypeError(f"Unsupported corpus mutation: {type(op).__name__}")


def set_overview_field(corpus: str, key: str, value: str) -> str:
    lines, overview = _ensure_overview(corpus.splitlines())
    end = _next_heading(lines, overview + 1)
    label = f"**{key.capitalize()}:**"

    insert_at = overview + 1
    for i in range(overview + 1, end):
        if lines[i].strip().startswith(label):
            lines[i] = f"{label} {value}"
            return _join(lines)
        if lines[i].strip().startswith("**"):
            insert_at = i + 1
    lines.insert(insert_at, f"{label} {value}")
    return _join(lines)


def create_department(corpus: str, name: str) -> str:
    _check_department_name(name)
    lines = corpus.splitlines()
    if _find_line(lines, f"## {name}") is not None:
        return corpus

    block = [f"## {name}", "", PAST_WORK_HEADING, f"- {PAST_WORK_PLACEHOLDER}", ""]
    notes = _find_line(lines, NOTES_HEADING)
    if notes is None:
        lines = _strip_trailing_blank(lines)
        if lines:
            lines.append("")
        lines.extend(block)
    else:
        if notes > 0 and lines[notes - 1].strip():
            block.insert(0, "")
        lines[notes:notes] = block
    return _join(lines)


def append_past_work(corpus: str, department: str, entry: str, *, cap: int) -> str:
    _check_department_name(department)
    lines = create_department(corpus, department).splitlines()
    start = next(i for i, line in enumerate(lines) if line.strip() == f"## {department}")
    end = _next_heading(lines, start + 1, max_level=2)

    heading = None
    for i in range(start + 1, end):
        if lines[i].strip().lower() == PAST_WORK_HEADING.lower():
            heading = i
            break
    if heading is None:
        insert = ["", PAST_WORK_HEADING] if lines[end - 1].strip() else [PAST_WORK_HEADING]
        lines[end:end] = insert
        heading = end + len(insert) - 1

    return _join(_prepend_bullet(lines, heading, entry, cap, placeholders=(PAST_WORK_PLACEHOLDER,)))


def append_note(corpus: str, text: str, *, cap: int) -> str:
    lines = corpus.splitlines()
    heading = _find_line(lines, NOTES_HEADING)
    if heading is None:
        lines = _strip_trailing_blank(lines)
        if lines:
            lines.append("")
        lines.append(NOTES_HEADING)
        heading = len(lines) - 1
    return _join(_prepend_bullet(lines, heading, text, cap))


def add_overview_item(corpus: str, subsection: str, text: str, *, cap: int) -> str:
    lines, overview = _ensure_overview(corpus.splitlines())
    end = _next_heading(lines, overview + 1, max_level=2)

    heading = _find_line(lines[:end], subsection, start=overview + 1)
    if heading is None:
        insert = ["", subsection] if lines[end - 1].strip() else [subsection]
        lines[end:end] = insert
        heading = end + len(insert) - 1
    return _join(_prepend_bullet(lines, heading, text, cap))


def department_section(corpus: str, name: str) -> str:
    lines = corpus.splitlines()
    start = next(
        (i for i, line in enumerate(lines) if line.startswith("## ") and name in line),
        None,
    )
    if start is None:
        return ""
    end = _next_heading(lines, start + 1, max_level=2)
    return "\n".join(lines[start:end]).strip()


def company_overview(corpus: str) -> str:
    """Everything above the first department-level heading."""
    lines = corpus.splitlines()
    end = next((i for i, line in enumerate(lines) if line.startswith("## ")), len(lines))
    return "\n".join(lines[:end]).strip()


def _prepend_bullet(
    lines: list[str],
    heading: int,
    entry: str,
    cap: int,
    placeholders: tuple[str, ...] = (),
) -> list[str]:
    end = _next_heading(lines, heading + 1)
    region = lines[heading + 1 : end]

    bullets = [
        line
        for line in region
        if line.strip().startswith("- ") and line.strip()[2:].strip() not in placeholders
    ]
    other = [line for line in region if line.strip() and not line.strip().startswith("- ")]

    kept = [f"- {entry}", *bullets][:cap]
    replacement = [*kept, *other]
    if end < len(lines):
        replacement.append("")
    lines[heading + 1 : end] = replacement
    return lines


def _ensure_overview(lines: list[str]) -> tuple[list[str], int]:
    index = _find_line(lines, OVERVIEW_HEADING)
    if index is not None:
        return lines, index
    return [*CLEAN_TEMPLATE.splitlines(), "", *lines], 0


def _heading_level(line: str) -> int | None:
    hashes = len(line) - len(line.lstrip("#"))
    if hashes and line[hashes : hashes + 1] == " ":
        return hashes
    return None


def _next_heading(lines: list[str], start: int, max_level: int = 6) -> int:
    for i in range(start, len(lines)):
        level = _heading_level(lines[i])
        if level is not None and level <= max_level:
            return i
    return len(lines)


def _find_line(lines: list[str], target: str, start: int = 0) -> int | None:
    for i in range(start, len(lines)):
        if lines[i].strip() == target:
            return i
    return None


def _strip_trailing_blank(lines: list[str]) -> list[str]:
    while lines and not lines[-1].strip():
        lines.pop()
    return lines


def _check_department_name(name: str) -> None:
    if name.strip().lower() == NOTES_HEADING[3:].lower():
        raise ValueError(f"{name!r} is reserved for the notes block and cannot name a department")


def _single_line(text: str, config: CorpusConfig) -> str:
    collapsed = " ".join(text.split())
    if not collapsed:
        raise ValueError("Corpus entries must contain non-whitespace text")
    if len(collapsed) > config.max_entry_chars:
        collapsed = collapsed[: config.max_entry_chars - 3] + "..."
    return collapsed


def _join(lines: list[str]) -> str:
    return "\n".join(_strip_trailing_blank(lines)) + "\n"
