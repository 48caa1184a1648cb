import pytest

from agentflow.config import CorpusConfig
from agentflow.corpus.mutator import (
    CLEAN_TEMPLATE,
    PAST_WORK_PLACEHOLDER,
    AddGoal,
    AddProblem,
    AppendNote,
    AppendPastWork,
    CreateDepartment,
    SetOverviewField,
    apply_mutation,
    company_overview,
    department_section,
)
from agentflow.ingest.chunker import CorpusChunker


def _bullets(section: str) -> list[str]:
    return [line[2:] for line in section.splitlines() if line.startswith("- ")]


def test_create_department_adds_placeholder_block() -> None:
    corpus = apply_mutation(CLEAN_TEMPLATE, CreateDepartment(name="Support"))

    section = department_section(corpus, "Support")
    assert section.splitlines()[0] == "## Support"
    assert "### Past work" in section
    assert _bullets(section) == [PAST_WORK_PLACEHOLDER]


def test_create_department_is_noop_for_existing_name() -> None:
    corpus = apply_mutation(CLEAN_TEMPLATE, CreateDepartment(name="Support"))

    assert apply_mutation(corpus, CreateDepartment(name="Support")) == corpus


def test_create_department_goes_before_notes() -> None:
    corpus = apply_mutation(CLEAN_TEMPLATE, AppendNote(text="Remember the quarterly review"))
    corpus = apply_mutation(corpus, CreateDepartment(name="Support"))

    lines = corpus.splitlines()
    assert lines.index("## Support") < lines.index("## Notes")


def test_past_work_retention_cap_keeps_newest_ten() -> None:
    corpus = apply_mutation(CLEAN_TEMPLATE, CreateDepartment(name="Support"))
    for i in range(11):
        corpus = apply_mutation(corpus, AppendPastWork(department="Support", entry=f"Entry {i}"))

    entries = _bullets(department_section(corpus, "Support"))
    assert entries == [f"Entry {i}" for i in range(10, 0, -1)]
    assert PAST_WORK_PLACEHOLDER not in entries


def test_past_work_creates_missing_department() -> None:
    corpus = apply_mutation(CLEAN_TEMPLATE, AppendPastWork(department="Legal", entry="Reviewed the lease"))

    assert _bullets(department_section(corpus, "Legal")) == ["Reviewed the lease"]


def test_past_work_targets_only_its_department() -> None:
    corpus = CLEAN_TEMPLATE
    for name in ("Support", "Marketing"):
        corpus = apply_mutation(corpus, CreateDepartment(name=name))
    corpus = apply_mutation(corpus, AppendPastWork(department="Support", entry="Closed ticket backlog"))

    assert _bullets(department_section(corpus, "Marketing")) == [PAST_WORK_PLACEHOLDER]
    assert _bullets(department_section(corpus, "Support")) == ["Closed ticket backlog"]


def test_notes_are_capped_newest_first() -> None:
    corpus = CLEAN_TEMPLATE
    config = CorpusConfig(notes_cap=3)
    for i in range(5):
        corpus = apply_mutation(corpus, AppendNote(text=f"Note {i}"), config)

    notes = corpus.split("## Notes", 1)[1]
    assert _bullets(notes) == ["Note 4", "Note 3", "Note 2"]


def test_set_overview_field_replaces_value() -> None:
    corpus = apply_mutation(CLEAN_TEMPLATE, SetOverviewField(key="industry", value="Dog grooming"))
    corpus = apply_mutation(corpus, SetOverviewField(key="industry", value="Cat grooming"))

    assert "**Industry:** Cat grooming" in corpus
    assert "Dog grooming" not in corpus
    assert corpus.count("**Industry:**") == 1


def test_set_overview_creates_overview_when_missing() -> None:
    corpus = apply_mutation("## Support\n", SetOverviewField(key="mission", value="Delight customers"))

    assert corpus.startswith("# Company Overview\n")
    assert "**Mission:** Delight customers" in corpus
    assert "## Support" in corpus


def test_goals_and_problems_stay_in_overview() -> None:
    corpus = apply_mutation(CLEAN_TEMPLATE, CreateDepartment(name="Support"))
    corpus = apply_mutation(corpus, AddGoal(text="Reach one thousand customers"))
    corpus = apply_mutation(corpus, AddProblem(text="Churn is rising among new users"))

    lines = corpus.splitlines()
    assert lines.index("### Current Goals") < lines.index("## Support")
    assert lines.index("### Current Problems") < lines.index("## Support")

    types = {chunk.type for chunk in CorpusChunker().chunk(corpus)}
    assert {"goal", "problem"} <= types


def test_multiline_entries_cannot_break_headings() -> None:
    corpus = apply_mutation(
        CLEAN_TEMPLATE,
        AppendPastWork(department="Support", entry="Fixed it\n## Injected heading\nmore"),
    )

    assert "## Injected heading" not in corpus.splitlines()
    assert [chunk.department for chunk in CorpusChunker().chunk(corpus)].count("Injected heading") == 0


def test_blank_entry_is_rejected() -> None:
    with pytest.raises(ValueError):
        apply_mutation(CLEAN_TEMPLATE, AppendNote(text="   \n  "))


def test_notes_is_not_a_department_name() -> None:
    with_notes = apply_mutation(CLEAN_TEMPLATE, AppendNote(text="Office closed Friday"))

    for op in (
        CreateDepartment(name="Notes"),
        AppendPastWork(department=" notes ", entry="Wrote the quarterly summary"),
    ):
        with pytest.raises(ValueError):
            apply_mutation(with_notes, op)


def test_every_mutation_leaves_corpus_parseable() -> None:
    ops = [
        SetOverviewField(key="industry", value="Bakery"),
        CreateDepartment(name="Kitchen"),
        AppendPastWork(department="Kitchen", entry="Baked sourdough for the weekend market"),
        AppendNote(text="Oven maintenance scheduled next Tuesday morning"),
        AddGoal(text="Open a second storefront by spring"),
        AppendPastWork(department="Front of House", entry="Trained two new cashiers on the register"),
    ]
    corpus = CLEAN_TEMPLATE
    for op in ops:
        corpus = apply_mutation(corpus, op)
        chunks = CorpusChunker().chunk(corpus)
        assert chunks
        assert corpus.endswith("\n")

    departments = {chunk.department for chunk in CorpusChunker().chunk(corpus)}
    assert {"Kitchen", "Front of House"} <= departments


def test_company_overview_stops_at_first_department() -> None:
    corpus = apply_mutation(CLEAN_TEMPLATE, AddGoal(text="Reach 1k customers"))
    corpus = apply_mutation(corpus, AppendPastWork(department="Sales", entry="Signed the first reseller"))

    overview = company_overview(corpus)

    assert overview.startswith("# Company Overview")
    assert "- Reach 1k customers" in overview
    assert "Sales" not in overview
