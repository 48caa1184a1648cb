import pytest

from agentflow.corpus.mutator import AppendNote, AppendPastWork, CreateDepartment
from agentflow.corpus.store import CorpusStore
from agentflow.errors import CorpusUnavailableError
from agentflow.retrieval.retriever import KnowledgeRetriever


def _store(tmp_path) -> CorpusStore:
    store = CorpusStore(tmp_path / "company.md")
    store.apply_many(
        [
            CreateDepartment(name="Support"),
            AppendPastWork(department="Support", entry="Rebuilt the onboarding checklist for clinics"),
            CreateDepartment(name="Marketing"),
            AppendPastWork(department="Marketing", entry="Launched a referral campaign for veterinarians"),
        ]
    )
    return store


def test_index_is_built_lazily_and_cached(tmp_path) -> None:
    retriever = KnowledgeRetriever(_store(tmp_path))
    assert retriever.rebuild_count == 0

    retriever.search("onboarding")
    retriever.search("referral")

    assert retriever.rebuild_count == 1


def test_mutation_is_visible_to_next_search(tmp_path) -> None:
    store = _store(tmp_path)
    retriever = KnowledgeRetriever(store)
    assert retriever.search("spaceship") == []

    store.apply(AppendNote(text="Spaceship themed adoption event next quarter"))

    hits = retriever.search("spaceship")
    assert hits and "Spaceship themed adoption" in hits[0].content
    assert retriever.rebuild_count == 2


def test_every_mutation_path_invalidates(tmp_path, monkeypatch) -> None:
    store = _store(tmp_path)
    retriever = KnowledgeRetriever(store)
    calls = []
    original = retriever.invalidate

    def _spy() -> None:
        calls.append("invalidate")
        original()

    monkeypatch.setattr(store, "_listeners", [_spy])

    store.apply(AppendNote(text="Quarterly review moved to Friday afternoon"))
    store.apply_many([AppendPastWork(department="Support", entry="Answered billing questions")])
    store.reset()

    assert calls == ["invalidate"] * 3


def test_stale_rebuild_is_not_cached(tmp_path) -> None:
    store = _store(tmp_path)
    retriever = KnowledgeRetriever(store)
    original_read = store.read

    def _read_then_mutate() -> str:
        content = original_read()
        # A write lands while the index is being built from `content`.
        retriever.invalidate()
        return content

    store.read = _read_then_mutate  # type: ignore[method-assign]
    retriever.search("onboarding")
    store.read = original_read  # type: ignore[method-assign]

    retriever.search("onboarding")
    assert retriever.rebuild_count == 2


def test_department_filter(tmp_path) -> None:
    retriever = KnowledgeRetriever(_store(tmp_path))

    assert retriever.search("onboarding checklist", department="marketing") == []
    assert retriever.search("onboarding checklist", department="support")[0].department == "Support"


def test_corpus_read_failure_propagates(tmp_path) -> None:
    store = CorpusStore(tmp_path / "company.md")
    retriever = KnowledgeRetriever(store)
    (tmp_path / "company.md").unlink()

    with pytest.raises(CorpusUnavailableError):
        retriever.search("anything")
