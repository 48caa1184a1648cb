import threading

import pytest

from agentflow.corpus.mutator import CLEAN_TEMPLATE, AppendNote, AppendPastWork, CreateDepartment
from agentflow.corpus.store import CorpusStore
from agentflow.errors import CorpusUnavailableError


def test_missing_file_is_created_from_template(tmp_path) -> None:
    path = tmp_path / "nested" / "company.md"

    store = CorpusStore(path)

    assert path.read_text(encoding="utf-8") == CLEAN_TEMPLATE
    assert store.read() == CLEAN_TEMPLATE


def test_every_write_path_notifies_listeners(tmp_path) -> None:
    store = CorpusStore(tmp_path / "company.md")
    calls = []
    store.add_listener(lambda: calls.append("invalidate"))

    store.apply(CreateDepartment(name="Support"))
    assert len(calls) == 1

    store.apply_many(
        [
            AppendPastWork(department="Support", entry="Closed the ticket backlog"),
            AppendNote(text="Hiring freeze until July"),
        ]
    )
    assert len(calls) == 2

    store.reset()
    assert len(calls) == 3
    assert store.read() == CLEAN_TEMPLATE


def test_failed_mutation_does_not_write_or_notify(tmp_path) -> None:
    store = CorpusStore(tmp_path / "company.md")
    calls = []
    store.add_listener(lambda: calls.append("invalidate"))

    with pytest.raises(ValueError):
        store.apply(AppendNote(text="  \n "))

    assert calls == []
    assert store.read() == CLEAN_TEMPLATE


def test_department_section(tmp_path) -> None:
    store = CorpusStore(tmp_path / "company.md")
    store.apply(AppendPastWork(department="Support", entry="Closed the ticket backlog"))

    assert store.department_section("Support").startswith("## Support")
    assert store.department_section("Finance") == ""


def test_unreadable_corpus_raises(tmp_path) -> None:
    store = CorpusStore(tmp_path / "missing.md", create_missing=False)

    with pytest.raises(CorpusUnavailableError):
        store.read()


def test_readers_never_see_a_partial_document_during_writes(tmp_path) -> None:
    store = CorpusStore(tmp_path / "company.md")
    stop = threading.Event()

    def _writer() -> None:
        count = 0
        while not stop.is_set():
            store.apply(AppendNote(text=f"Standup moved to room {count}"))
            count += 1

    writer = threading.Thread(target=_writer)
    writer.start()
    try:
        torn = 0
        for _ in range(2000):
            text = store.read()
            if not text.startswith("# Company Overview") or not text.endswith("\n"):
                torn += 1
    finally:
        stop.set()
        writer.join()

    assert torn == 0
    assert [path.name for path in tmp_path.iterdir()] == ["company.md"]
