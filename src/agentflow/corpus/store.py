"""File-backed corpus resource with serialized writes."""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from collections.abc import Callable, Iterable
from pathlib import Path

from agentflow.config import CorpusConfig
from agentflow.corpus.mutator import CLEAN_TEMPLATE, CorpusMutation, apply_mutation, department_section
from agentflow.errors import CorpusUnavailableError

logger = logging.getLogger(__name__)


class CorpusStore:
    """Single-writer access to the shared knowledge document.

    Every read-modify-write runs under one lock, so overlapping requests are
    applied one after the other instead of racing on the file. Listeners are
    called synchronously after each write, still inside the lock; the
    retriever registers its `invalidate` here.
    """

    def __init__(
        self,
        path: str | Path,
        config: CorpusConfig | None = None,
        *,
        create_missing: bool = True,
    ) -> None:
        self.path = Path(path)
        self.config = config or CorpusConfig()
        self._lock = threading.RLock()
        self._listeners: list[Callable[[], None]] = []
        if create_missing and not self.path.exists():
            self._write(CLEAN_TEMPLATE)

    def add_listener(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def read(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise CorpusUnavailableError(f"Cannot read corpus at {self.path}: {exc}") from exc

    def apply(self, op: CorpusMutation) -> str:
        with self._lock:
            updated = apply_mutation(self.read(), op, self.config)
            self._write(updated)
            logger.info("Applied corpus mutation %s", op.kind)
            self._notify()
            return updated

    def apply_many(self, ops: Iterable[CorpusMutation]) -> str:
        with self._lock:
            content = self.read()
            applied = []
            for op in ops:
                content = apply_mutation(content, op, self.config)
                applied.append(op.kind)
            self._write(content)
            logger.info("Applied corpus mutations %s", applied)
            self._notify()
            return content

    def reset(self) -> None:
        with self._lock:
            self._write(CLEAN_TEMPLATE)
            logger.info("Corpus reset to clean template")
            self._notify()

    def department_section(self, name: str) -> str:
        return department_section(self.read(), name)

    def _write(self, content: str) -> None:
        """Write a sibling temp file and rename it over the corpus.

        Readers never take the lock; the rename is atomic, so they see either
        the previous document or the new one, never a truncated file.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(content)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise CorpusUnavailableError(f"Cannot write corpus at {self.path}: {exc}") from exc

    def _notify(self) -> None:
        for listener in self._listeners:
            listener()
