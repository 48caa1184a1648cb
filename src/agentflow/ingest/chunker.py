"""Heading-aware chunking of the company knowledge corpus."""

from __future__ import annotations

from dataclasses import dataclass, field

from agentflow.config import CorpusConfig
from agentflow.types import Chunk, ChunkType

NOTES_HEADING = "Notes"


@dataclass(slots=True)
class _ChunkState:
    section: str = "Overview"
    department: str | None = None
    type: ChunkType = "general"
    lines: list[str] = field(default_factory=list)


class CorpusChunker:
    """Splits the corpus into retrieval units tagged with heading metadata.

    The walk is line oriented:

    1. `# ` headings open a top-level section with no department.
    2. `## ` headings open a department block (except the reserved `Notes`
       block, which carries no department).
    3. `### ` headings only change the chunk type, derived from keywords in
       the subsection title ("past work" is a learning, goals and problems
       keep their own types).

    Content lines accumulate until a heading or a blank line ends the run.
    Runs whose trimmed text is not longer than `min_chunk_chars` are dropped,
    so bare placeholders and separators never become chunks. The output
    depends only on the input text; ids are ordinal within one pass.
    """

    def __init__(self, config: CorpusConfig | None = None) -> None:
        self.config = config or CorpusConfig()

    def chunk(self, corpus_text: str) -> list[Chunk]:
        chunks: list[Chunk] = []
        state = _ChunkState()

        for line in corpus_text.splitlines():
            if line.startswith("# "):
                self._flush(state, chunks)
                state.section = line[2:].strip()
                state.department = None
                state.type = "general"
                continue

            if line.startswith("## "):
                self._flush(state, chunks)
                heading = line[3:].strip()
                state.section = heading
                state.department = None if heading == NOTES_HEADING else heading
                state.type = "general"
                continue

            if line.startswith("### "):
                self._flush(state, chunks)
                state.type = subsection_type(line[4:])
                continue

            if line.strip():
                state.lines.append(line)
            elif state.lines:
                self._flush(state, chunks)

        self._flush(state, chunks)
        return chunks

    def department_chunks(self, corpus_text: str, department: str) -> list[Chunk]:
        needle = department.lower()
        return [
            chunk
            for chunk in self.chunk(corpus_text)
            if chunk.department is not None and needle in chunk.department.lower()
        ]

    def _flush(self, state: _ChunkState, chunks: list[Chunk]) -> None:
        if not state.lines:
            return
        text = "\n".join(state.lines).strip()
        state.lines = []
        if len(text) <= self.config.min_chunk_chars:
            return
        chunks.append(
            Chunk(
                id=f"chunk_{len(chunks)}",
                content=text,
                section=state.section,
                department=state.department,
                type=state.type,
            )
        )


def subsection_type(title: str) -> ChunkType:
    lowered = title.strip().lower()
    if "past work" in lowered:
        return "learning"
    if "goal" in lowered:
        return "goal"
    if "problem" in lowered:
        return "problem"
    return "general"
