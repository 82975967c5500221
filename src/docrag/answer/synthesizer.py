"""Answer synthesis from retrieved chunks."""

from __future__ import annotations

import re
from typing import List, Protocol, Sequence

from docrag.models import Answer, Retrieved, Source
from docrag.utils.text import cut_at_next_field, split_lines

NO_RESULT_ANSWER = "No relevant information was found in the documents."
EXCERPT_PREAMBLE = "Here are the most relevant excerpts for your question:"

# "judul" is the Indonesian word for title.
TITLE_QUERY_RE = re.compile(r"\b(judul|title)\b", re.IGNORECASE)
TITLE_PREFIX_RE = re.compile(r"^title\s*[:\-]\s*", re.IGNORECASE)


class Synthesizer(Protocol):
    """Turns retrieved chunks into an answer; model-backed versions fit here too."""

    def synthesize(self, query: str, retrieved: Sequence[Retrieved]) -> Answer: ...


class HeuristicSynthesizer:
    """Deterministic, model-free answers built from the retrieved text."""

    def __init__(
        self,
        *,
        relevance_floor: float = 0.1,
        excerpt_chars: int = 240,
        title_scan: int = 4,
        title_sources: int = 3,
        bullet_count: int = 3,
        max_sources: int = 6,
    ) -> None:
        self.relevance_floor = relevance_floor
        self.excerpt_chars = excerpt_chars
        self.title_scan = title_scan
        self.title_sources = title_sources
        self.bullet_count = bullet_count
        self.max_sources = max_sources

    def _sources(self, retrieved: Sequence[Retrieved], limit: int) -> List[Source]:
        return [
            Source(
                document_id=item.chunk.document_id,
                excerpt=item.chunk.text[: self.excerpt_chars],
                range=(item.chunk.start, item.chunk.end),
            )
            for item in retrieved[:limit]
        ]

    def detect_title(self, retrieved: Sequence[Retrieved]) -> str | None:
        for item in retrieved[: self.title_scan]:
            lines = split_lines(item.chunk.text)
            candidate = next((line for line in lines if TITLE_PREFIX_RE.match(line)), None)
            if candidate is not None:
                candidate = cut_at_next_field(TITLE_PREFIX_RE.sub("", candidate))
            elif lines:
                candidate = lines[0]
            if candidate and 4 < len(candidate) < 220:
                return candidate
        return None

    def synthesize(self, query: str, retrieved: Sequence[Retrieved]) -> Answer:
        if not retrieved or retrieved[0].score < self.relevance_floor:
            return Answer(answer=NO_RESULT_ANSWER, sources=[])

        if TITLE_QUERY_RE.search(query):
            title = self.detect_title(retrieved)
            if title:
                return Answer(
                    answer=f'Detected title (heuristic): "{title}"',
                    sources=self._sources(retrieved, self.title_sources),
                )

        bullets = [f"• {item.chunk.text.strip()}" for item in retrieved[: self.bullet_count]]
        return Answer(
            answer="\n".join([EXCERPT_PREAMBLE, *bullets]),
            sources=self._sources(retrieved, self.max_sources),
        )
