"""Tests for title/author/year extraction."""

from __future__ import annotations

from docrag.answer.heuristics import extract_heuristics
from docrag.index.storage import SQLiteIndexStore
from docrag.models import Chunk


def _put_text(store: SQLiteIndexStore, document_id: str, text: str, start: int = 0) -> None:
    store.put_chunk(Chunk.create(document_id, start, start + len(text), text))


class TestExtractHeuristics:
    def test_metadata_takes_precedence(self, store: SQLiteIndexStore) -> None:
        store.put_document_meta("doc", {"title": "Embedded Title", "author": "A. Writer"})
        _put_text(store, "doc", "Title: Text Title. Author: Someone Else. Published 2021")

        facts = extract_heuristics(store, "doc")

        assert facts == {"title": "Embedded Title", "authors": "A. Writer", "year": "2021"}

    def test_labelled_lines(self, store: SQLiteIndexStore) -> None:
        _put_text(store, "doc", "Title: Laptop Recommender\nPenulis: Budi Santoso\nJakarta 2023")

        facts = extract_heuristics(store, "doc")

        assert facts["title"] == "Laptop Recommender"
        assert facts["authors"] == "Budi Santoso"
        assert facts["year"] == "2023"

    def test_labelled_title_keeps_subtitle(self, store: SQLiteIndexStore) -> None:
        _put_text(store, "doc", "Title: Crop Yields: A Field Study Author: Ana Lima Keywords: farming")

        facts = extract_heuristics(store, "doc")

        assert facts["title"] == "Crop Yields: A Field Study"
        assert facts["authors"] == "Ana Lima"

    def test_fallbacks(self, store: SQLiteIndexStore) -> None:
        _put_text(store, "doc", "A Survey of Retrieval Methods\nJohn Smith, Jane Doe\nno year here")

        facts = extract_heuristics(store, "doc")

        assert facts["title"] == "A Survey of Retrieval Methods"
        assert facts["authors"] == "John Smith, Jane Doe"
        assert "year" not in facts

    def test_unknown_document(self, store: SQLiteIndexStore) -> None:
        assert extract_heuristics(store, "missing") == {}
