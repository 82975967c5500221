"""Tests for text helpers."""

from __future__ import annotations

from docrag.utils.text import collapse_whitespace, cut_at_next_field, normalize_whitespace, split_lines


def test_collapse_whitespace() -> None:
    assert collapse_whitespace("  a\n\n b\t c ") == "a b c"


def test_normalize_whitespace_drops_blank_lines() -> None:
    assert normalize_whitespace(["  first ", "", "   ", "second"]) == "first\nsecond"


def test_split_lines_on_newlines_and_sentences() -> None:
    assert split_lines("One. Two\nThree\r\n") == ["One", "Two", "Three"]


def test_cut_at_next_field() -> None:
    assert cut_at_next_field("Laptop Recommender Abstract: A study") == "Laptop Recommender"
    assert cut_at_next_field("Ratio 3:2 screens") == "Ratio 3:2 screens"


def test_cut_at_next_field_keeps_subtitle() -> None:
    text = "Machine Learning: A Practical Survey Keywords: ml, survey"

    assert cut_at_next_field(text) == "Machine Learning: A Practical Survey"
