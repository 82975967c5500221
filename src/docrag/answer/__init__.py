"""Answer synthesis from retrieved passages."""

from docrag.answer.heuristics import extract_heuristics
from docrag.answer.synthesizer import NO_RESULT_ANSWER, HeuristicSynthesizer, Synthesizer

__all__ = ["HeuristicSynthesizer", "NO_RESULT_ANSWER", "Synthesizer", "extract_heuristics"]
