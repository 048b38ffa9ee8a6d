"""Tokenization, scoring, ordering and snippet strategies."""
from .ordering import ORDERINGS, OrderingStrategy, parse_sort
from .scoring import Bm25Scorer, ScoringStrategy
from .snippets import SnippetExtractor
from .tokenizer import Tokenizer

__all__ = [
    "Tokenizer",
    "ScoringStrategy",
    "Bm25Scorer",
    "OrderingStrategy",
    "ORDERINGS",
    "parse_sort",
    "SnippetExtractor",
]
