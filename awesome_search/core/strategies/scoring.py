import logging
import math
from abc import ABC, abstractmethod
from typing import Mapping

import numpy as np

from ..models.document import SEARCH_FIELDS
from ..models.index import InvertedIndex

logger = logging.getLogger(__name__)


class ScoringStrategy(ABC):
    """Base class for relevance scoring."""

    @abstractmethod
    def score(self, index: InvertedIndex, terms: list[str]) -> tuple[np.ndarray, np.ndarray]:
        """Score every document against the query terms.

        Args:
            index: Inverted index of the generation being searched.
            terms: Normalized query terms, each a prefix.

        Returns:
            (scores, matched) arrays indexed by document ordinal. Higher score
            is better; matched marks documents hit by at least one term.
        """
        ...


class Bm25Scorer(ScoringStrategy):
    """Field-weighted BM25 with per-token prefix expansion, tokens OR-ed."""

    def __init__(
        self,
        k1: float = 1.2,
        b: float = 0.75,
        field_weights: Mapping[str, float] | None = None,
    ):
        """Initialize scorer.

        Args:
            k1: Term frequency saturation.
            b: Field length normalization.
            field_weights: Weight per search field, missing fields weigh 1.0.
        """
        self._k1 = k1
        self._b = b
        weights = field_weights or {}
        self._weights = np.array([weights.get(name, 1.0) for name in SEARCH_FIELDS])

    def _term_frequencies(self, index: InvertedIndex, prefix: str) -> np.ndarray:
        """Per-document, per-field hits summed over every expansion of prefix."""
        tf = np.zeros((index.doc_count, len(SEARCH_FIELDS)))
        for term in index.expand(prefix):
            for posting in index.postings[term]:
                tf[posting.doc] += posting.tfs
        return tf

    def score(self, index: InvertedIndex, terms: list[str]) -> tuple[np.ndarray, np.ndarray]:
        n_docs = index.doc_count
        scores = np.zeros(n_docs)
        matched = np.zeros(n_docs, dtype=bool)
        if n_docs == 0 or not terms:
            return scores, matched

        avg = index.avg_field_lengths
        safe_avg = np.where(avg > 0, avg, 1.0)
        length_norm = 1.0 - self._b + self._b * (index.field_lengths / safe_avg)

        for term in terms:
            tf = self._term_frequencies(index, term)
            hits = tf.sum(axis=1) > 0
            n_hits = int(hits.sum())
            if n_hits == 0:
                continue

            idf = math.log(1.0 + (n_docs - n_hits + 0.5) / (n_hits + 0.5))
            denom = tf + self._k1 * length_norm
            saturated = np.divide(
                tf * (self._k1 + 1.0), denom, out=np.zeros_like(tf), where=denom > 0
            )
            scores += idf * (saturated @ self._weights)
            matched |= hits

            logger.debug(f"Term '{term}*': {n_hits} docs, idf={idf:.3f}")

        return scores, matched
