"""Index generation models: inverted index, column store and the published bundle."""
from bisect import bisect_left
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import numpy as np

from ..errors import InvalidGeneration
from .document import SEARCH_FIELDS, SearchDocument, SearchFilters
from .entities import DocumentSnapshot


@dataclass(frozen=True)
class Posting:
    """Occurrences of one term in one document."""
    doc: int  # document ordinal
    tfs: tuple[int, ...]  # term frequency per search field
    positions: tuple[int, ...] = ()  # token positions in the content field


@dataclass(frozen=True)
class InvertedIndex:
    """Term -> postings, plus per-document field lengths for BM25."""
    vocabulary: tuple[str, ...]
    postings: dict[str, tuple[Posting, ...]]
    field_lengths: np.ndarray  # shape (n_docs, n_fields)

    @property
    def doc_count(self) -> int:
        return int(self.field_lengths.shape[0])

    @property
    def avg_field_lengths(self) -> np.ndarray:
        if self.doc_count == 0:
            return np.zeros(len(SEARCH_FIELDS))
        return self.field_lengths.mean(axis=0)

    def expand(self, prefix: str) -> list[str]:
        """Return every vocabulary term starting with prefix."""
        start = bisect_left(self.vocabulary, prefix)
        terms = []
        for term in self.vocabulary[start:]:
            if not term.startswith(prefix):
                break
            terms.append(term)
        return terms

    def content_positions(self, prefixes: list[str], docs: set[int]) -> dict[int, set[int]]:
        """Content-field token positions hit by any prefix, for the given documents."""
        hits: dict[int, set[int]] = {}
        for prefix in prefixes:
            for term in self.expand(prefix):
                for posting in self.postings[term]:
                    if posting.doc in docs and posting.positions:
                        hits.setdefault(posting.doc, set()).update(posting.positions)
        return hits


@dataclass(frozen=True)
class ColumnStore:
    """Per-document sort and filter columns, indexed by ordinal."""
    repository_ids: np.ndarray  # int64
    stars: np.ndarray  # float64, NaN when unknown
    last_commit: np.ndarray  # float64 epoch seconds, NaN when unknown
    languages: tuple[Optional[str], ...]
    categories: tuple[Optional[str], ...]

    def __len__(self) -> int:
        return int(self.repository_ids.shape[0])

    def filter_mask(self, filters: SearchFilters) -> np.ndarray:
        """Boolean mask of documents passing every filter."""
        mask = np.ones(len(self), dtype=bool)

        if filters.language is not None:
            mask &= np.array([lang == filters.language for lang in self.languages], dtype=bool)

        if filters.min_stars is not None:
            # NaN compares False, so unknown star counts never pass
            with np.errstate(invalid="ignore"):
                mask &= self.stars >= filters.min_stars

        if filters.category is not None:
            mask &= np.array([cat == filters.category for cat in self.categories], dtype=bool)

        return mask


@dataclass(frozen=True)
class IndexGeneration:
    """Immutable, fully built version of the searchable dataset."""
    snapshot: DocumentSnapshot
    documents: tuple[SearchDocument, ...]
    index: InvertedIndex
    columns: ColumnStore
    content_hash: str
    built_at: datetime
    number: int = 0
    _ordinals: dict[int, int] = field(default_factory=dict, repr=False, compare=False)

    @property
    def snapshot_id(self) -> str:
        return self.snapshot.snapshot_id

    def ordinal_of(self, repository_id: int) -> int:
        return self._ordinals[repository_id]

    def validate(self) -> None:
        """Structural consistency check used before publishing."""
        n_docs = len(self.documents)

        if not self.content_hash:
            raise InvalidGeneration("Generation has no content hash")
        if len(self.snapshot.repositories) != n_docs:
            raise InvalidGeneration(
                f"{len(self.snapshot.repositories)} repositories but {n_docs} documents"
            )
        if len(self.columns) != n_docs or self.index.doc_count != n_docs:
            raise InvalidGeneration("Column store or field lengths do not match documents")
        if self.index.field_lengths.ndim != 2 or self.index.field_lengths.shape[1] != len(
            SEARCH_FIELDS
        ):
            raise InvalidGeneration("Field length table has the wrong shape")

        for ordinal, document in enumerate(self.documents):
            if document.repository_id not in self.snapshot.repositories:
                raise InvalidGeneration(
                    f"Document for unknown repository {document.repository_id}"
                )
            if self._ordinals.get(document.repository_id) != ordinal:
                raise InvalidGeneration(
                    f"Ordinal table out of sync for repository {document.repository_id}"
                )

        if list(self.index.vocabulary) != sorted(self.index.postings):
            raise InvalidGeneration("Vocabulary does not match postings")

        for term, postings in self.index.postings.items():
            for posting in postings:
                if not 0 <= posting.doc < n_docs:
                    raise InvalidGeneration(f"Posting for '{term}' points outside the corpus")
