"""Index builder - turns a document snapshot into an immutable index generation."""

import hashlib
import json
import logging
import math
import time
from datetime import datetime, timezone
from typing import Optional

import numpy as np

from ..errors import BuildFailure
from ..models.document import CONTENT_FIELD, SEARCH_FIELDS, SearchDocument
from ..models.entities import DocumentSnapshot, Repository
from ..models.index import ColumnStore, IndexGeneration, InvertedIndex, Posting
from ..strategies.tokenizer import Tokenizer

logger = logging.getLogger(__name__)


def parse_timestamp(value: Optional[str]) -> float:
    """ISO 8601 text to epoch seconds; NaN when missing or unparseable."""
    if not value:
        return math.nan
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return math.nan
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def _nullable(value: float) -> Optional[float]:
    return None if math.isnan(value) else value


def artifact_bytes(
    snapshot_id: str,
    documents: tuple[SearchDocument, ...],
    index: InvertedIndex,
    columns: ColumnStore,
) -> bytes:
    """Canonical serialization of an index; identical input gives identical bytes."""
    payload = {
        "snapshot_id": snapshot_id,
        "fields": list(SEARCH_FIELDS),
        "documents": [
            [d.repository_id, *d.field_texts()] for d in documents
        ],
        "postings": [
            [term, [[p.doc, list(p.tfs), list(p.positions)] for p in index.postings[term]]]
            for term in index.vocabulary
        ],
        "field_lengths": index.field_lengths.astype(int).tolist(),
        "columns": {
            "repository_ids": columns.repository_ids.astype(int).tolist(),
            "stars": [_nullable(float(v)) for v in columns.stars],
            "last_commit": [_nullable(float(v)) for v in columns.last_commit],
            "languages": list(columns.languages),
            "categories": list(columns.categories),
        },
    }
    return json.dumps(
        payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")


class IndexBuilder:
    """Builds inverted index and column store from a snapshot."""

    def __init__(self, tokenizer: Tokenizer, allow_empty: bool = False):
        """Initialize builder.

        Args:
            tokenizer: Tokenizer shared with the query engine.
            allow_empty: Accept snapshots without repositories.
        """
        self._tokenizer = tokenizer
        self._allow_empty = allow_empty

    def _to_document(self, snapshot: DocumentSnapshot, repo: Repository) -> SearchDocument:
        owner = snapshot.lists[repo.awesome_list_id]
        readme = snapshot.readmes.get(repo.id)
        return SearchDocument(
            repository_id=repo.id,
            repository_name=repo.name,
            description=repo.description or "",
            content=(readme.body if readme else None) or "",
            tags=repo.topics or "",
            categories=owner.category or "",
        )

    def _index_documents(
        self, documents: tuple[SearchDocument, ...]
    ) -> InvertedIndex:
        postings: dict[str, list[Posting]] = {}
        field_lengths = np.zeros((len(documents), len(SEARCH_FIELDS)), dtype=np.int64)

        for ordinal, document in enumerate(documents):
            tfs: dict[str, list[int]] = {}
            positions: dict[str, list[int]] = {}

            for field_idx, text in enumerate(document.field_texts()):
                tokens = self._tokenizer.tokenize(text)
                field_lengths[ordinal, field_idx] = len(tokens)
                for position, term in enumerate(tokens):
                    counts = tfs.setdefault(term, [0] * len(SEARCH_FIELDS))
                    counts[field_idx] += 1
                    if field_idx == CONTENT_FIELD:
                        positions.setdefault(term, []).append(position)

            for term in sorted(tfs):
                postings.setdefault(term, []).append(
                    Posting(
                        doc=ordinal,
                        tfs=tuple(tfs[term]),
                        positions=tuple(positions.get(term, ())),
                    )
                )

        vocabulary = tuple(sorted(postings))
        return InvertedIndex(
            vocabulary=vocabulary,
            postings={term: tuple(postings[term]) for term in vocabulary},
            field_lengths=field_lengths,
        )

    def _build_columns(
        self, snapshot: DocumentSnapshot, documents: tuple[SearchDocument, ...]
    ) -> ColumnStore:
        repos = [snapshot.repositories[d.repository_id] for d in documents]
        return ColumnStore(
            repository_ids=np.array([r.id for r in repos], dtype=np.int64),
            stars=np.array(
                [math.nan if r.stars is None else float(r.stars) for r in repos],
                dtype=np.float64,
            ),
            last_commit=np.array([parse_timestamp(r.last_commit) for r in repos], dtype=np.float64),
            languages=tuple(r.language for r in repos),
            categories=tuple(snapshot.lists[r.awesome_list_id].category for r in repos),
        )

    def build(self, snapshot: DocumentSnapshot) -> IndexGeneration:
        """Build a generation.

        Args:
            snapshot: Consistent document store snapshot.

        Returns:
            Unpublished index generation.

        Raises:
            BuildFailure: Snapshot is corrupt or empty.
        """
        started = time.perf_counter()
        logger.info(f"Building index for snapshot {snapshot.snapshot_id}")

        snapshot.validate()
        if not snapshot.repositories and not self._allow_empty:
            raise BuildFailure(f"Snapshot {snapshot.snapshot_id} contains no repositories")

        try:
            documents = tuple(
                self._to_document(snapshot, repo)
                for repo in snapshot.list_all("repositories")
            )
            index = self._index_documents(documents)
            columns = self._build_columns(snapshot, documents)
        except (TypeError, ValueError, AttributeError) as e:
            raise BuildFailure(f"Corrupt snapshot {snapshot.snapshot_id}: {e}") from e

        content_hash = hashlib.sha256(
            artifact_bytes(snapshot.snapshot_id, documents, index, columns)
        ).hexdigest()

        generation = IndexGeneration(
            snapshot=snapshot,
            documents=documents,
            index=index,
            columns=columns,
            content_hash=content_hash,
            built_at=datetime.now(timezone.utc),
            _ordinals={d.repository_id: i for i, d in enumerate(documents)},
        )

        logger.info(
            f"Index built: {len(documents)} documents, {len(index.vocabulary)} terms, "
            f"hash={content_hash[:16]} in {time.perf_counter() - started:.2f}s"
        )
        return generation
