"""Query engine - ranked, filtered, paginated search plus browse operations."""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Collection, Optional

import numpy as np

from ..errors import InputError
from ..models.document import (
    FacetCount,
    Page,
    SearchFilters,
    SearchRequest,
    SearchResult,
    SortBy,
    Stats,
)
from ..models.entities import AwesomeList, DocumentSnapshot, Readme, Repository
from ..models.index import IndexGeneration
from ..strategies.ordering import ORDERINGS, parse_sort
from ..strategies.scoring import ScoringStrategy
from ..strategies.snippets import SnippetExtractor
from ..strategies.tokenizer import Tokenizer
from .snapshot_manager import SnapshotManager

logger = logging.getLogger(__name__)

# star counts are compared as float64, exact up to 2**53
MAX_STARS = 2**53


@dataclass
class Overview:
    """Dashboard data read from a single generation."""
    stats: Stats
    languages: list[FacetCount]
    categories: list[FacetCount]
    trending: list[Repository]


@dataclass
class ListDetail:
    list: AwesomeList
    repositories: Page[Repository]


def _by_stars_then_name(item) -> tuple:
    # stars DESC with unknown counts last, then name ASC
    return (item.stars is None, -(item.stars or 0), item.name)


def _facets(values, limit: Optional[int] = None) -> list[FacetCount]:
    counts = Counter(v for v in values if v is not None)
    ordered = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    if limit is not None:
        ordered = ordered[:limit]
    return [FacetCount(name=name, count=count) for name, count in ordered]


class QueryEngine:
    """Evaluates queries against the generation leased from the snapshot manager."""

    def __init__(
        self,
        snapshots: SnapshotManager,
        tokenizer: Tokenizer,
        scorer: ScoringStrategy,
        snippets: SnippetExtractor,
        default_page_size: int = 20,
        max_page_size: int = 100,
        list_page_size: int = 50,
    ):
        """Initialize query engine.

        Args:
            snapshots: Source of the current generation.
            tokenizer: Tokenizer shared with the index builder.
            scorer: Relevance scoring strategy.
            snippets: Snippet extractor for README bodies.
            default_page_size: Search page size when none is given.
            max_page_size: Upper bound every page size is clamped to.
            list_page_size: Page size for repositories of a list.
        """
        self._snapshots = snapshots
        self._tokenizer = tokenizer
        self._scorer = scorer
        self._snippets = snippets
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size
        self._list_page_size = list_page_size

    def _page_params(self, page: Optional[int], page_size: Optional[int], default: int) -> tuple[int, int]:
        page = 1 if page is None else page
        page_size = default if page_size is None else page_size

        if page < 1:
            raise InputError(f"page must be >= 1, got {page}")
        if page_size < 1:
            raise InputError(f"limit must be >= 1, got {page_size}")
        if page_size > self._max_page_size:
            logger.debug(f"Clamping page size {page_size} to {self._max_page_size}")
            page_size = self._max_page_size
        return page, page_size

    def prepare(
        self,
        query: Optional[str],
        filters: Optional[SearchFilters] = None,
        sort_by: "str | SortBy | None" = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> SearchRequest:
        """Validate and normalize search input.

        Raises:
            InputError: Empty query, bad pagination, unknown sort or out-of-range minStars.
        """
        text = (query or "").strip()
        if not text:
            raise InputError('Query parameter "q" is required')

        filters = filters or SearchFilters()
        if filters.min_stars is not None and abs(filters.min_stars) > MAX_STARS:
            raise InputError(f"minStars must be between -{MAX_STARS} and {MAX_STARS}")

        page, page_size = self._page_params(page, page_size, self._default_page_size)
        return SearchRequest(
            query=text,
            filters=filters,
            sort_by=parse_sort(sort_by),
            page=page,
            page_size=page_size,
        )

    def search(
        self,
        query: Optional[str],
        filters: Optional[SearchFilters] = None,
        sort_by: "str | SortBy | None" = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> Page[SearchResult]:
        """Search repositories in the current generation.

        Args:
            query: Free text; every token is a prefix, tokens are OR-ed.
            filters: Language, minimum stars and category filters.
            sort_by: relevance, stars or recent.
            page: 1-based page number.
            page_size: Results per page, clamped to the maximum.

        Returns:
            Page of results with the unpaginated total.
        """
        request = self.prepare(query, filters, sort_by, page, page_size)
        with self._snapshots.acquire() as generation:
            return self.execute(generation, request)

    def count(self, query: str, filters: Optional[SearchFilters] = None) -> int:
        """Size of the filtered match set, with no pagination."""
        request = self.prepare(query, filters)
        with self._snapshots.acquire() as generation:
            terms = self._tokenizer.query_terms(request.query)
            ordinals, _ = self._matching(generation, terms, request.filters)
            return int(ordinals.size)

    def _matching(
        self, generation: IndexGeneration, terms: list[str], filters: SearchFilters
    ) -> tuple[np.ndarray, np.ndarray]:
        """The one predicate path shared by counting and fetching.

        Returns:
            (ordinals of matching documents, rank of every document).
        """
        scores, matched = self._scorer.score(generation.index, terms)
        mask = matched & generation.columns.filter_mask(filters)
        return np.flatnonzero(mask), -scores

    def execute(self, generation: IndexGeneration, request: SearchRequest) -> Page[SearchResult]:
        """Run a prepared search against an explicit generation."""
        terms = self._tokenizer.query_terms(request.query)
        ordinals, ranks = self._matching(generation, terms, request.filters)
        total = int(ordinals.size)

        ordering = ORDERINGS[request.sort_by]
        ordered = ordering.order(generation.columns, ordinals, ranks[ordinals])
        window = ordered[request.offset : request.offset + request.page_size]

        hits = generation.index.content_positions(terms, {int(o) for o in window})
        results = [
            self._to_result(
                generation, int(ordinal), float(ranks[ordinal]), terms, hits.get(int(ordinal), ())
            )
            for ordinal in window
        ]

        logger.info(
            f"Search: {len(results)}/{total} results for '{request.query[:50]}' "
            f"(sort={request.sort_by.value}, page={request.page}, gen={generation.number})"
        )
        return Page(results=results, total=total, page=request.page, page_size=request.page_size)

    def _to_result(
        self,
        generation: IndexGeneration,
        ordinal: int,
        rank: float,
        terms: list[str],
        positions: Collection[int],
    ) -> SearchResult:
        document = generation.documents[ordinal]
        repo = generation.snapshot.repositories[document.repository_id]
        owner = generation.snapshot.lists.get(repo.awesome_list_id)
        return SearchResult(
            repository_id=repo.id,
            repository_name=repo.name,
            repository_url=repo.url,
            description=repo.description,
            stars=repo.stars,
            language=repo.language,
            topics=repo.topics,
            awesome_list_name=owner.name if owner else None,
            awesome_list_category=owner.category if owner else None,
            rank=rank,
            snippet=self._snippets.extract(document.content, terms, positions),
        )

    # Browse operations

    def _lists(self, snapshot: DocumentSnapshot, category: Optional[str]) -> list[AwesomeList]:
        predicate = (lambda item: item.category == category) if category else None
        return sorted(snapshot.list_all("lists", predicate), key=_by_stars_then_name)

    def lists_by_category(self, category: Optional[str] = None) -> list[AwesomeList]:
        """Lists, optionally of one category, by stars desc then name."""
        with self._snapshots.acquire() as generation:
            return self._lists(generation.snapshot, category)

    def catalog(self, category: Optional[str] = None) -> tuple[list[AwesomeList], list[FacetCount]]:
        """Lists and category facets from the same generation."""
        with self._snapshots.acquire() as generation:
            snapshot = generation.snapshot
            return self._lists(snapshot, category), self._categories(snapshot)

    def get_list(self, list_id: int) -> AwesomeList:
        with self._snapshots.acquire() as generation:
            return generation.snapshot.get_list(list_id)

    def _repositories_of_list(
        self, snapshot: DocumentSnapshot, list_id: int, page: int, page_size: int
    ) -> Page[Repository]:
        snapshot.get_list(list_id)
        repos = sorted(
            snapshot.list_all("repositories", lambda r: r.awesome_list_id == list_id),
            key=_by_stars_then_name,
        )
        offset = (page - 1) * page_size
        return Page(
            results=repos[offset : offset + page_size],
            total=len(repos),
            page=page,
            page_size=page_size,
        )

    def repositories_of_list(
        self, list_id: int, page: Optional[int] = None, page_size: Optional[int] = None
    ) -> Page[Repository]:
        """Repositories of a list by stars desc then name.

        Raises:
            NotFoundError: Unknown list.
        """
        page, page_size = self._page_params(page, page_size, self._list_page_size)
        with self._snapshots.acquire() as generation:
            return self._repositories_of_list(generation.snapshot, list_id, page, page_size)

    def list_detail(
        self, list_id: int, page: Optional[int] = None, page_size: Optional[int] = None
    ) -> ListDetail:
        page, page_size = self._page_params(page, page_size, self._list_page_size)
        with self._snapshots.acquire() as generation:
            snapshot = generation.snapshot
            return ListDetail(
                list=snapshot.get_list(list_id),
                repositories=self._repositories_of_list(snapshot, list_id, page, page_size),
            )

    def repository_detail(self, repository_id: int) -> tuple[Repository, Optional[Readme]]:
        """Repository and its readme, if any.

        Raises:
            NotFoundError: Unknown repository.
        """
        with self._snapshots.acquire() as generation:
            snapshot = generation.snapshot
            repo = snapshot.get_repository(repository_id)
            return repo, snapshot.readmes.get(repository_id)

    def _categories(self, snapshot: DocumentSnapshot) -> list[FacetCount]:
        return _facets(item.category for item in snapshot.lists.values())

    def categories(self) -> list[FacetCount]:
        with self._snapshots.acquire() as generation:
            return self._categories(generation.snapshot)

    def _languages(self, snapshot: DocumentSnapshot, limit: int) -> list[FacetCount]:
        return _facets((r.language for r in snapshot.repositories.values()), limit)

    def languages(self, limit: int = 50) -> list[FacetCount]:
        with self._snapshots.acquire() as generation:
            return self._languages(generation.snapshot, limit)

    def _stats(self, snapshot: DocumentSnapshot) -> Stats:
        updated = [item.last_updated for item in snapshot.lists.values() if item.last_updated]
        return Stats(
            total_lists=len(snapshot.lists),
            total_repositories=len(snapshot.repositories),
            total_readmes=len(snapshot.readmes),
            last_updated=max(updated) if updated else None,
        )

    def stats(self) -> Stats:
        with self._snapshots.acquire() as generation:
            return self._stats(generation.snapshot)

    def _trending(self, snapshot: DocumentSnapshot, limit: int) -> list[Repository]:
        starred = snapshot.list_all("repositories", lambda r: r.stars is not None)
        return sorted(starred, key=lambda r: (-r.stars, r.id))[:limit]

    def trending(self, limit: int = 10) -> list[Repository]:
        """Most starred repositories."""
        with self._snapshots.acquire() as generation:
            return self._trending(generation.snapshot, limit)

    def overview(self, trending_limit: int = 10, languages_limit: int = 50) -> Overview:
        with self._snapshots.acquire() as generation:
            snapshot = generation.snapshot
            return Overview(
                stats=self._stats(snapshot),
                languages=self._languages(snapshot, languages_limit),
                categories=self._categories(snapshot),
                trending=self._trending(snapshot, trending_limit),
            )
