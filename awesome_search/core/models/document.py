"""Search domain models."""
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")

SEARCH_FIELDS = ("repository_name", "description", "content", "tags", "categories")
CONTENT_FIELD = SEARCH_FIELDS.index("content")


@dataclass(frozen=True)
class SearchDocument:
    """Denormalized per-repository text the inverted index is built over."""
    repository_id: int
    repository_name: str
    description: str = ""
    content: str = ""
    tags: str = ""
    categories: str = ""

    def field_texts(self) -> tuple[str, ...]:
        return tuple(getattr(self, name) for name in SEARCH_FIELDS)


class SortBy(str, Enum):
    """Result ordering."""
    RELEVANCE = "relevance"
    STARS = "stars"
    RECENT = "recent"


@dataclass(frozen=True)
class SearchFilters:
    """Conjunctive post-filters applied to the matched set."""
    language: Optional[str] = None
    min_stars: Optional[int] = None
    category: Optional[str] = None


@dataclass(frozen=True)
class SearchRequest:
    """Normalized search input."""
    query: str
    filters: SearchFilters = field(default_factory=SearchFilters)
    sort_by: SortBy = SortBy.RELEVANCE
    page: int = 1
    page_size: int = 20

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass
class SearchResult:
    """Search hit for the presentation layer."""
    repository_id: int
    repository_name: str
    repository_url: str
    description: Optional[str]
    stars: Optional[int]
    language: Optional[str]
    topics: Optional[str]
    awesome_list_name: Optional[str]
    awesome_list_category: Optional[str]
    rank: float  # lower is better
    snippet: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "repository_id": self.repository_id,
            "repository_name": self.repository_name,
            "repository_url": self.repository_url,
            "description": self.description,
            "stars": self.stars,
            "language": self.language,
            "topics": self.topics,
            "awesome_list_name": self.awesome_list_name,
            "awesome_list_category": self.awesome_list_category,
            "rank": self.rank,
            "snippet": self.snippet,
        }


@dataclass
class Page(Generic[T]):
    """One page of an ordered result set."""
    results: list[T]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0

    def to_dict(self) -> dict:
        return {
            "results": [r.to_dict() for r in self.results],
            "total": self.total,
            "page": self.page,
            "pageSize": self.page_size,
            "totalPages": self.total_pages,
        }


@dataclass(frozen=True)
class FacetCount:
    name: str
    count: int

    def to_dict(self) -> dict:
        return {"name": self.name, "count": self.count}


@dataclass(frozen=True)
class Stats:
    total_lists: int
    total_repositories: int
    total_readmes: int
    last_updated: Optional[str]

    def to_dict(self) -> dict:
        return {
            "totalLists": self.total_lists,
            "totalRepositories": self.total_repositories,
            "totalReadmes": self.total_readmes,
            "lastUpdated": self.last_updated,
        }
