"""Domain models."""
from .document import (
    FacetCount,
    Page,
    SearchDocument,
    SearchFilters,
    SearchRequest,
    SearchResult,
    SortBy,
    Stats,
)
from .entities import AwesomeList, DocumentSnapshot, Readme, Repository
from .index import ColumnStore, IndexGeneration, InvertedIndex, Posting

__all__ = [
    "AwesomeList",
    "Repository",
    "Readme",
    "DocumentSnapshot",
    "SearchDocument",
    "SearchFilters",
    "SearchRequest",
    "SearchResult",
    "SortBy",
    "Page",
    "FacetCount",
    "Stats",
    "Posting",
    "InvertedIndex",
    "ColumnStore",
    "IndexGeneration",
]
