from abc import ABC, abstractmethod

import numpy as np

from ..errors import InputError
from ..models.document import SortBy
from ..models.index import ColumnStore


def _descending_nulls_last(values: np.ndarray) -> np.ndarray:
    """Sort key placing larger values first and NaN after everything."""
    return np.where(np.isnan(values), np.inf, -values)


class OrderingStrategy(ABC):
    """Orders matched documents; every ordering ends with rank then repository id."""

    @abstractmethod
    def primary_key(self, columns: ColumnStore, ordinals: np.ndarray) -> np.ndarray | None:
        """Leading sort key for the given ordinals, None for rank-only ordering."""
        ...

    def order(self, columns: ColumnStore, ordinals: np.ndarray, ranks: np.ndarray) -> np.ndarray:
        """Return ordinals in result order.

        Args:
            columns: Column store of the generation.
            ordinals: Matched document ordinals.
            ranks: Rank per ordinal, lower is better.

        Returns:
            Reordered ordinals.
        """
        if ordinals.size == 0:
            return ordinals

        keys = [columns.repository_ids[ordinals], ranks]
        primary = self.primary_key(columns, ordinals)
        if primary is not None:
            keys.append(primary)

        # lexsort treats the last key as the most significant
        return ordinals[np.lexsort(keys)]


class RelevanceOrdering(OrderingStrategy):
    def primary_key(self, columns, ordinals):
        return None


class StarsOrdering(OrderingStrategy):
    def primary_key(self, columns, ordinals):
        return _descending_nulls_last(columns.stars[ordinals])


class RecentOrdering(OrderingStrategy):
    def primary_key(self, columns, ordinals):
        return _descending_nulls_last(columns.last_commit[ordinals])


ORDERINGS: dict[SortBy, OrderingStrategy] = {
    SortBy.RELEVANCE: RelevanceOrdering(),
    SortBy.STARS: StarsOrdering(),
    SortBy.RECENT: RecentOrdering(),
}


def parse_sort(value: "str | SortBy | None") -> SortBy:
    """Parse a sort parameter, rejecting anything that cannot be honored."""
    if value is None or value == "":
        return SortBy.RELEVANCE
    try:
        return SortBy(value)
    except ValueError:
        allowed = ", ".join(s.value for s in SortBy)
        raise InputError(f"Invalid sortBy '{value}', expected one of: {allowed}") from None
