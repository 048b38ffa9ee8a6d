"""Document store records and the immutable snapshot that holds them."""
from dataclasses import asdict, dataclass, field
from typing import Callable, Iterable, Optional

from ..errors import BuildFailure, InputError, NotFoundError


@dataclass(frozen=True)
class AwesomeList:
    """Curated collection of repositories."""
    id: int
    name: str
    url: str
    description: Optional[str] = None
    category: Optional[str] = None
    stars: Optional[int] = None
    forks: Optional[int] = None
    last_commit: Optional[str] = None
    level: Optional[int] = None
    parent_id: Optional[int] = None
    added_at: Optional[str] = None
    last_updated: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Repository:
    """Single indexed project, owned by exactly one list."""
    id: int
    awesome_list_id: int
    name: str
    url: str
    description: Optional[str] = None
    stars: Optional[int] = None
    forks: Optional[int] = None
    watchers: Optional[int] = None
    language: Optional[str] = None
    topics: Optional[str] = None  # comma-joined
    last_commit: Optional[str] = None
    created_at: Optional[str] = None
    added_at: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Readme:
    """README of a repository (at most one per repository)."""
    id: int
    repository_id: int
    content: Optional[str] = None
    raw_content: Optional[str] = None
    version_hash: Optional[str] = None
    indexed_at: Optional[str] = None

    @property
    def body(self) -> Optional[str]:
        """Searchable text: rendered content, else raw markdown."""
        return self.content if self.content else self.raw_content


ENTITY_KINDS = ("lists", "repositories", "readmes")


@dataclass(frozen=True)
class DocumentSnapshot:
    """Point-in-time, read-only view of the document store."""
    snapshot_id: str
    lists: dict[int, AwesomeList] = field(default_factory=dict)
    repositories: dict[int, Repository] = field(default_factory=dict)
    readmes: dict[int, Readme] = field(default_factory=dict)  # keyed by repository id

    @classmethod
    def from_records(
        cls,
        snapshot_id: str,
        lists: Iterable[AwesomeList],
        repositories: Iterable[Repository],
        readmes: Iterable[Readme] = (),
    ) -> "DocumentSnapshot":
        """Build a snapshot, rejecting duplicate identifiers."""
        by_list: dict[int, AwesomeList] = {}
        for item in lists:
            if item.id in by_list:
                raise BuildFailure(f"Duplicate list id {item.id}")
            by_list[item.id] = item

        by_repo: dict[int, Repository] = {}
        for repo in repositories:
            if repo.id in by_repo:
                raise BuildFailure(f"Duplicate repository id {repo.id}")
            by_repo[repo.id] = repo

        by_readme: dict[int, Readme] = {}
        for readme in readmes:
            if readme.repository_id in by_readme:
                raise BuildFailure(
                    f"Repository {readme.repository_id} has more than one readme"
                )
            by_readme[readme.repository_id] = readme

        return cls(
            snapshot_id=snapshot_id,
            lists=by_list,
            repositories=by_repo,
            readmes=by_readme,
        )

    def current_snapshot_id(self) -> str:
        return self.snapshot_id

    def get_list(self, list_id: int) -> AwesomeList:
        try:
            return self.lists[list_id]
        except KeyError:
            raise NotFoundError("List", list_id) from None

    def get_repository(self, repository_id: int) -> Repository:
        try:
            return self.repositories[repository_id]
        except KeyError:
            raise NotFoundError("Repository", repository_id) from None

    def get_readme(self, repository_id: int) -> Readme:
        try:
            return self.readmes[repository_id]
        except KeyError:
            raise NotFoundError("Readme", repository_id) from None

    def list_all(self, kind: str, predicate: Optional[Callable] = None) -> list:
        """Return all records of a kind ordered by id, optionally filtered.

        Args:
            kind: One of "lists", "repositories", "readmes".
            predicate: Optional record filter.

        Returns:
            Matching records.
        """
        if kind not in ENTITY_KINDS:
            raise InputError(f"Unknown entity kind: {kind}")

        records: dict = getattr(self, kind)
        ordered = sorted(records.values(), key=lambda r: r.id)
        if predicate is None:
            return ordered
        return [r for r in ordered if predicate(r)]

    def validate(self) -> None:
        """Check cross-entity invariants, raising BuildFailure on the first violation."""
        list_urls: set[str] = set()
        for item in self.lists.values():
            if item.url in list_urls:
                raise BuildFailure(f"Duplicate list url {item.url}")
            list_urls.add(item.url)

        repo_urls: set[str] = set()
        for repo in self.repositories.values():
            if repo.awesome_list_id not in self.lists:
                raise BuildFailure(
                    f"Repository {repo.id} references missing list {repo.awesome_list_id}"
                )
            if repo.url in repo_urls:
                raise BuildFailure(f"Duplicate repository url {repo.url}")
            repo_urls.add(repo.url)

        for repository_id in self.readmes:
            if repository_id not in self.repositories:
                raise BuildFailure(f"Readme references missing repository {repository_id}")
