import sqlite3
from dataclasses import dataclass
from pathlib import Path

import pytest

from awesome_search.core.models.entities import AwesomeList, DocumentSnapshot, Readme, Repository
from awesome_search.core.services.index_builder import IndexBuilder
from awesome_search.core.services.query_engine import QueryEngine
from awesome_search.core.services.snapshot_manager import SnapshotManager
from awesome_search.core.strategies.scoring import Bm25Scorer
from awesome_search.core.strategies.snippets import SnippetExtractor
from awesome_search.core.strategies.tokenizer import Tokenizer

LISTS = [
    AwesomeList(
        id=1, name="Awesome React", url="https://github.com/enaqx/awesome-react",
        category="Front-End Development", stars=60000, last_updated="2024-05-01T10:00:00Z",
    ),
    AwesomeList(
        id=2, name="Awesome Kubernetes", url="https://github.com/ramitsurana/awesome-kubernetes",
        category="Platforms", stars=15000, last_updated="2024-06-01T10:00:00Z",
    ),
    AwesomeList(
        id=3, name="Awesome Python", url="https://github.com/vinta/awesome-python",
        category="Programming Languages", stars=None, last_updated=None,
    ),
    AwesomeList(
        id=4, name="Awesome Go", url="https://github.com/avelino/awesome-go",
        category="Programming Languages", stars=15000, last_updated="2024-01-01T10:00:00Z",
    ),
]

REPOSITORIES = [
    Repository(
        id=1, awesome_list_id=1, name="redux", url="https://github.com/reduxjs/redux",
        description="Predictable state container for JavaScript apps", stars=8000,
        language="JavaScript", topics="state,flux", last_commit="2024-03-01T00:00:00Z",
    ),
    Repository(
        id=2, awesome_list_id=1, name="redux-toolkit", url="https://github.com/reduxjs/redux-toolkit",
        description="The official, opinionated toolset for efficient development", stars=3000,
        language="TypeScript", topics="toolkit", last_commit="2024-06-01T00:00:00Z",
    ),
    Repository(
        id=3, awesome_list_id=2, name="helm", url="https://github.com/helm/helm",
        description="The package manager", stars=25000, language="Go",
        topics="kubernetes,charts", last_commit="2024-05-15T00:00:00Z",
    ),
    Repository(
        id=4, awesome_list_id=2, name="k9s", url="https://github.com/derailed/k9s",
        description="Terminal UI to interact with your Kubernetes clusters", stars=None,
        language="Go", topics=None, last_commit=None,
    ),
    Repository(
        id=5, awesome_list_id=3, name="psycopg", url="https://github.com/psycopg/psycopg",
        description="PostgreSQL adapter for Python", stars=1500, language="Python",
        topics="database", last_commit="2023-11-20T00:00:00Z",
    ),
    Repository(
        id=6, awesome_list_id=1, name="zustand", url="https://github.com/pmndrs/zustand",
        description="Bear necessities for state management in React", stars=40000,
        language="TypeScript", topics="state,hooks", last_commit="2024-06-10T00:00:00Z",
    ),
]

READMES = [
    Readme(id=1, repository_id=1, content="Redux is a predictable state container for apps.",
           raw_content="# Redux\nRedux is a predictable state container for apps."),
    Readme(id=2, repository_id=2, content=None,
           raw_content="# Redux Toolkit\nThe official way to write Redux logic."),
    Readme(id=3, repository_id=3, content="Helm helps you manage Kubernetes applications with charts.",
           raw_content="# Helm"),
    Readme(id=4, repository_id=5, content="Psycopg is the most popular PostgreSQL database adapter.",
           raw_content="# Psycopg"),
]


def make_snapshot(
    snapshot_id: str = "test-snapshot",
    lists=None,
    repositories=None,
    readmes=None,
) -> DocumentSnapshot:
    return DocumentSnapshot.from_records(
        snapshot_id=snapshot_id,
        lists=LISTS if lists is None else lists,
        repositories=REPOSITORIES if repositories is None else repositories,
        readmes=READMES if readmes is None else readmes,
    )


def make_widget_snapshot(count: int = 45) -> DocumentSnapshot:
    """Many similar repositories for pagination checks."""
    lists = [AwesomeList(id=1, name="Awesome Widgets", url="https://example.com/widgets", category="Tools")]
    repos = [
        Repository(
            id=i, awesome_list_id=1, name=f"widget-{i}", url=f"https://example.com/widget-{i}",
            description="widget toolkit", stars=(i * 37) % 11 if i % 7 else None,
            language="Rust" if i % 2 else "Go",
        )
        for i in range(1, count + 1)
    ]
    return make_snapshot("widgets", lists=lists, repositories=repos, readmes=[])


@dataclass
class Stack:
    tokenizer: Tokenizer
    builder: IndexBuilder
    manager: SnapshotManager
    engine: QueryEngine

    def publish(self, snapshot: DocumentSnapshot):
        return self.manager.publish(self.builder.build(snapshot))


def make_stack(max_page_size: int = 100, allow_empty: bool = False) -> Stack:
    tokenizer = Tokenizer()
    builder = IndexBuilder(tokenizer, allow_empty=allow_empty)
    manager = SnapshotManager()
    engine = QueryEngine(
        snapshots=manager,
        tokenizer=tokenizer,
        scorer=Bm25Scorer(),
        snippets=SnippetExtractor(tokenizer),
        max_page_size=max_page_size,
    )
    return Stack(tokenizer=tokenizer, builder=builder, manager=manager, engine=engine)


@pytest.fixture
def stack() -> Stack:
    s = make_stack()
    s.publish(make_snapshot())
    return s


@pytest.fixture
def engine(stack) -> QueryEngine:
    return stack.engine


SCHEMA = """
CREATE TABLE awesome_lists (
  id INTEGER PRIMARY KEY, name TEXT NOT NULL, url TEXT NOT NULL UNIQUE,
  description TEXT, category TEXT, stars INTEGER, forks INTEGER, last_commit TEXT,
  level INTEGER, parent_id INTEGER, added_at TEXT, last_updated TEXT
);
CREATE TABLE repositories (
  id INTEGER PRIMARY KEY, awesome_list_id INTEGER NOT NULL, name TEXT NOT NULL,
  url TEXT NOT NULL UNIQUE, description TEXT, stars INTEGER, forks INTEGER,
  watchers INTEGER, language TEXT, topics TEXT, last_commit TEXT, created_at TEXT,
  added_at TEXT
);
CREATE TABLE readmes (
  id INTEGER PRIMARY KEY, repository_id INTEGER NOT NULL UNIQUE, content TEXT,
  raw_content TEXT, version_hash TEXT, indexed_at TEXT
);
"""


def write_database(path: Path, lists=None, repositories=None, readmes=None) -> Path:
    """Write records into a fresh SQLite file with the full schema."""
    if path.exists():
        path.unlink()
    conn = sqlite3.connect(path)
    try:
        conn.executescript(SCHEMA)
        for table, records in (
            ("awesome_lists", LISTS if lists is None else lists),
            ("repositories", REPOSITORIES if repositories is None else repositories),
            ("readmes", READMES if readmes is None else readmes),
        ):
            for record in records:
                row = vars(record)
                columns = ", ".join(row)
                marks = ", ".join("?" for _ in row)
                conn.execute(f"INSERT INTO {table} ({columns}) VALUES ({marks})", tuple(row.values()))
        conn.commit()
    finally:
        conn.close()
    return path


@pytest.fixture
def db_path(tmp_path) -> Path:
    return write_database(tmp_path / "awesome.db")
