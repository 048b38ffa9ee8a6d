import logging
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from .config.settings import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Container:
    """Registry wiring the search stack.

    Services are shared by default: the query engine, refresh service and API
    must all see the same snapshot manager.
    """

    _factories: dict[type, Callable[[], Any]] = field(default_factory=dict)
    _instances: dict[type, Any] = field(default_factory=dict)
    _transient: set[type] = field(default_factory=set)

    def register(
        self, interface: type[T], factory: Callable[[], T], singleton: bool = True
    ) -> None:
        """Register factory for interface, dropping any instance already built.

        Args:
            interface: Interface type.
            factory: Factory function.
            singleton: Cache the first instance; False builds a new one per resolve.
        """
        self._factories[interface] = factory
        self._instances.pop(interface, None)
        if singleton:
            self._transient.discard(interface)
        else:
            self._transient.add(interface)

    def override(self, interface: type[T], instance: T) -> None:
        """Pin a prebuilt instance, e.g. a test double for the snapshot source."""
        self._instances[interface] = instance

    def __contains__(self, interface: type) -> bool:
        return interface in self._instances or interface in self._factories

    def resolve(self, interface: type[T]) -> T:
        if interface in self._instances:
            return self._instances[interface]

        try:
            factory = self._factories[interface]
        except KeyError:
            raise KeyError(f"{interface.__name__} is not registered") from None

        instance = factory()
        if interface not in self._transient:
            self._instances[interface] = instance
        return instance

    def reset(self) -> None:
        """Drop built instances so the next resolve rebuilds from settings."""
        self._instances.clear()


container = Container()


def configure_container(settings: Settings, target: Container | None = None) -> Container:
    """Configure container with all dependencies.

    Args:
        settings: Application settings.
        target: Container to configure, the module-level one by default.

    Returns:
        Configured container.
    """
    from .core.protocols.snapshot_source import SnapshotSourceProtocol
    from .core.services.index_builder import IndexBuilder
    from .core.services.query_engine import QueryEngine
    from .core.services.refresh_service import RefreshService
    from .core.services.snapshot_manager import SnapshotManager
    from .core.strategies.scoring import Bm25Scorer
    from .core.strategies.snippets import SnippetExtractor
    from .core.strategies.tokenizer import Tokenizer
    from .infrastructure.stores.sqlite_store import SqliteSnapshotSource

    target = target or container

    target.register(Tokenizer, Tokenizer)

    target.register(
        SnapshotSourceProtocol,
        lambda: SqliteSnapshotSource(settings.awesome_db_path),
    )

    target.register(SnapshotManager, SnapshotManager)

    target.register(
        IndexBuilder,
        lambda: IndexBuilder(
            tokenizer=target.resolve(Tokenizer),
            allow_empty=settings.allow_empty_snapshot,
        ),
    )

    target.register(
        QueryEngine,
        lambda: QueryEngine(
            snapshots=target.resolve(SnapshotManager),
            tokenizer=target.resolve(Tokenizer),
            scorer=Bm25Scorer(
                k1=settings.bm25_k1,
                b=settings.bm25_b,
                field_weights=settings.field_weights,
            ),
            snippets=SnippetExtractor(
                tokenizer=target.resolve(Tokenizer),
                max_tokens=settings.snippet_tokens,
                highlight_open=settings.highlight_open,
                highlight_close=settings.highlight_close,
                ellipsis=settings.snippet_ellipsis,
            ),
            default_page_size=settings.search_default_limit,
            max_page_size=settings.search_max_limit,
            list_page_size=settings.list_default_limit,
        ),
    )

    target.register(
        RefreshService,
        lambda: RefreshService(
            source=target.resolve(SnapshotSourceProtocol),
            builder=target.resolve(IndexBuilder),
            snapshots=target.resolve(SnapshotManager),
            metadata_path=settings.metadata_path,
            poll_seconds=settings.refresh_poll_seconds,
        ),
    )

    logger.info("Container configured")
    return target
