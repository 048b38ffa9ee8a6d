import json
import logging
import sys
from datetime import datetime, timezone

import httpx

from awesome_search.config.settings import settings
from awesome_search.container import configure_container, container
from awesome_search.core.errors import AwesomeSearchError, BuildFailure, StoreUnavailable
from awesome_search.core.protocols.snapshot_source import SnapshotSourceProtocol
from awesome_search.core.services.index_builder import IndexBuilder
from awesome_search.core.services.query_engine import QueryEngine
from awesome_search.core.services.refresh_service import RefreshService, sign_payload
from awesome_search.core.services.snapshot_manager import SnapshotManager

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _build_and_publish() -> bool:
    """One-shot load, build and publish into the container's manager."""
    source = container.resolve(SnapshotSourceProtocol)
    try:
        snapshot = source.load()
        generation = container.resolve(IndexBuilder).build(snapshot)
    except StoreUnavailable as e:
        logger.error(str(e))
        return False
    except BuildFailure as e:
        logger.error(f"Build failed: {e}")
        return False

    container.resolve(SnapshotManager).publish(generation)
    return True


def cmd_serve():
    """Serve command - build, start refresher, run API."""
    import uvicorn

    from awesome_search.presentation.api import create_app

    configure_container(settings)

    source = container.resolve(SnapshotSourceProtocol)
    if not source.exists():
        logger.error(f"Database file not found at {settings.awesome_db_path}")
        sys.exit(1)

    if not container.resolve(RefreshService).refresh(force=True):
        logger.warning("Initial build failed, serving will start once a build succeeds")

    app = create_app(app_settings=settings, app_container=container)
    logger.info(f"Starting API on {settings.api_host}:{settings.api_port}")
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


def cmd_build():
    """Build command - build the index once and report."""
    configure_container(settings)
    if not _build_and_publish():
        sys.exit(1)

    generation = container.resolve(SnapshotManager).current()
    print(f"Snapshot:  {generation.snapshot_id}")
    print(f"Documents: {len(generation.documents)}")
    print(f"Terms:     {len(generation.index.vocabulary)}")
    print(f"Hash:      {generation.content_hash}")


def cmd_search(args: list[str]):
    """Search command - build once and print the first page."""
    if not args:
        print("Usage: awesome-search search <query>")
        sys.exit(1)

    configure_container(settings)
    if not _build_and_publish():
        sys.exit(1)

    try:
        page = container.resolve(QueryEngine).search(" ".join(args))
    except AwesomeSearchError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"{page.total} results ({page.total_pages} pages)")
    for i, result in enumerate(page.results, 1):
        stars = result.stars if result.stars is not None else "-"
        print(f"[{i}] {result.repository_name} ★{stars} {result.repository_url}")
        if result.snippet:
            print(f"    {result.snippet}")


def cmd_notify(args: list[str]):
    """Notify command - post signed ingestion metadata to a running server."""
    if not args:
        print("Usage: awesome-search notify <base-url>")
        sys.exit(1)

    configure_container(settings)
    source = container.resolve(SnapshotSourceProtocol)
    try:
        snapshot = source.load()
    except AwesomeSearchError as e:
        logger.error(f"Cannot read database: {e}")
        sys.exit(1)

    payload = {
        "version": snapshot.snapshot_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "lists_count": len(snapshot.lists),
        "repos_count": len(snapshot.repositories),
    }
    body = json.dumps(payload).encode()
    headers = {"Content-Type": "application/json"}
    if settings.webhook_secret:
        headers["x-github-secret"] = sign_payload(body, settings.webhook_secret)

    url = f"{args[0].rstrip('/')}/api/webhook"
    try:
        resp = httpx.post(url, content=body, headers=headers, timeout=10)
    except httpx.HTTPError as e:
        logger.error(f"Notification failed: {e}")
        sys.exit(1)

    if resp.status_code != 200:
        logger.error(f"Notification rejected ({resp.status_code}): {resp.text}")
        sys.exit(1)
    logger.info(f"Notified {url}: version={payload['version']}")


def main():
    """CLI entry point."""
    setup_logging()

    if len(sys.argv) < 2:
        print("Usage: awesome-search <command>")
        print("Commands: serve, build, search <query>, notify <base-url>")
        sys.exit(1)

    command = sys.argv[1]

    if command == "serve":
        cmd_serve()
    elif command == "build":
        cmd_build()
    elif command == "search":
        cmd_search(sys.argv[2:])
    elif command == "notify":
        cmd_notify(sys.argv[2:])
    else:
        print(f"Unknown command: {command}")
        sys.exit(1)


if __name__ == "__main__":
    main()
