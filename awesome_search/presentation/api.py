"""FastAPI application exposing search, browse, stats and ingestion endpoints."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from awesome_search.config.settings import Settings
from awesome_search.container import Container, configure_container
from awesome_search.core.errors import (
    AwesomeSearchError,
    IndexUnavailable,
    InputError,
    NotFoundError,
    SignatureInvalid,
    StoreUnavailable,
)
from awesome_search.core.models.document import SearchFilters
from awesome_search.core.services.query_engine import QueryEngine
from awesome_search.core.services.refresh_service import RefreshService, verify_signature
from awesome_search.core.services.snapshot_manager import SnapshotManager
from awesome_search.presentation.schemas import (
    ErrorResponse,
    IngestionNotification,
    WebhookAck,
    get_error_code,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[AwesomeSearchError], int]] = [
    (InputError, 400),
    (SignatureInvalid, 401),
    (NotFoundError, 404),
    (IndexUnavailable, 503),
    (StoreUnavailable, 503),
]


def _error_response(status_code: int, message: str) -> JSONResponse:
    body = ErrorResponse(error=message, code=get_error_code(status_code))
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


async def _handle_service_error(request: Request, exc: AwesomeSearchError) -> JSONResponse:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return _error_response(status_code, str(exc))

    logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
    return _error_response(500, "Internal server error")


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
    return _error_response(500, "Internal server error")


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part not in ("query", "path"))
        details.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return _error_response(400, "; ".join(details) or "Invalid request")


def _get_container(request: Request) -> Container:
    return request.app.state.container


def get_engine(request: Request) -> QueryEngine:
    return _get_container(request).resolve(QueryEngine)


def get_refresh(request: Request) -> RefreshService:
    return _get_container(request).resolve(RefreshService)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def read_body(request: Request) -> bytes:
    return await request.body()


def create_app(
    app_settings: Optional[Settings] = None,
    app_container: Optional[Container] = None,
    start_refresher: bool = True,
) -> FastAPI:
    """Build the API application.

    Args:
        app_settings: Settings, the environment-backed defaults when omitted.
        app_container: Preconfigured container; a fresh one is configured otherwise.
        start_refresher: Run the background refresh loop during the app lifespan.

    Returns:
        FastAPI application.
    """
    app_settings = app_settings or Settings()
    if app_container is None:
        app_container = configure_container(app_settings, Container())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        refresh = app_container.resolve(RefreshService)
        if not app_container.resolve(SnapshotManager).is_ready:
            refresh.refresh()
        if start_refresher:
            refresh.start()

        yield

        refresh.stop()

    app = FastAPI(
        title="Awesome Search API",
        description="Full-text search over curated awesome lists",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.container = app_container
    app.state.settings = app_settings

    app.add_exception_handler(AwesomeSearchError, _handle_service_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.add_exception_handler(Exception, _handle_unexpected_error)

    @app.get("/api/search")
    def search(
        q: Optional[str] = Query(None),
        page: int = Query(1),
        limit: Optional[int] = Query(None),
        language: Optional[str] = Query(None),
        category: Optional[str] = Query(None),
        min_stars: Optional[int] = Query(None, alias="minStars"),
        sort_by: Optional[str] = Query(None, alias="sortBy"),
        engine: QueryEngine = Depends(get_engine),
    ):
        filters = SearchFilters(
            language=language or None,
            min_stars=min_stars,
            category=category or None,
        )
        return engine.search(q, filters, sort_by, page, limit).to_dict()

    @app.get("/api/lists")
    def lists(
        category: Optional[str] = Query(None),
        engine: QueryEngine = Depends(get_engine),
    ):
        items, categories = engine.catalog(category or None)
        return {
            "lists": [item.to_dict() for item in items],
            "categories": [c.to_dict() for c in categories],
            "total": len(items),
        }

    @app.get("/api/lists/{list_id}")
    def list_detail(
        list_id: int,
        page: int = Query(1),
        limit: Optional[int] = Query(None),
        engine: QueryEngine = Depends(get_engine),
    ):
        detail = engine.list_detail(list_id, page, limit)
        return {
            "list": detail.list.to_dict(),
            "repositories": detail.repositories.to_dict(),
        }

    @app.get("/api/repositories/{repository_id}")
    def repository_detail(repository_id: int, engine: QueryEngine = Depends(get_engine)):
        repo, readme = engine.repository_detail(repository_id)
        return {
            **repo.to_dict(),
            "readme": {"content": readme.raw_content} if readme else None,
        }

    @app.get("/api/stats")
    def stats(
        engine: QueryEngine = Depends(get_engine),
        settings: Settings = Depends(get_settings),
    ):
        overview = engine.overview(settings.trending_limit, settings.languages_limit)
        return {
            "stats": overview.stats.to_dict(),
            "languages": [lang.to_dict() for lang in overview.languages],
            "categories": [c.to_dict() for c in overview.categories],
            "trending": [repo.to_dict() for repo in overview.trending],
        }

    @app.get("/api/db-version")
    def db_version(refresh: RefreshService = Depends(get_refresh)):
        return JSONResponse(
            content=refresh.version_info(),
            headers={"Cache-Control": "no-store"},
        )

    @app.post("/api/webhook", response_model=WebhookAck)
    def webhook(
        background_tasks: BackgroundTasks,
        body: bytes = Depends(read_body),
        x_github_secret: Optional[str] = Header(None),
        refresh: RefreshService = Depends(get_refresh),
        settings: Settings = Depends(get_settings),
    ):
        verify_signature(body, x_github_secret, settings.webhook_secret)
        if not settings.webhook_secret:
            logger.warning("Webhook secret not configured, accepting unsigned notification")

        try:
            payload = IngestionNotification.model_validate_json(body)
        except ValidationError as e:
            raise InputError(f"Malformed notification payload: {e.error_count()} error(s)") from e

        refresh.record_notification(payload.model_dump())
        background_tasks.add_task(refresh.refresh)
        return WebhookAck(success=True, message="Database metadata updated")

    @app.get("/health")
    def health(request: Request):
        snapshots = _get_container(request).resolve(SnapshotManager)
        current = snapshots.current()
        return {
            "status": "ok" if current is not None else "starting",
            "generation": current.number if current is not None else None,
            "liveGenerations": snapshots.live_generations(),
        }

    return app
