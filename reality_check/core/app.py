"""
FastAPI application factory and configuration
"""

import asyncio
import uuid
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from .. import __version__
from ..logging_config import bind_request_context, clear_request_context, configure_logging
from ..services.aggregator import SearchAggregator, create_search_aggregator
from ..services.analysis_service import AnalysisService
from ..services.cache import CacheManager
from ..services.llm_client import LLMClient
from ..services.research_orchestrator import ResearchPipeline
from ..services.secondary_index import ElasticIndexSearch
from ..services.session_store import InMemorySessionStore, SessionStore
from . import config
from .config import get_environment, is_production
from .error_handlers import register_error_handlers

logger = structlog.get_logger(__name__)

SESSION_SWEEP_INTERVAL_SEC = 300


@dataclass
class AppServices:
    cache: CacheManager
    aggregator: SearchAggregator
    llm: LLMClient
    analyzer: AnalysisService
    sessions: SessionStore
    pipeline: ResearchPipeline
    index: Optional[ElasticIndexSearch] = None

    async def close(self) -> None:
        await self.aggregator.close()
        await self.llm.close()
        await self.cache.close()


def build_services() -> AppServices:
    """Wire the production services from environment configuration."""
    cache = CacheManager(config.REDIS_URL)
    aggregator = create_search_aggregator()
    llm = LLMClient()
    analyzer = AnalysisService(llm)
    sessions = InMemorySessionStore()
    pipeline = ResearchPipeline(aggregator, cache, analyzer, llm, sessions)
    return AppServices(
        cache=cache,
        aggregator=aggregator,
        llm=llm,
        analyzer=analyzer,
        sessions=sessions,
        pipeline=pipeline,
        index=aggregator.index,
    )


async def _sweep_sessions(sessions: SessionStore) -> None:
    sweep = getattr(sessions, "sweep", None)
    if sweep is None:
        return
    while True:
        await asyncio.sleep(SESSION_SWEEP_INTERVAL_SEC)
        try:
            await sweep()
        except Exception as e:
            logger.warning("Session sweep failed", error=str(e))


def create_app(services: Optional[AppServices] = None) -> FastAPI:
    """Create and configure FastAPI application

    ``services`` lets callers hand in pre-built (or fake) services; when
    omitted they are built from the environment at startup.
    """
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Reality Check API", version=__version__, environment=get_environment())
        owned = services is None
        app.state.services = build_services() if owned else services

        if owned:
            cache_ok = await app.state.services.cache.initialize()
            logger.info("Cache initialized" if cache_ok else "Cache unavailable, continuing uncached")
            if not app.state.services.llm.is_initialized():
                logger.warning("LLM client not initialized, set OPENAI_API_KEY")
            index = app.state.services.index
            if index is not None and config.ENSURE_INDEXES_ON_STARTUP:
                created = await index.ensure_indexes()
                logger.info("Secondary indexes checked", created=created)

        sweeper = asyncio.create_task(_sweep_sessions(app.state.services.sessions))
        logger.info("Reality Check API ready")

        yield

        logger.info("Shutting down Reality Check API")
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper
        if owned:
            try:
                await app.state.services.close()
            except Exception as e:
                logger.error("Error during shutdown", error=str(e))
        logger.info("Shutdown complete")

    app = FastAPI(
        title="Reality Check API",
        version=__version__,
        description="Conversational claim verification over news, web and fact-check sources",
        lifespan=lifespan,
        docs_url=None if is_production() else "/docs",
        redoc_url=None if is_production() else "/redoc",
    )
    if services is not None:
        # Available before startup so tests can reach it without a lifespan
        app.state.services = services

    setup_middleware(app)
    register_error_handlers(app)
    setup_routes(app)
    return app


def setup_middleware(app: FastAPI):
    """Configure middleware"""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.TRUSTED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "Origin", "X-User-Id", "X-Request-ID"],
        max_age=600,
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request.state.request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        bind_request_context(request_id=request.state.request_id)
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers["X-Request-ID"] = request.state.request_id
        return response

    app.add_middleware(GZipMiddleware, minimum_size=1000)


def setup_routes(app: FastAPI):
    """Configure routes"""
    from ..routes import register_all_routers

    register_all_routers(app, prefix="/api")
