"""
Common dependencies for the Reality Check API

Services are built once in the application lifespan and stored on
``app.state``; these helpers hand them to route handlers.
"""

from typing import Optional

from fastapi import Request

from ..services.aggregator import SearchAggregator
from ..services.analysis_service import AnalysisService
from ..services.cache import CacheManager
from ..services.research_orchestrator import ResearchPipeline
from ..services.secondary_index import ElasticIndexSearch
from ..services.session_store import SessionStore


def get_pipeline(request: Request) -> ResearchPipeline:
    return request.app.state.services.pipeline


def get_sessions(request: Request) -> SessionStore:
    return request.app.state.services.sessions


def get_aggregator(request: Request) -> SearchAggregator:
    return request.app.state.services.aggregator


def get_analyzer(request: Request) -> AnalysisService:
    return request.app.state.services.analyzer


def get_cache(request: Request) -> CacheManager:
    return request.app.state.services.cache


def get_index(request: Request) -> Optional[ElasticIndexSearch]:
    return request.app.state.services.index
