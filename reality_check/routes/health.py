"""
Health and cache statistics routes
"""

from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from .. import __version__
from ..core.dependencies import get_cache
from ..services.cache import CacheManager

router = APIRouter(prefix="/health", tags=["health"])
logger = structlog.get_logger(__name__)


async def _component_status(request: Request) -> Dict[str, str]:
    services = request.app.state.services
    components: Dict[str, str] = {}

    components["redis"] = "healthy" if await services.cache.ping() else "unhealthy"
    # LLM readiness only: a live completion on every health check is too expensive
    components["llm"] = "healthy" if services.llm.is_initialized() else "unhealthy"
    if services.index is None:
        components["elasticsearch"] = "not_configured"
    else:
        components["elasticsearch"] = "healthy" if await services.index.ping() else "unhealthy"
    return components


@router.get("")
async def health(request: Request):
    components = await _component_status(request)
    healthy = all(status in ("healthy", "not_configured") for status in components.values())
    if not healthy:
        logger.warning("Health check degraded", components=components)
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "degraded",
            "version": __version__,
            "components": components,
        },
    )


@router.get("/cache-stats")
async def cache_stats(cache: CacheManager = Depends(get_cache)) -> Dict[str, Any]:
    return await cache.get_cache_stats()
