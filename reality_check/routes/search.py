"""
Direct search routes: one uncached aggregate pass over every provider, and
per-index statistics from the secondary store
"""

from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException

from ..core.dependencies import get_aggregator, get_index
from ..models.conversation import SearchQueryRequest
from ..services.aggregator import SearchAggregator
from ..services.secondary_index import ElasticIndexSearch
from ..utils.errors import SecondaryIndexError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/search", tags=["search"])


@router.post("/query")
async def search_query(
    body: SearchQueryRequest,
    aggregator: SearchAggregator = Depends(get_aggregator),
) -> Dict[str, Any]:
    result = await aggregator.aggregate(body.query, size=body.size)
    logger.info("API search complete", results_count=len(result.results), total=result.total)
    return result.to_dict()


@router.get("/stats")
async def search_stats(
    index: Optional[ElasticIndexSearch] = Depends(get_index),
) -> Dict[str, Any]:
    if index is None:
        raise HTTPException(status_code=503, detail="Secondary index not configured")
    try:
        return await index.source_stats()
    except SecondaryIndexError as e:
        logger.error("Index statistics unavailable", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to retrieve stats") from e
