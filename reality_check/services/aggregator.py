"""
Aggregate search passes: concurrent fan-out to the four source providers,
merge, deduplicate, rank and truncate, with an optional merge of the
secondary index when a query embedding is available.

The aggregator never touches the cache; cache metadata on an
:class:`AggregateResult` is added by the caller.
"""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Sequence, Tuple

import structlog

from ..core import config
from ..models.search import AggregateResult, ResultType, SearchResult
from .result_ranking import merge_ranked
from .search_apis import SourceProvider, create_source_providers
from .secondary_index import ElasticIndexSearch, create_secondary_index

logger = structlog.get_logger(__name__)

# Fan-out order is also concatenation order: earlier providers win dedup ties
PROVIDER_ORDER: Tuple[str, ...] = ("news", "web", "fact_check", "authority")

_COUNT_KEYS: Dict[str, str] = {
    "news": ResultType.NEWS.value,
    "web": ResultType.WEB.value,
    "fact_check": ResultType.FACT_CHECK.value,
    "authority": ResultType.GOVERNMENT.value,
}


class SearchAggregator:
    def __init__(
        self,
        providers: Dict[str, SourceProvider],
        index: Optional[ElasticIndexSearch] = None,
        *,
        limits: Optional[Dict[str, int]] = None,
        index_types: Optional[Sequence[str]] = None,
        index_size: int = config.SECONDARY_INDEX_SIZE,
    ):
        missing = [name for name in PROVIDER_ORDER if name not in providers]
        if missing:
            raise ValueError(f"Missing search providers: {', '.join(missing)}")
        self.providers = providers
        self.index = index
        self.limits = {
            "news": config.NEWS_RESULT_LIMIT,
            "web": config.WEB_RESULT_LIMIT,
            "fact_check": config.FACT_CHECK_RESULT_LIMIT,
            "authority": config.AUTHORITY_RESULT_LIMIT,
        }
        self.limits.update(limits or {})
        self.index_types = list(index_types or config.SECONDARY_INDEX_TYPES)
        self.index_size = index_size

    async def _fan_out(self, query: str) -> List[List[SearchResult]]:
        # Providers are fail-open; gather still waits for every one to settle
        return list(
            await asyncio.gather(
                *(self.providers[name].search(query, self.limits[name]) for name in PROVIDER_ORDER)
            )
        )

    async def aggregate(self, query: str, size: int = config.SEARCH_RESULT_SIZE) -> AggregateResult:
        batches = await self._fan_out(query)

        source_counts = {_COUNT_KEYS[name]: len(batch) for name, batch in zip(PROVIDER_ORDER, batches)}
        combined = [r for batch in batches for r in batch]
        results = merge_ranked(combined, size)

        logger.info(
            "Aggregate search complete",
            source_counts=source_counts,
            raw_total=len(combined),
            returned_count=len(results),
        )
        return AggregateResult(results=results, total=len(combined), source_counts=source_counts)

    async def aggregate_with_index(
        self,
        query: str,
        embedding: Optional[Sequence[float]],
        size: int = config.SEARCH_RESULT_SIZE,
    ) -> AggregateResult:
        """Aggregate, then merge secondary-index hits when an embedding exists.

        No embedding, no configured index, or an index failure leaves the live
        aggregate unchanged.
        """
        if not embedding or self.index is None:
            return await self.aggregate(query, size)

        batches, indexed = await asyncio.gather(
            self._fan_out(query), self._search_index(query, embedding)
        )

        source_counts = {_COUNT_KEYS[name]: len(batch) for name, batch in zip(PROVIDER_ORDER, batches)}
        live = [r for batch in batches for r in batch]
        if indexed is None:
            results = merge_ranked(live, size)
            return AggregateResult(results=results, total=len(live), source_counts=source_counts)

        results = merge_ranked(live + indexed, size)
        logger.info(
            "Aggregate search merged with index",
            live_total=len(live),
            index_total=len(indexed),
            returned_count=len(results),
        )
        return AggregateResult(
            results=results,
            total=len(live) + len(indexed),
            source_counts=source_counts,
        )

    async def _search_index(
        self, query: str, embedding: Sequence[float]
    ) -> Optional[List[SearchResult]]:
        try:
            return await self.index.hybrid_search(
                query, embedding, types=self.index_types, size=self.index_size
            )
        except Exception as e:
            logger.warning(
                "Secondary index merge skipped",
                error=str(e),
                error_type=type(e).__name__,
            )
        return None

    async def close(self) -> None:
        seen = set()
        for provider in self.providers.values():
            target = getattr(provider, "web", provider)
            if id(target) in seen:
                continue
            seen.add(id(target))
            await target.close()
        if self.index is not None:
            await self.index.close()


def create_search_aggregator() -> SearchAggregator:
    return SearchAggregator(create_source_providers(), create_secondary_index())
