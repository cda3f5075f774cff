"""
Secondary indexed store: Elasticsearch hybrid keyword + vector search over
pre-indexed news, studies, fact-checks and government documents, plus the
index creation, ingestion and statistics calls that keep the store populated.

Search and ingestion failures raise :class:`SecondaryIndexError`; the
aggregator treats a search failure as "skip the merge".
"""

import os
from typing import Any, Dict, List, Optional, Sequence

import structlog
from elasticsearch import AsyncElasticsearch

from ..core import config
from ..models.search import ResultType, SearchResult
from ..utils.errors import SecondaryIndexError
from ..utils.url_utils import extract_domain
from .credibility import web_credibility

logger = structlog.get_logger(__name__)

# Logical index name -> (physical suffix, result type)
INDEX_TYPES: Dict[str, tuple] = {
    "news": ("news", ResultType.NEWS),
    "studies": ("studies", ResultType.WEB),
    "factChecks": ("fact_checks", ResultType.FACT_CHECK),
    "government": ("government", ResultType.GOVERNMENT),
    "social": ("social", ResultType.WEB),
}

TYPE_SPECIFIC_FIELDS: Dict[str, Dict[str, Any]] = {
    "news": {"outlet": {"type": "keyword"}, "bias_rating": {"type": "keyword"}},
    "studies": {
        "journal": {"type": "keyword"},
        "doi": {"type": "keyword"},
        "peer_reviewed": {"type": "boolean"},
    },
    "factChecks": {
        "claim": {"type": "text"},
        "verdict": {"type": "keyword"},
        "factchecker": {"type": "keyword"},
    },
}


class ElasticIndexSearch:
    """Hybrid search over, and management of, the ``<prefix>_*`` indexes."""

    name = "index"

    def __init__(
        self,
        client: Optional[AsyncElasticsearch] = None,
        *,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        basic_auth: Optional[tuple] = None,
        index_prefix: str = config.ELASTICSEARCH_INDEX_PREFIX,
        embedding_dims: int = config.INDEX_EMBEDDING_DIMS,
    ):
        if client is None:
            kwargs: Dict[str, Any] = {
                "request_timeout": 30,
                "max_retries": 3,
                "retry_on_timeout": True,
            }
            if api_key:
                kwargs["api_key"] = api_key
            elif basic_auth:
                kwargs["basic_auth"] = basic_auth
            client = AsyncElasticsearch([url or "http://localhost:9200"], **kwargs)
        self.es_client = client
        self.index_prefix = index_prefix
        self.embedding_dims = embedding_dims

    def index_names(self, types: Optional[Sequence[str]] = None) -> List[str]:
        selected = list(types) if types else list(INDEX_TYPES)
        return [self.index_name(t) for t in selected if t in INDEX_TYPES]

    def build_query(self, query: str, embedding: Optional[Sequence[float]]) -> Dict[str, Any]:
        should: List[Dict[str, Any]] = [
            {
                "multi_match": {
                    "query": query,
                    "fields": ["title^2", "content", "claim^1.5"],
                    "type": "best_fields",
                    "fuzziness": "AUTO",
                }
            }
        ]
        if embedding:
            should.append(
                {
                    "script_score": {
                        "query": {"match_all": {}},
                        "script": {
                            "source": "cosineSimilarity(params.query_vector, 'embeddings') + 1.0",
                            "params": {"query_vector": list(embedding)},
                        },
                    }
                }
            )
        return {"bool": {"should": should}}

    async def hybrid_search(
        self,
        query: str,
        embedding: Optional[Sequence[float]] = None,
        types: Optional[Sequence[str]] = None,
        size: int = 10,
    ) -> List[SearchResult]:
        indexes = self.index_names(types)
        if not indexes:
            return []
        try:
            response = await self.es_client.search(
                index=",".join(indexes),
                query=self.build_query(query, embedding),
                sort=[
                    {"credibilityScore": {"order": "desc"}},
                    {"publishDate": {"order": "desc"}},
                    "_score",
                ],
                highlight={
                    "fields": {
                        "title": {},
                        "content": {"fragment_size": 150, "number_of_fragments": 3},
                    }
                },
                size=size,
                ignore_unavailable=True,
            )
        except Exception as e:
            raise SecondaryIndexError(f"Elasticsearch hybrid search failed: {e}") from e

        body = getattr(response, "body", response)
        hits = (body.get("hits") or {}).get("hits") or []
        results = [self._hit_to_result(hit) for hit in hits]
        logger.info("Index hybrid search complete", indexes=indexes, results_count=len(results))
        return results

    def _hit_to_result(self, hit: Dict[str, Any]) -> SearchResult:
        doc = hit.get("_source") or {}
        index = hit.get("_index") or ""
        result_type = ResultType.WEB
        for suffix, rtype in INDEX_TYPES.values():
            if index.endswith(f"_{suffix}"):
                result_type = rtype
                break
        url = doc.get("url") or ""
        credibility = doc.get("credibilityScore")
        if credibility is None:
            credibility = web_credibility(extract_domain(url))
        highlight = hit.get("highlight") or {}
        return SearchResult(
            title=doc.get("title") or "",
            content=doc.get("content") or doc.get("claim") or "",
            source=doc.get("source") or extract_domain(url) or "unknown",
            url=url,
            publish_date=doc.get("publishDate"),
            credibility_score=credibility,
            result_type=result_type,
            highlights={
                "title": highlight.get("title") or [],
                "content": highlight.get("content") or [],
            },
            verdict=doc.get("verdict"),
            origin=self.name,
        )

    # ────────────────────────────────────────────────────────────
    #  Index management
    # ────────────────────────────────────────────────────────────

    def index_name(self, index_type: str) -> str:
        if index_type not in INDEX_TYPES:
            raise SecondaryIndexError(f"Unknown index type: {index_type}")
        return f"{self.index_prefix}_{INDEX_TYPES[index_type][0]}"

    def index_mapping(self, index_type: str) -> Dict[str, Any]:
        properties: Dict[str, Any] = {
            "title": {"type": "text", "analyzer": "standard"},
            "content": {"type": "text", "analyzer": "standard"},
            "url": {"type": "keyword"},
            "source": {"type": "keyword"},
            "publishDate": {"type": "date"},
            "credibilityScore": {"type": "float"},
            "tags": {"type": "keyword"},
            "embeddings": {"type": "dense_vector", "dims": self.embedding_dims},
        }
        properties.update(TYPE_SPECIFIC_FIELDS.get(index_type, {}))
        return {
            "settings": {"number_of_shards": 1, "number_of_replicas": 0},
            "mappings": {"properties": properties},
        }

    async def ensure_indexes(self) -> List[str]:
        """Create every missing ``<prefix>_*`` index; returns the names created.

        A failure on one index is logged and the rest are still attempted.
        """
        created: List[str] = []
        for index_type in INDEX_TYPES:
            name = self.index_name(index_type)
            try:
                if await self.es_client.indices.exists(index=name):
                    continue
                await self.es_client.indices.create(index=name, **self.index_mapping(index_type))
            except Exception as e:
                logger.error("Failed to create index", index=name, error=str(e))
                continue
            logger.info("Created index", index=name)
            created.append(name)
        return created

    async def index_document(
        self,
        index_type: str,
        document: Dict[str, Any],
        doc_id: Optional[str] = None,
    ) -> Optional[str]:
        name = self.index_name(index_type)
        try:
            response = await self.es_client.index(index=name, id=doc_id, document=document)
        except Exception as e:
            raise SecondaryIndexError(f"Indexing into {name} failed: {e}") from e
        body = getattr(response, "body", response)
        return body.get("_id", doc_id)

    async def bulk_index(
        self,
        index_type: str,
        documents: Sequence[Dict[str, Any]],
        refresh: bool = True,
    ) -> Dict[str, int]:
        """Index ``documents`` in one bulk request; per-document errors are counted, not raised."""
        name = self.index_name(index_type)
        operations: List[Dict[str, Any]] = []
        for doc in documents:
            operations.append({"index": {"_index": name}})
            operations.append(doc)
        if not operations:
            return {"indexed": 0, "failed": 0}

        try:
            response = await self.es_client.bulk(operations=operations, refresh=refresh)
        except Exception as e:
            raise SecondaryIndexError(f"Bulk indexing into {name} failed: {e}") from e

        body = getattr(response, "body", response)
        items = body.get("items") or []
        errors = [
            (item.get("index") or {}).get("error")
            for item in items
            if (item.get("index") or {}).get("error")
        ]
        if errors:
            logger.warning(
                "Some documents failed to index",
                index=name,
                failed=len(errors),
                first_error=errors[0],
            )
        logger.info("Bulk index complete", index=name, indexed=len(items) - len(errors))
        return {"indexed": len(items) - len(errors), "failed": len(errors)}

    async def source_stats(self) -> Dict[str, Dict[str, Any]]:
        """Document count, top sources and mean credibility for each index."""
        stats: Dict[str, Dict[str, Any]] = {}
        for index_type in INDEX_TYPES:
            name = self.index_name(index_type)
            try:
                response = await self.es_client.search(
                    index=name,
                    size=0,
                    track_total_hits=True,
                    aggs={
                        "sources": {"terms": {"field": "source", "size": 50}},
                        "credibility_avg": {"avg": {"field": "credibilityScore"}},
                    },
                )
            except Exception as e:
                raise SecondaryIndexError(f"Statistics query on {name} failed: {e}") from e

            body = getattr(response, "body", response)
            total = (body.get("hits") or {}).get("total") or 0
            aggs = body.get("aggregations") or {}
            stats[index_type] = {
                "total": total.get("value", 0) if isinstance(total, dict) else int(total),
                "sources": [
                    {"source": b.get("key"), "count": b.get("doc_count", 0)}
                    for b in (aggs.get("sources") or {}).get("buckets") or []
                ],
                "avgCredibility": (aggs.get("credibility_avg") or {}).get("value"),
            }
        return stats

    async def ping(self) -> bool:
        try:
            return bool(await self.es_client.ping())
        except Exception as e:
            logger.warning("Elasticsearch ping failed", error=str(e))
            return False

    async def close(self) -> None:
        await self.es_client.close()


def create_secondary_index() -> Optional[ElasticIndexSearch]:
    """Index client from env, or ``None`` when ELASTICSEARCH_URL is unset."""
    url = os.getenv("ELASTICSEARCH_URL")
    if not url:
        return None
    user = os.getenv("ELASTICSEARCH_USERNAME")
    password = os.getenv("ELASTICSEARCH_PASSWORD")
    return ElasticIndexSearch(
        url=url,
        api_key=os.getenv("ELASTICSEARCH_API_KEY") or None,
        basic_auth=(user, password) if user and password else None,
    )
