"""
Normalized search data model shared by providers, the aggregator and the cache.

Every provider maps its payload into :class:`SearchResult`; raw provider
payloads never travel further than the provider that fetched them.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from ..utils.date_utils import iso_or_none, safe_parse_date


class ResultType(str, Enum):
    NEWS = "news"
    WEB = "web"
    FACT_CHECK = "factCheck"
    GOVERNMENT = "government"


# Tie-break when credibility is equal (higher wins)
TYPE_PRIORITY: Dict[ResultType, int] = {
    ResultType.GOVERNMENT: 4,
    ResultType.FACT_CHECK: 3,
    ResultType.NEWS: 2,
    ResultType.WEB: 1,
}


def _empty_highlights() -> Dict[str, List[str]]:
    return {"title": [], "content": []}


@dataclass
class SearchResult:
    title: str
    content: str
    source: str
    url: str
    publish_date: Optional[Any] = None
    credibility_score: float = 0.5
    result_type: ResultType = ResultType.WEB
    highlights: Dict[str, List[str]] = field(default_factory=_empty_highlights)
    # Linear relevance assigned at ranking time
    score: float = 0.0
    verdict: Optional[str] = None
    origin: str = ""

    def __post_init__(self):
        self.title = self.title or ""
        self.content = self.content or ""
        self.source = self.source or "unknown"
        self.url = self.url or ""
        self.publish_date = safe_parse_date(self.publish_date)
        try:
            score = float(self.credibility_score)
        except (TypeError, ValueError):
            score = 0.5
        self.credibility_score = min(1.0, max(0.0, score))
        if not isinstance(self.result_type, ResultType):
            self.result_type = ResultType(self.result_type)
        highlights = _empty_highlights()
        for key, values in (self.highlights or {}).items():
            highlights[key] = [v for v in (values or []) if isinstance(v, str) and v]
        self.highlights = highlights

    @property
    def dedup_key(self) -> str:
        return f"{self.title}-{self.source}"

    @property
    def type_priority(self) -> int:
        return TYPE_PRIORITY.get(self.result_type, 0)

    def with_score(self, score: float) -> "SearchResult":
        return replace(self, score=score)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "title": self.title,
            "content": self.content,
            "source": self.source,
            "url": self.url,
            "publishDate": iso_or_none(self.publish_date),
            "credibilityScore": self.credibility_score,
            "type": self.result_type.value,
            "highlights": {k: list(v) for k, v in self.highlights.items()},
            "score": self.score,
        }
        if self.verdict is not None:
            data["verdict"] = self.verdict
        if self.origin:
            data["origin"] = self.origin
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchResult":
        return cls(
            title=data.get("title", ""),
            content=data.get("content", ""),
            source=data.get("source", ""),
            url=data.get("url", ""),
            publish_date=data.get("publishDate"),
            credibility_score=data.get("credibilityScore", 0.5),
            result_type=data.get("type", ResultType.WEB.value),
            highlights=data.get("highlights") or {},
            score=float(data.get("score") or 0.0),
            verdict=data.get("verdict"),
            origin=data.get("origin", ""),
        )


@dataclass(frozen=True)
class AggregateResult:
    """Output of one aggregate pass.

    ``total`` is the raw number of hits returned by every source consulted,
    counted before deduplication; ``len(results)`` is the deduplicated,
    truncated count. The two are never conflated.
    """

    results: List[SearchResult]
    total: int
    source_counts: Dict[str, int] = field(default_factory=dict)
    from_cache: bool = False
    cache_age_ms: Optional[int] = None

    @classmethod
    def empty(cls) -> "AggregateResult":
        return cls(results=[], total=0, source_counts={})

    def with_cache_metadata(self, cache_age_ms: int) -> "AggregateResult":
        return replace(self, from_cache=True, cache_age_ms=max(0, int(cache_age_ms)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": [r.to_dict() for r in self.results],
            "total": self.total,
            "sourceCounts": dict(self.source_counts),
            "fromCache": self.from_cache,
            "cacheAgeMs": self.cache_age_ms,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AggregateResult":
        return cls(
            results=[SearchResult.from_dict(r) for r in data.get("results") or []],
            total=int(data.get("total") or 0),
            source_counts={str(k): int(v) for k, v in (data.get("sourceCounts") or {}).items()},
            from_cache=bool(data.get("fromCache", False)),
            cache_age_ms=data.get("cacheAgeMs"),
        )
