"""
Search-API integrations for the Reality Check research pipeline
(NewsAPI, Google Custom Search, and two query-shaped views over Google:
fact-check and authority search).

Every provider honours the same boundary contract: ``search(query, limit)``
returns a list of normalized :class:`SearchResult` objects and never raises.
Transport errors, non-2xx statuses, malformed JSON and missing credentials
are logged and turned into an empty list so one outage cannot abort an
aggregate pass.
"""

from __future__ import annotations

import asyncio
import os
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import aiohttp
import structlog

from ..core import config
from ..models.search import ResultType, SearchResult
from ..utils.date_utils import safe_parse_date
from ..utils.errors import RetryableProviderError
from ..utils.retry import search_retrying
from ..utils.url_utils import display_source, extract_domain
from .credibility import (
    AUTHORITY_BOOST,
    FACT_CHECK_BOOST,
    boost,
    extract_verdict,
    news_credibility,
    web_credibility,
)

logger = structlog.get_logger(__name__)

FACT_CHECK_TERMS = "fact check OR debunked OR verified OR false OR true"
FACT_CHECK_SITES = (
    "site:snopes.com OR site:politifact.com OR site:factcheck.org "
    "OR site:reuters.com/fact-check"
)
AUTHORITY_SITES = (
    "site:gov OR site:edu OR site:who.int OR site:cdc.gov OR site:fda.gov OR site:epa.gov"
)


def _first_str(*vals: Any) -> str:
    for v in vals:
        if isinstance(v, str) and v.strip():
            return v.strip()
    return ""


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


# --------------------------------------------------------------------------- #
#                          PROVIDER BOUNDARY                                  #
# --------------------------------------------------------------------------- #


class SourceProvider:
    """Fail-open boundary shared by every provider."""

    name = "provider"
    result_type = ResultType.WEB

    async def search(self, query: str, limit: int) -> List[SearchResult]:
        try:
            results = await self._search(query, limit)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(
                "Search provider failed; returning no results",
                provider=self.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return []
        logger.info("Provider search complete", provider=self.name, results_count=len(results))
        return results

    async def _search(self, query: str, limit: int) -> List[SearchResult]:
        raise NotImplementedError

    def _map_items(
        self,
        items: Any,
        limit: int,
        mapper: Callable[[Dict[str, Any]], Optional[SearchResult]],
    ) -> List[SearchResult]:
        """Map raw payload items one by one; a malformed item is skipped, not fatal."""
        if not isinstance(items, list):
            return []
        results: List[SearchResult] = []
        skipped = 0
        for item in items[:limit]:
            if not isinstance(item, dict):
                skipped += 1
                continue
            try:
                result = mapper(item)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                skipped += 1
                logger.debug("Skipping malformed provider item", provider=self.name, error=str(e))
                continue
            if result is not None:
                results.append(result)
        if skipped:
            logger.warning("Skipped malformed provider items", provider=self.name, skipped=skipped)
        return results

    async def close(self) -> None:
        return None


class BaseSearchAPI(SourceProvider):
    """HTTP provider owning one pooled aiohttp session."""

    BASE = ""

    def __init__(
        self,
        api_key: str = "",
        *,
        timeout_sec: Optional[float] = None,
        max_attempts: Optional[int] = None,
    ):
        self.api_key = api_key or ""
        self.timeout_sec = timeout_sec if timeout_sec is not None else config.SEARCH_API_TIMEOUT_SEC
        self.max_attempts = max_attempts
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        self._sess()
        return self

    async def __aexit__(self, *_exc):
        await self.close()

    def _sess(self) -> aiohttp.ClientSession:
        if not self.session or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_sec)
            )
        return self.session

    # Test seam: allow tests to inject a dummy session
    def _get_session(self) -> aiohttp.ClientSession:  # pragma: no cover - trivial alias
        return self._sess()

    async def close(self) -> None:
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def _get_json(
        self,
        params: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
    ) -> Optional[Any]:
        """GET ``BASE`` and decode JSON; ``None`` on a non-retryable status.

        429 and 5xx are retried by the transport policy and re-raised once the
        attempts are spent.
        """
        async for attempt in search_retrying(self.max_attempts):
            with attempt:
                async with self._get_session().get(self.BASE, params=params, headers=headers) as r:
                    if r.status == 429 or 500 <= r.status <= 599:
                        raise RetryableProviderError(self.name, r.status)
                    if r.status != 200:
                        body = await r.text()
                        logger.warning(
                            "Provider returned non-success status",
                            provider=self.name,
                            status=r.status,
                            body=(body or "")[:300],
                        )
                        return None
                    return await r.json()
        return None


# --------------------------------------------------------------------------- #
#                          CONCRETE PROVIDERS                                 #
# --------------------------------------------------------------------------- #


class NewsSearchAPI(BaseSearchAPI):
    """
    NewsAPI ``/v2/everything`` search.
    Requires NEWS_API_KEY.
    """

    BASE = "https://newsapi.org/v2/everything"
    name = "news"
    result_type = ResultType.NEWS

    async def _search(self, query: str, limit: int) -> List[SearchResult]:
        if not self.configured:
            logger.warning("NewsAPI key not configured, skipping news search")
            return []

        params = {
            "q": query,
            "language": "en",
            "sortBy": "relevancy",
            "pageSize": max(1, min(int(limit), 100)),
        }
        data = await self._get_json(params, headers={"X-Api-Key": self.api_key})
        if not isinstance(data, dict):
            return []
        if data.get("status") == "error":
            logger.warning("NewsAPI error", code=data.get("code"), message=data.get("message"))
            return []

        return self._map_items(data.get("articles"), limit, self._to_result)

    def _to_result(self, article: Dict[str, Any]) -> Optional[SearchResult]:
        title = _first_str(article.get("title"))
        if not title:
            return None
        raw_source = article.get("source")
        # NewsAPI nests the outlet as {"id", "name"}; some mirrors send a bare string
        source_name = _first_str(_as_dict(raw_source).get("name"), raw_source) or "unknown"
        description = _first_str(article.get("description"))
        body = _first_str(article.get("content"))
        return SearchResult(
            title=title,
            content=f"{description} {body}".strip(),
            source=source_name,
            url=_first_str(article.get("url")),
            publish_date=article.get("publishedAt"),
            credibility_score=news_credibility(source_name),
            result_type=ResultType.NEWS,
            highlights={"title": [title], "content": [description]},
            origin=self.name,
        )


class GoogleCustomSearchAPI(BaseSearchAPI):
    """
    Google Custom Search JSON API (general web).
    Requires GOOGLE_SEARCH_API_KEY and GOOGLE_SEARCH_ENGINE_ID env variables.
    """

    BASE = "https://www.googleapis.com/customsearch/v1"
    name = "web"
    result_type = ResultType.WEB

    def __init__(self, api_key: str, cx: str, **kwargs: Any):
        super().__init__(api_key, **kwargs)
        self.cx = cx or ""

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.cx)

    async def _search(self, query: str, limit: int) -> List[SearchResult]:
        if not self.configured:
            logger.warning("Google Search API not configured, skipping web search")
            return []

        params = {
            "key": self.api_key,
            "cx": self.cx,
            "q": query,
            # API caps a single page at 10 items
            "num": max(1, min(int(limit), 10)),
        }
        data = await self._get_json(params)
        if not isinstance(data, dict):
            return []
        if data.get("error"):
            err = data.get("error") or {}
            logger.warning("Google CSE error payload", code=err.get("code"), message=err.get("message"))
            return []

        fetched_at = datetime.now(timezone.utc)
        return self._map_items(
            data.get("items"), limit, lambda item: self._to_result(item, fetched_at)
        )

    def _to_result(self, item: Dict[str, Any], fetched_at: datetime) -> Optional[SearchResult]:
        link = _first_str(item.get("link"))
        if not link:
            return None
        title = _first_str(item.get("title"))
        snippet = _first_str(item.get("snippet"))
        return SearchResult(
            title=title,
            content=snippet,
            source=display_source(link),
            url=link,
            publish_date=self._published(item) or fetched_at,
            credibility_score=web_credibility(extract_domain(link)),
            result_type=ResultType.WEB,
            highlights={"title": [title], "content": [snippet]},
            origin=self.name,
        )

    @staticmethod
    def _published(item: Dict[str, Any]) -> Optional[datetime]:
        metatags = _as_dict(item.get("pagemap")).get("metatags")
        metatags = _as_dict(metatags[0]) if isinstance(metatags, list) and metatags else {}
        return safe_parse_date(
            _first_str(
                metatags.get("article:published_time"),
                metatags.get("og:published_time"),
                metatags.get("date"),
            )
            or None
        )


class QueryShapedSearch(SourceProvider):
    """A view over the web provider with an augmented query and re-labelled results."""

    default_limit = 10

    def __init__(self, web: GoogleCustomSearchAPI):
        self.web = web

    def build_query(self, query: str) -> str:
        raise NotImplementedError

    def _reshape(self, result: SearchResult) -> SearchResult:
        raise NotImplementedError

    async def _search(self, query: str, limit: int) -> List[SearchResult]:
        results = await self.web.search(self.build_query(query), limit)
        return [self._reshape(r) for r in results]


class FactCheckSearchAPI(QueryShapedSearch):
    name = "fact_check"
    result_type = ResultType.FACT_CHECK

    def build_query(self, query: str) -> str:
        return f"{query} {FACT_CHECK_TERMS} {FACT_CHECK_SITES}"

    def _reshape(self, result: SearchResult) -> SearchResult:
        return SearchResult(
            title=result.title,
            content=result.content,
            source=result.source,
            url=result.url,
            publish_date=result.publish_date,
            credibility_score=boost(result.credibility_score, FACT_CHECK_BOOST),
            result_type=ResultType.FACT_CHECK,
            highlights=result.highlights,
            verdict=extract_verdict(result.content),
            origin=self.name,
        )


class AuthoritySearchAPI(QueryShapedSearch):
    name = "authority"
    result_type = ResultType.GOVERNMENT

    def build_query(self, query: str) -> str:
        return f"{query} {AUTHORITY_SITES}"

    def _reshape(self, result: SearchResult) -> SearchResult:
        return SearchResult(
            title=result.title,
            content=result.content,
            source=result.source,
            url=result.url,
            publish_date=result.publish_date,
            credibility_score=boost(result.credibility_score, AUTHORITY_BOOST),
            result_type=ResultType.GOVERNMENT,
            highlights=result.highlights,
            origin=self.name,
        )


def create_source_providers() -> Dict[str, SourceProvider]:
    """Build the four providers from env; missing keys yield empty results, not errors."""
    news_key = os.getenv("NEWS_API_KEY", "")
    # Support both canonical and legacy env var names for Google CSE
    g_key = os.getenv("GOOGLE_SEARCH_API_KEY") or os.getenv("GOOGLE_CSE_API_KEY") or ""
    g_cx = os.getenv("GOOGLE_SEARCH_ENGINE_ID") or os.getenv("GOOGLE_CSE_CX") or ""

    web = GoogleCustomSearchAPI(g_key, g_cx)
    providers: Dict[str, SourceProvider] = {
        "news": NewsSearchAPI(news_key),
        "web": web,
        "fact_check": FactCheckSearchAPI(web),
        "authority": AuthoritySearchAPI(web),
    }
    for name, provider in providers.items():
        if isinstance(provider, BaseSearchAPI) and not provider.configured:
            logger.warning("Search provider missing credentials", provider=name)
    return providers
