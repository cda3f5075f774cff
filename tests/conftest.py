"""Shared fixtures and test doubles.

Nothing here touches the network: HTTP providers get a ``DummySession``,
Redis is replaced by ``FakeRedis`` and the language model by ``FakeLLM``.
"""

from __future__ import annotations

import fnmatch
from typing import Any, Dict, List, Optional, Sequence, Union

import pytest

from reality_check.models.search import ResultType, SearchResult
from reality_check.services.cache import CacheManager
from reality_check.services.search_apis import SourceProvider
from reality_check.utils.errors import LLMUnavailableError


# ---------------------------------------------------------------------------
#  aiohttp doubles
# ---------------------------------------------------------------------------


class DummyResponse:
    def __init__(self, status: int = 200, payload: Any = None, text: str = ""):
        self.status = status
        self._payload = payload if payload is not None else {}
        self._text = text

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def json(self):
        return self._payload

    async def text(self):
        return self._text


class DummySession:
    """Returns queued responses in order; the last one repeats."""

    def __init__(self, *responses: Union[DummyResponse, BaseException]):
        self._responses = list(responses) or [DummyResponse()]
        self.calls: List[Dict[str, Any]] = []

    @property
    def last_params(self) -> Optional[Dict[str, Any]]:
        return self.calls[-1]["params"] if self.calls else None

    @property
    def last_headers(self) -> Optional[Dict[str, Any]]:
        return self.calls[-1]["headers"] if self.calls else None

    def get(self, url, params=None, headers=None):
        self.calls.append({"url": url, "params": params, "headers": headers})
        response = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(response, BaseException):
            raise response
        return response


# ---------------------------------------------------------------------------
#  Redis double
# ---------------------------------------------------------------------------


class FakeRedis:
    def __init__(self, fail: bool = False):
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self.fail = fail

    def _check(self):
        if self.fail:
            raise ConnectionError("redis unavailable")

    async def get(self, key):
        self._check()
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        self._check()
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    async def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                self.ttls.pop(key, None)
                removed += 1
        return removed

    async def scan_iter(self, match="*"):
        self._check()
        for key in list(self.store):
            if fnmatch.fnmatch(key, match):
                yield key

    async def ping(self):
        self._check()
        return True

    async def info(self, section=None):
        self._check()
        return {"used_memory_human": "1.00M"}


# ---------------------------------------------------------------------------
#  LLM double
# ---------------------------------------------------------------------------


def prompt_kind(prompt: str) -> str:
    if "expert fact-checker" in prompt:
        return "credibility"
    if "inflammatory language" in prompt:
        return "bias"
    if "suggest 3 follow-up questions" in prompt:
        return "follow_ups"
    return "response"


class FakeLLM:
    """Answers by prompt kind; an exception value is raised instead."""

    def __init__(
        self,
        credibility: Union[str, BaseException, None] = None,
        response: Union[str, BaseException, None] = None,
        follow_ups: Union[str, BaseException, None] = None,
        bias: Union[str, BaseException, None] = None,
        embedding: Union[Sequence[float], BaseException, None] = None,
        initialized: bool = True,
    ):
        self.replies = {
            "credibility": credibility,
            "response": response,
            "follow_ups": follow_ups,
            "bias": bias,
        }
        self.embedding = embedding
        self.initialized = initialized
        self.prompts: List[str] = []
        self.closed = False

    @classmethod
    def unavailable(cls) -> "FakeLLM":
        down = LLMUnavailableError(["gpt-test"])
        return cls(
            credibility=down,
            response=down,
            follow_ups=down,
            bias=down,
            embedding=down,
            initialized=False,
        )

    async def complete(self, prompt: str, **kwargs) -> str:
        self.prompts.append(prompt)
        reply = self.replies[prompt_kind(prompt)]
        if isinstance(reply, BaseException):
            raise reply
        if reply is None:
            raise LLMUnavailableError(["gpt-test"])
        return reply

    async def embed(self, text: str):
        if isinstance(self.embedding, BaseException):
            raise self.embedding
        return list(self.embedding) if self.embedding else None

    def is_initialized(self) -> bool:
        return self.initialized

    async def close(self) -> None:
        self.closed = True


CREDIBILITY_JSON = """```json
{
  "credibility_score": 0.82,
  "confidence_level": "High",
  "key_findings": ["Multiple health agencies agree"],
  "source_reliability": {"high": ["cdc.gov"], "medium": [], "low": []},
  "consensus": "strong agreement",
  "red_flags": [],
  "verification_needed": ["Long-term studies"],
  "summary": "Well supported by authoritative sources."
}
```"""

FOLLOW_UPS_JSON = (
    '["What do long-term studies show?", "Who funds the research?", '
    '"How are side effects tracked?", "Is this a fourth question?"]'
)

BIAS_JSON = """```json
{
  "bias_score": 0.72,
  "bias_types": ["political", "confirmation"],
  "inflammatory_language": ["poison"],
  "emotional_indicators": "urgent",
  "missing_context": ["No study is cited"],
  "balanced_assessment": "One-sided framing with alarmist wording."
}
```"""


# ---------------------------------------------------------------------------
#  Providers and results
# ---------------------------------------------------------------------------


def make_result(
    title: str,
    source: str = "example.com",
    credibility: float = 0.6,
    result_type: ResultType = ResultType.WEB,
    content: str = "",
    url: str = "",
    **kwargs: Any,
) -> SearchResult:
    return SearchResult(
        title=title,
        content=content or f"Content for {title}",
        source=source,
        url=url or f"https://{source}/{title.lower().replace(' ', '-')}",
        credibility_score=credibility,
        result_type=result_type,
        **kwargs,
    )


class StaticProvider(SourceProvider):
    def __init__(self, name: str, results: Sequence[SearchResult] = (), error: Optional[BaseException] = None):
        self.name = name
        self.results = list(results)
        self.error = error
        self.calls: List[tuple] = []
        self.closed = 0

    async def _search(self, query: str, limit: int) -> List[SearchResult]:
        self.calls.append((query, limit))
        if self.error is not None:
            raise self.error
        return list(self.results)[:limit]

    async def close(self) -> None:
        self.closed += 1


class FakeIndex:
    def __init__(
        self,
        results: Sequence[SearchResult] = (),
        error: Optional[BaseException] = None,
        healthy: bool = True,
        stats: Optional[Dict[str, Any]] = None,
    ):
        self.stats = stats or {}
        self.results = list(results)
        self.error = error
        self.healthy = healthy
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    async def hybrid_search(self, query, embedding=None, types=None, size=10):
        self.calls.append({"query": query, "embedding": embedding, "types": types, "size": size})
        if self.error is not None:
            raise self.error
        return list(self.results)[:size]

    async def source_stats(self):
        if self.error is not None:
            raise self.error
        return self.stats

    async def ping(self) -> bool:
        return self.healthy

    async def close(self) -> None:
        self.closed = True


def vaccine_providers() -> Dict[str, StaticProvider]:
    """Five raw hits, one duplicate across the web and authority providers."""
    return {
        "news": StaticProvider(
            "news",
            [
                make_result("Vaccines pass safety review", "Reuters", 0.9, ResultType.NEWS),
                make_result("Vaccine rumours spread online", "Daily Blog", 0.5, ResultType.NEWS),
            ],
        ),
        "web": StaticProvider(
            "web",
            [make_result("Vaccine safety overview", "health.example.com", 0.6)],
        ),
        "fact_check": StaticProvider(
            "fact_check",
            [
                make_result(
                    "Claim that vaccines cause autism is false",
                    "snopes.com",
                    1.0,
                    ResultType.FACT_CHECK,
                    verdict="false",
                )
            ],
        ),
        "authority": StaticProvider(
            "authority",
            [make_result("Vaccine safety overview", "health.example.com", 0.9, ResultType.GOVERNMENT)],
        ),
    }


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def cache(fake_redis) -> CacheManager:
    return CacheManager(client=fake_redis)
