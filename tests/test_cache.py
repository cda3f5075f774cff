import json
from datetime import datetime, timezone

import pytest

from conftest import FakeRedis, make_result
from reality_check.models.search import AggregateResult, ResultType
from reality_check.services import cache as cache_module
from reality_check.services.cache import CacheManager, normalize_query, search_cache_key


def _aggregate() -> AggregateResult:
    results = [
        make_result(
            "Claim is false",
            "snopes.com",
            1.0,
            ResultType.FACT_CHECK,
            verdict="false",
            publish_date=datetime(2024, 1, 2, tzinfo=timezone.utc),
            highlights={"title": ["Claim is false"], "content": ["false claim"]},
        ).with_score(1.0),
        make_result("Overview", "example.com", 0.6).with_score(0.5),
    ]
    return AggregateResult(
        results=results,
        total=3,
        source_counts={"news": 0, "web": 2, "factCheck": 1, "government": 0},
    )


class TestCacheKey:
    def test_stable_under_case_and_whitespace(self):
        assert search_cache_key("  Are Vaccines\tSAFE?  ") == search_cache_key("are vaccines safe?")

    def test_fixed_length_with_prefix(self):
        key = search_cache_key("x" * 5000)
        assert key.startswith("search:")
        assert len(key) == len("search:") + 32

    def test_distinct_queries_get_distinct_keys(self):
        assert search_cache_key("vaccines safe") != search_cache_key("vaccines unsafe")

    def test_normalize_query(self):
        assert normalize_query("  A   b\nC ") == "a b c"


@pytest.mark.asyncio
async def test_round_trip_marks_cache_metadata(cache):
    stored = _aggregate()
    assert await cache.set_search_results("Are vaccines safe?", stored) is True

    hit = await cache.get_search_results("are   VACCINES safe?")

    assert hit is not None
    assert hit.from_cache is True
    assert 0 <= hit.cache_age_ms <= 200
    assert hit.total == 3
    assert hit.source_counts == stored.source_counts
    first = hit.results[0]
    assert first.title == "Claim is false"
    assert first.result_type == ResultType.FACT_CHECK
    assert first.verdict == "false"
    assert first.score == 1.0
    assert first.publish_date == datetime(2024, 1, 2, tzinfo=timezone.utc)
    assert first.highlights["content"] == ["false claim"]
    # the stored copy is unaffected
    assert stored.from_cache is False


@pytest.mark.asyncio
async def test_cache_age_is_measured_from_write(cache, monkeypatch):
    clock = iter([1_000, 1_750])
    monkeypatch.setattr(cache_module, "now_ms", lambda: next(clock))

    await cache.set_search_results("q", _aggregate())
    hit = await cache.get_search_results("q")

    assert hit.cache_age_ms == 750


@pytest.mark.asyncio
async def test_entry_layout_and_ttl(cache, fake_redis):
    await cache.set_search_results("Q", _aggregate(), ttl=60)

    key = search_cache_key("q")
    entry = json.loads(fake_redis.store[key])
    assert set(entry) == {"cachedAtMs", "query", "result"}
    assert entry["query"] == "q"
    assert entry["result"]["sourceCounts"]["factCheck"] == 1
    assert fake_redis.ttls[key] == 60


@pytest.mark.asyncio
async def test_default_ttl_applies(fake_redis):
    manager = CacheManager(client=fake_redis, default_ttl=3600)
    await manager.set_search_results("q", _aggregate())
    assert fake_redis.ttls[search_cache_key("q")] == 3600


@pytest.mark.asyncio
async def test_miss_returns_none(cache):
    assert await cache.get_search_results("never stored") is None
    assert cache.miss_count == 1


@pytest.mark.asyncio
async def test_store_down_is_a_miss_and_write_noop():
    manager = CacheManager(client=FakeRedis(fail=True))

    assert await manager.get_search_results("q") is None
    assert await manager.set_search_results("q", _aggregate()) is False
    assert await manager.ping() is False
    assert manager.miss_count == 1


@pytest.mark.asyncio
async def test_corrupt_entry_is_a_miss(cache, fake_redis):
    fake_redis.store[search_cache_key("q")] = "{not json"
    assert await cache.get_search_results("q") is None


@pytest.mark.asyncio
async def test_invalidate_and_clear(cache, fake_redis):
    await cache.set_search_results("one", _aggregate())
    await cache.set_search_results("two", _aggregate())
    fake_redis.store["other:key"] = "keep"

    assert await cache.invalidate("one") is True
    assert await cache.invalidate("one") is False
    assert await cache.clear_search_cache() == 1
    assert list(fake_redis.store) == ["other:key"]


@pytest.mark.asyncio
async def test_cache_stats(cache):
    await cache.set_search_results("q", _aggregate())
    await cache.get_search_results("q")
    await cache.get_search_results("missing")

    stats = await cache.get_cache_stats()

    assert stats["hit_count"] == 1
    assert stats["miss_count"] == 1
    assert stats["hit_rate_percent"] == 50.0
    assert stats["cached_searches"] == 1
    assert stats["memory_used"] == "1.00M"
