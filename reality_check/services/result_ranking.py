"""
Merge primitives for aggregate passes: deduplicate, rank, truncate, score.

All functions are pure; inputs are never mutated and scored results are
fresh copies.
"""

from typing import Iterable, List, Sequence

import structlog

from ..models.search import SearchResult

logger = structlog.get_logger(__name__)


def dedupe_results(results: Iterable[SearchResult]) -> List[SearchResult]:
    """Drop later results sharing a ``title-source`` key (exact, case-sensitive).

    The key is intentionally coarse: near-identical titles, or the same site
    spelled with and without ``www.``, are kept as distinct results.
    """
    seen = set()
    unique: List[SearchResult] = []
    for result in results:
        key = result.dedup_key
        if key in seen:
            continue
        seen.add(key)
        unique.append(result)
    return unique


def rank_results(results: Sequence[SearchResult]) -> List[SearchResult]:
    """Credibility descending, then type priority; stable for full ties."""
    return sorted(
        results,
        key=lambda r: (r.credibility_score, r.type_priority),
        reverse=True,
    )


def assign_relevance(results: Sequence[SearchResult]) -> List[SearchResult]:
    """Linear positional relevance ``(N - i) / N`` over the final list."""
    n = len(results)
    return [r.with_score((n - i) / n) for i, r in enumerate(results)]


def merge_ranked(results: Iterable[SearchResult], size: int) -> List[SearchResult]:
    """Dedupe → rank → truncate → score."""
    unique = dedupe_results(results)
    ranked = rank_results(unique)
    final = assign_relevance(ranked[: max(0, int(size))])
    logger.debug(
        "Merged results",
        unique_count=len(unique),
        returned_count=len(final),
    )
    return final
