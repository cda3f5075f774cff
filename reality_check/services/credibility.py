"""
Static credibility heuristics and verdict extraction.

Scores are deterministic lookups against fixed outlet/domain tables; nothing
here performs I/O, so every provider can stamp a credibility score on each
result synchronously while mapping its payload.
"""

from typing import List, Tuple

FACT_CHECK_BOOST = 0.2
AUTHORITY_BOOST = 0.3

HIGH_CREDIBILITY_NEWS: List[str] = [
    "Reuters",
    "Associated Press",
    "BBC News",
    "NPR",
    "PBS NewsHour",
    "The Wall Street Journal",
    "The New York Times",
    "The Washington Post",
    "The Guardian",
    "Financial Times",
]

MEDIUM_CREDIBILITY_NEWS: List[str] = [
    "CNN",
    "Fox News",
    "MSNBC",
    "ABC News",
    "CBS News",
    "NBC News",
    "Time",
    "Newsweek",
    "USA Today",
]

HEALTH_AUTHORITY_DOMAINS: Tuple[str, ...] = ("who.int", "cdc.gov", "fda.gov")
FACT_CHECK_DOMAINS: Tuple[str, ...] = ("snopes.com", "politifact.com", "factcheck.org")

# Ordered: first keyword found in the lower-cased content wins
VERDICT_KEYWORDS: List[Tuple[str, str]] = [
    ("false", "false"),
    ("true", "true"),
    ("misleading", "misleading"),
    ("partly false", "partly-false"),
    ("mostly true", "mostly-true"),
    ("debunked", "false"),
    ("verified", "true"),
    ("unproven", "unproven"),
]
UNVERIFIED = "unverified"


def news_credibility(source_name: str) -> float:
    """Score a news outlet by (substring) membership in the outlet tables."""
    name = source_name or ""
    if any(outlet in name for outlet in HIGH_CREDIBILITY_NEWS):
        return 0.9
    if any(outlet in name for outlet in MEDIUM_CREDIBILITY_NEWS):
        return 0.7
    return 0.5


def web_credibility(domain: str) -> float:
    """Score a web domain; rules are checked in order."""
    d = (domain or "").lower()
    if d.endswith(".gov") or d.endswith(".edu"):
        return 0.9
    if any(auth in d for auth in HEALTH_AUTHORITY_DOMAINS):
        return 0.95
    if "wikipedia.org" in d:
        return 0.7
    if any(fc in d for fc in FACT_CHECK_DOMAINS):
        return 0.9
    return 0.6


def boost(score: float, amount: float) -> float:
    return min(score + amount, 1.0)


def extract_verdict(content: str) -> str:
    text = (content or "").lower()
    for keyword, verdict in VERDICT_KEYWORDS:
        if keyword in text:
            return verdict
    return UNVERIFIED
