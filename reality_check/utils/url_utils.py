"""
URL utilities for extracting domain information used by credibility scoring
and source labelling.
"""

from urllib.parse import urlparse


def extract_domain(url: str) -> str:
    """
    Extract the domain (netloc) from a URL.

    Args:
        url: URL string

    Returns:
        Lowercase domain or empty string if extraction fails
    """
    if not url:
        return ""

    try:
        return urlparse(url).netloc.lower()
    except Exception:
        return ""


def display_source(url: str) -> str:
    """Hostname without a leading ``www.``; ``unknown`` when unparsable."""
    domain = extract_domain(url)
    if not domain:
        return "unknown"
    return domain[4:] if domain.startswith("www.") else domain
