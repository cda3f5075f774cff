"""Reality Check research backend.

Answers natural-language questions with sourced, credibility-scored
responses assembled from news, web, fact-check and authority searches.
"""

__version__ = "0.1.0"
