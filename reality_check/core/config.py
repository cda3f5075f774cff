"""
Core configuration and settings for the Reality Check API

Centralizes tunable knobs (cache TTLs, result sizes, provider timeouts,
model candidates) so magic numbers are not scattered through services.
Values can be overridden via env vars per environment; a local ``.env`` file
is honoured through python-dotenv.
"""

import os
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)) or default)
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)) or default)
    except Exception:
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def get_environment() -> str:
    """Get current environment"""
    return os.getenv("ENVIRONMENT", "production")


def is_production() -> bool:
    """Check if running in production"""
    return get_environment() == "production"


# Enhanced CORS (locked-down)
TRUSTED_ORIGINS = _env_list(
    "TRUSTED_ORIGINS",
    ["http://localhost:5173", "http://localhost:3000"],
)

# ────────────────────────────────────────────────────────────
#  Search aggregation
# ────────────────────────────────────────────────────────────

# Number of ranked results kept per aggregate pass
SEARCH_RESULT_SIZE = _env_int("SEARCH_RESULT_SIZE", 25)

# Per-provider fan-out limits
NEWS_RESULT_LIMIT = _env_int("NEWS_RESULT_LIMIT", 15)
WEB_RESULT_LIMIT = _env_int("WEB_RESULT_LIMIT", 15)
FACT_CHECK_RESULT_LIMIT = _env_int("FACT_CHECK_RESULT_LIMIT", 10)
AUTHORITY_RESULT_LIMIT = _env_int("AUTHORITY_RESULT_LIMIT", 10)

# Outbound provider timeout (seconds) and total attempts per request (first try included)
SEARCH_API_TIMEOUT_SEC = _env_float("SEARCH_API_TIMEOUT_SEC", 15.0)
SEARCH_MAX_ATTEMPTS = _env_int("SEARCH_MAX_ATTEMPTS", 2)

# Secondary index merge
SECONDARY_INDEX_SIZE = _env_int("SECONDARY_INDEX_SIZE", 10)
SECONDARY_INDEX_TYPES = _env_list(
    "SECONDARY_INDEX_TYPES", ["news", "studies", "factChecks", "government"]
)
ELASTICSEARCH_INDEX_PREFIX = os.getenv("ELASTICSEARCH_INDEX_PREFIX", "reality_check")
# Must match the embedding model output (text-embedding-3-small: 1536)
INDEX_EMBEDDING_DIMS = _env_int("INDEX_EMBEDDING_DIMS", 1536)
# Create missing indexes at startup
ENSURE_INDEXES_ON_STARTUP = _env_bool("ENSURE_INDEXES_ON_STARTUP", True)

# ────────────────────────────────────────────────────────────
#  Cache
# ────────────────────────────────────────────────────────────

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379")
SEARCH_CACHE_TTL_SEC = _env_int("SEARCH_CACHE_TTL_SEC", 3600)
REDIS_SOCKET_TIMEOUT_SEC = _env_float("REDIS_SOCKET_TIMEOUT_SEC", 2.0)

# ────────────────────────────────────────────────────────────
#  Language model
# ────────────────────────────────────────────────────────────

# Candidate chat models, tried in order until one answers
LLM_MODELS = _env_list("LLM_MODELS", ["gpt-4o-mini", "gpt-4o", "gpt-4.1-mini"])
LLM_TIMEOUT_SEC = _env_float("LLM_TIMEOUT_SEC", 60.0)
LLM_DEFAULT_MAX_TOKENS = _env_int("LLM_DEFAULT_MAX_TOKENS", 2048)
LLM_DEFAULT_TEMPERATURE = _env_float("LLM_DEFAULT_TEMPERATURE", 0.7)
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
ENABLE_QUERY_EMBEDDINGS = _env_bool("ENABLE_QUERY_EMBEDDINGS", True)

# Prompt slices
ANALYSIS_TOP_N = _env_int("ANALYSIS_TOP_N", 10)
SYNTHESIS_TOP_M = _env_int("SYNTHESIS_TOP_M", 15)
SYNTHESIS_HISTORY_MESSAGES = _env_int("SYNTHESIS_HISTORY_MESSAGES", 6)
FOLLOW_UP_HISTORY_MESSAGES = _env_int("FOLLOW_UP_HISTORY_MESSAGES", 4)
FALLBACK_TOP_SOURCES = 5
FALLBACK_EXCERPT_CHARS = 200

# ────────────────────────────────────────────────────────────
#  Conversations
# ────────────────────────────────────────────────────────────

CONVERSATION_IDLE_TTL_SEC = _env_int("CONVERSATION_IDLE_TTL_SEC", 3600)
CONVERSATION_MAX_MESSAGES = _env_int("CONVERSATION_MAX_MESSAGES", 50)
