"""
Exception types shared across the Reality Check services.

Provider and cache failures never surface as exceptions past their adapters;
the types below cover inference failures, input validation and the index.
"""

from typing import List, Optional, Sequence


class RealityCheckError(Exception):
    """Base class for application errors."""


class InvalidQuestionError(RealityCheckError):
    """Raised when a question is empty or otherwise unusable."""

    def __init__(self, message: str = "Question cannot be empty"):
        super().__init__(message)
        self.message = message


class ConversationNotFoundError(RealityCheckError):
    def __init__(self, conversation_id: Optional[str]):
        super().__init__(f"Conversation not found: {conversation_id}")
        self.conversation_id = conversation_id


class LLMUnavailableError(RealityCheckError):
    """Every candidate model failed (or none is configured)."""

    def __init__(self, attempted: Sequence[str] = (), last_error: Optional[BaseException] = None):
        self.attempted: List[str] = list(attempted)
        self.last_error = last_error
        detail = f"; last error: {last_error}" if last_error else ""
        super().__init__(
            f"No language model available (tried {', '.join(self.attempted) or 'none'}){detail}"
        )


class AnalysisParseError(RealityCheckError):
    """Model output could not be parsed into the expected structure."""


class SecondaryIndexError(RealityCheckError):
    pass


class RetryableProviderError(RealityCheckError):
    """Transient provider status (429 / 5xx); retried at the transport layer."""

    def __init__(self, provider: str, status: int):
        super().__init__(f"{provider} returned HTTP {status}")
        self.provider = provider
        self.status = status


class ResearchPipelineError(RealityCheckError):
    """An unguarded failure escaped the research pipeline."""
