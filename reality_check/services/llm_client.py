"""
LLM Client for the Reality Check research pipeline
--------------------------------------------------
Text-completion and embedding capability over an OpenAI-compatible API.

Completions walk an ordered list of candidate models; the first model that
answers wins and :class:`LLMUnavailableError` is raised only once every
candidate has failed.
"""

from __future__ import annotations

import os
from typing import List, Optional, Sequence

import structlog
from openai import AsyncOpenAI

from ..core import config
from ..utils.errors import LLMUnavailableError

logger = structlog.get_logger(__name__)

SYSTEM_PROMPT = (
    "You are Reality Check, an assistant that helps people navigate information "
    "by providing balanced, well-sourced analysis."
)


class LLMClient:
    """Ordered-fallback chat completions plus query embeddings."""

    def __init__(
        self,
        models: Optional[Sequence[str]] = None,
        *,
        client: Optional[AsyncOpenAI] = None,
        embedding_model: Optional[str] = config.EMBEDDING_MODEL,
        timeout: float = config.LLM_TIMEOUT_SEC,
    ):
        self.models: List[str] = [m for m in (models if models is not None else config.LLM_MODELS) if m]
        self.embedding_model = embedding_model or None
        self.timeout = timeout
        self.working_model: Optional[str] = None
        self.client = client
        if self.client is None:
            try:
                self._init_client()
            except Exception as e:
                logger.warning(f"LLM client initialization deferred: {e}")

    def _init_client(self) -> None:
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY environment variable is not set")
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=os.getenv("OPENAI_BASE_URL") or None,
            timeout=self.timeout,
        )
        logger.info("✓ OpenAI client initialized", models=self.models)

    def is_initialized(self) -> bool:
        return self.client is not None and bool(self.models)

    async def complete(
        self,
        prompt: str,
        *,
        max_tokens: int = config.LLM_DEFAULT_MAX_TOKENS,
        temperature: float = config.LLM_DEFAULT_TEMPERATURE,
        system_prompt: str = SYSTEM_PROMPT,
    ) -> str:
        """Return the first non-empty completion across the candidate models."""
        if self.client is None:
            raise LLMUnavailableError([])

        attempted: List[str] = []
        last_error: Optional[BaseException] = None
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": prompt},
        ]

        for model in self.models:
            attempted.append(model)
            try:
                response = await self.client.chat.completions.create(
                    model=model,
                    messages=messages,
                    max_tokens=max_tokens,
                    temperature=temperature,
                )
                text = ""
                if getattr(response, "choices", None):
                    text = response.choices[0].message.content or ""
                if not text.strip():
                    raise ValueError("empty completion")
            except Exception as e:
                last_error = e
                logger.warning(
                    "LLM model failed, trying next candidate",
                    model=model,
                    error=str(e),
                    remaining=len(self.models) - len(attempted),
                )
                continue

            if self.working_model != model:
                self.working_model = model
                logger.info("Found working model", model=model)
            logger.info("Completion received successfully", model=model, response_length=len(text))
            return text

        logger.error("All LLM models failed", attempted=attempted)
        raise LLMUnavailableError(attempted, last_error)

    async def embed(self, text: str) -> Optional[List[float]]:
        """Embedding vector for ``text``; ``None`` when embeddings are disabled."""
        if not self.embedding_model or not config.ENABLE_QUERY_EMBEDDINGS:
            return None
        if self.client is None:
            raise LLMUnavailableError([self.embedding_model])

        response = await self.client.embeddings.create(model=self.embedding_model, input=text)
        vector = list(response.data[0].embedding) if response.data else []
        return vector or None

    async def close(self) -> None:
        if self.client is not None:
            await self.client.close()
