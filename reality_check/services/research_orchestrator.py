"""
Research pipeline orchestrator.

One question moves through ``understanding → searching → analyzing →
generating`` and always ends in an answer unless a defect escapes the
guarded stages:

* embedding failure → continue without an embedding;
* cache failure → treated as a miss (handled inside the cache adapter);
* provider failures → fewer (possibly zero) results;
* credibility analysis failure → fixed degraded analysis;
* synthesis failure → templated answer listing the top sources;
* follow-up failure → three generic questions.

Anything else is logged, reported to the client as one generic error event
and re-raised as :class:`ResearchPipelineError`.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

import structlog

from ..core import config
from ..logging_config import bind_request_context
from ..models.analysis import AnalysisResult, degraded_analysis
from ..models.conversation import (
    Answer,
    AnswerMetadata,
    ChatMessage,
    Conversation,
    PipelineStage,
    SearchStats,
    SourceSummary,
)
from ..models.search import AggregateResult, SearchResult
from ..utils.errors import (
    ConversationNotFoundError,
    InvalidQuestionError,
    ResearchPipelineError,
)
from .aggregator import SearchAggregator
from .analysis_service import (
    DEFAULT_FOLLOW_UP_QUESTIONS,
    AnalysisService,
    fallback_response,
)
from .cache import CacheManager
from .llm_client import LLMClient
from .progress import ProgressChannel
from .session_store import SessionStore

logger = structlog.get_logger(__name__)

GENERIC_FAILURE_MESSAGE = "Failed to process your question. Please try again."


class ResearchPipeline:
    def __init__(
        self,
        aggregator: SearchAggregator,
        cache: CacheManager,
        analyzer: AnalysisService,
        llm: LLMClient,
        sessions: SessionStore,
        *,
        result_size: int = config.SEARCH_RESULT_SIZE,
        cache_ttl: int = config.SEARCH_CACHE_TTL_SEC,
    ):
        self.aggregator = aggregator
        self.cache = cache
        self.analyzer = analyzer
        self.llm = llm
        self.sessions = sessions
        self.result_size = result_size
        self.cache_ttl = cache_ttl

    # ────────────────────────────────────────────────────────────
    #  Entry points
    # ────────────────────────────────────────────────────────────

    async def ask(
        self,
        question: Optional[str],
        conversation_id: Optional[str],
        *,
        user_id: Optional[str] = None,
        progress: Optional[ProgressChannel] = None,
        allow_new: bool = False,
    ) -> Answer:
        """Validate input, resolve the conversation and answer.

        With ``allow_new`` a missing ``conversation_id`` starts a fresh
        conversation; an id that is not in the store is always rejected.
        """
        text = (question or "").strip()
        if not text:
            raise InvalidQuestionError()

        conversation: Optional[Conversation] = None
        if conversation_id:
            conversation = await self.sessions.get(conversation_id)
            if conversation is None:
                raise ConversationNotFoundError(conversation_id)
        elif allow_new:
            conversation = await self.sessions.create(user_id)
        else:
            raise ConversationNotFoundError(conversation_id)

        return await self.answer_question(text, conversation, progress)

    async def answer_question(
        self,
        question: str,
        conversation: Conversation,
        progress: Optional[ProgressChannel] = None,
    ) -> Answer:
        progress = progress or ProgressChannel()
        bind_request_context(conversation_id=conversation.id)
        try:
            return await self._run(question, conversation, progress)
        except Exception as e:
            logger.exception(
                "Research pipeline failed",
                conversation_id=conversation.id,
                error_type=type(e).__name__,
            )
            await progress.fail(GENERIC_FAILURE_MESSAGE)
            raise ResearchPipelineError(GENERIC_FAILURE_MESSAGE) from e

    # ────────────────────────────────────────────────────────────
    #  Stages
    # ────────────────────────────────────────────────────────────

    async def _run(
        self, question: str, conversation: Conversation, progress: ProgressChannel
    ) -> Answer:
        await progress.emit(
            PipelineStage.UNDERSTANDING,
            "Understanding your question and determining search strategy...",
        )
        embedding = await self._embed(question)

        aggregate = await self._search(question, embedding, progress)

        await progress.emit(
            PipelineStage.ANALYZING,
            f"Found {aggregate.total} relevant sources. Analyzing credibility...",
        )
        analysis = await self._analyze(question, aggregate.results[: config.ANALYSIS_TOP_N])

        await progress.emit(
            PipelineStage.GENERATING,
            "Generating balanced analysis and response...",
        )
        message = await self._synthesize(question, aggregate, conversation)
        follow_ups = await self._follow_ups(question, message, conversation)

        answer = Answer(
            message=message,
            metadata=AnswerMetadata(
                search_stats=SearchStats(
                    total_sources=aggregate.total,
                    sources_analyzed=len(aggregate.results),
                    credibility_score=analysis.credibility_score,
                    confidence_level=analysis.confidence_level.value,
                    from_cache=aggregate.from_cache,
                    cache_age_ms=aggregate.cache_age_ms,
                ),
                sources=[SourceSummary.from_result(r) for r in aggregate.results],
                analysis=analysis,
                follow_up_questions=follow_ups,
            ),
        )

        conversation.record_exchange(
            question,
            answer.message,
            metadata=answer.metadata.model_dump(mode="json", by_alias=True),
        )
        await self.sessions.put(conversation)

        logger.info(
            "Question answered",
            total_sources=aggregate.total,
            sources_analyzed=len(aggregate.results),
            from_cache=aggregate.from_cache,
            degraded_analysis=analysis.degraded,
        )
        await progress.respond(answer.to_wire())
        return answer

    async def _embed(self, question: str) -> Optional[List[float]]:
        try:
            return await self.llm.embed(question)
        except Exception as e:
            logger.warning("Embedding unavailable, continuing with text search", error=str(e))
            return None

    async def _search(
        self,
        question: str,
        embedding: Optional[Sequence[float]],
        progress: ProgressChannel,
    ) -> AggregateResult:
        cached = await self.cache.get_search_results(question)
        if cached is not None:
            await progress.emit(
                PipelineStage.SEARCHING,
                f"Found {cached.total} cached results from previous search...",
            )
            return cached

        await progress.emit(
            PipelineStage.SEARCHING,
            "Searching news, fact-checkers, and web sources in real-time...",
        )
        aggregate = await self.aggregator.aggregate_with_index(
            question, embedding, size=self.result_size
        )
        await self.cache.set_search_results(question, aggregate, ttl=self.cache_ttl)
        return aggregate

    async def _analyze(self, question: str, results: Sequence[SearchResult]) -> AnalysisResult:
        try:
            return await self.analyzer.analyze_credibility(question, results)
        except Exception as e:
            logger.warning(
                "Credibility analysis failed, using degraded analysis",
                error=str(e),
                error_type=type(e).__name__,
            )
            return degraded_analysis()

    async def _synthesize(
        self, question: str, aggregate: AggregateResult, conversation: Conversation
    ) -> str:
        try:
            text = await self.analyzer.generate_response(
                question,
                aggregate.results[: config.SYNTHESIS_TOP_M],
                conversation.recent(config.SYNTHESIS_HISTORY_MESSAGES),
            )
            if text:
                return text
            logger.warning("Empty synthesized response, using fallback")
        except Exception as e:
            logger.warning(
                "Response generation failed, using fallback",
                error=str(e),
                error_type=type(e).__name__,
            )
        return fallback_response(question, aggregate.total, aggregate.results)

    async def _follow_ups(
        self, question: str, message: str, conversation: Conversation
    ) -> List[str]:
        exchange = conversation.recent(config.FOLLOW_UP_HISTORY_MESSAGES) + [
            ChatMessage(role="user", content=question),
            ChatMessage(role="assistant", content=message),
        ]
        try:
            return await self.analyzer.generate_follow_up_questions(exchange)
        except Exception as e:
            logger.warning(
                "Follow-up generation failed, using defaults",
                error=str(e),
                error_type=type(e).__name__,
            )
            return list(DEFAULT_FOLLOW_UP_QUESTIONS)
