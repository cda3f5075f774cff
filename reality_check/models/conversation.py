"""
Conversation, answer and request/response models for the Reality Check API.

Wire payloads are camelCase (``conversationId``, ``searchStats``); Python
attributes stay snake_case via pydantic alias generation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..utils.date_utils import get_current_utc, iso_or_none
from .analysis import AnalysisResult
from .search import SearchResult


class PipelineStage(str, Enum):
    UNDERSTANDING = "understanding"
    SEARCHING = "searching"
    ANALYZING = "analyzing"
    GENERATING = "generating"


STAGE_ORDER: List[PipelineStage] = [
    PipelineStage.UNDERSTANDING,
    PipelineStage.SEARCHING,
    PipelineStage.ANALYZING,
    PipelineStage.GENERATING,
]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --------------------------------------------------------------------------- #
#  In-memory conversation state                                               #
# --------------------------------------------------------------------------- #


@dataclass
class ChatMessage:
    role: str
    content: str
    timestamp: datetime = field(default_factory=get_current_utc)
    metadata: Optional[Dict[str, Any]] = None

    def to_prompt_line(self) -> str:
        return f"{self.role}: {self.content}"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "role": self.role,
            "content": self.content,
            "timestamp": iso_or_none(self.timestamp),
        }
        if self.metadata is not None:
            data["metadata"] = self.metadata
        return data


@dataclass
class Conversation:
    id: str
    user_id: str = "anonymous"
    messages: List[ChatMessage] = field(default_factory=list)
    created_at: datetime = field(default_factory=get_current_utc)
    last_updated: datetime = field(default_factory=get_current_utc)

    def recent(self, n: int) -> List[ChatMessage]:
        if n <= 0:
            return []
        return list(self.messages[-n:])

    def record_exchange(
        self,
        question: str,
        answer: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        now = get_current_utc()
        self.messages.append(ChatMessage(role="user", content=question, timestamp=now))
        self.messages.append(
            ChatMessage(role="assistant", content=answer, timestamp=now, metadata=metadata)
        )
        self.last_updated = now


# --------------------------------------------------------------------------- #
#  Answer payload                                                             #
# --------------------------------------------------------------------------- #


class SearchStats(CamelModel):
    total_sources: int
    sources_analyzed: int
    credibility_score: float
    confidence_level: str
    from_cache: bool = False
    cache_age_ms: Optional[int] = None


class SourceSummary(CamelModel):
    title: str
    source: str
    url: str
    credibility_score: float
    relevance_score: float
    publish_date: Optional[str] = None
    type: str = "web"
    verdict: Optional[str] = None

    @classmethod
    def from_result(cls, result: SearchResult) -> "SourceSummary":
        return cls(
            title=result.title,
            source=result.source,
            url=result.url,
            credibility_score=result.credibility_score,
            relevance_score=result.score,
            publish_date=iso_or_none(result.publish_date),
            type=result.result_type.value,
            verdict=result.verdict,
        )


class AnswerMetadata(CamelModel):
    search_stats: SearchStats
    sources: List[SourceSummary] = Field(default_factory=list)
    analysis: AnalysisResult
    follow_up_questions: List[str] = Field(default_factory=list)


class Answer(CamelModel):
    message: str
    metadata: AnswerMetadata

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# --------------------------------------------------------------------------- #
#  HTTP request / response bodies                                             #
# --------------------------------------------------------------------------- #


class StartConversationRequest(CamelModel):
    user_id: Optional[str] = None


class StartConversationResponse(CamelModel):
    conversation_id: str
    message: str
    suggestions: List[str]


class AskRequest(CamelModel):
    conversation_id: Optional[str] = None
    question: str = ""
    user_id: Optional[str] = None


class HistoryMessage(CamelModel):
    role: str
    content: str
    timestamp: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class HistoryResponse(CamelModel):
    conversation_id: str
    messages: List[HistoryMessage]
    created_at: Optional[str] = None
    last_updated: Optional[str] = None

    @classmethod
    def from_conversation(cls, conversation: Conversation) -> "HistoryResponse":
        return cls(
            conversation_id=conversation.id,
            messages=[HistoryMessage(**m.to_dict()) for m in conversation.messages],
            created_at=iso_or_none(conversation.created_at),
            last_updated=iso_or_none(conversation.last_updated),
        )


class SearchQueryRequest(CamelModel):
    query: str = Field(..., min_length=1, max_length=500)
    size: int = Field(25, ge=1, le=100)


class CredibilityRequest(CamelModel):
    content: str = Field(..., min_length=1)
    sources: List[Dict[str, Any]] = Field(default_factory=list)


class BiasRequest(CamelModel):
    text: str = Field(..., min_length=1)
    source: Optional[str] = None
