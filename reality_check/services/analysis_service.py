"""
Language-model backed analysis stages: credibility assessment, bias detection,
conversational synthesis and follow-up question generation.

Each method raises on failure (:class:`LLMUnavailableError` when no model
answers, :class:`AnalysisParseError` when the output is unusable); the
research pipeline decides which fallback to substitute. The fixed fallbacks
themselves live here so the API routes can reuse them.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import structlog
from pydantic import ValidationError

from ..core import config
from ..models.analysis import AnalysisResult, BiasAnalysis
from ..models.conversation import ChatMessage
from ..models.search import SearchResult
from ..utils.date_utils import iso_or_none
from ..utils.errors import AnalysisParseError
from .llm_client import LLMClient

logger = structlog.get_logger(__name__)

SourceLike = Union[SearchResult, Mapping[str, Any]]

DEFAULT_FOLLOW_UP_QUESTIONS: List[str] = [
    "Can you tell me more about the sources for this information?",
    "What are the main counterarguments to this claim?",
    "How reliable are the sources that discuss this topic?",
]

FALLBACK_DISCLAIMER = (
    "Please note: AI analysis is temporarily limited. I recommend reviewing "
    "these sources directly for a complete understanding."
)

_FENCE_RE = re.compile(r"^```(?:json)?\s*\n?(.*?)\n?```$", re.DOTALL)


def strip_code_fences(text: str) -> str:
    cleaned = (text or "").strip()
    m = _FENCE_RE.match(cleaned)
    return m.group(1).strip() if m else cleaned


def parse_json_payload(text: str) -> Any:
    try:
        return json.loads(strip_code_fences(text))
    except (TypeError, ValueError) as e:
        raise AnalysisParseError(f"Model output is not valid JSON: {e}") from e


def _source_fields(source: SourceLike) -> Dict[str, Any]:
    if isinstance(source, SearchResult):
        return {
            "title": source.title,
            "source": source.source,
            "url": source.url,
            "content": source.content,
            "credibility": source.credibility_score,
            "published": iso_or_none(source.publish_date),
            "highlights": source.highlights.get("content") or [],
        }
    return {
        "title": source.get("title"),
        "source": source.get("source"),
        "url": source.get("url"),
        "content": source.get("content") or source.get("snippet") or "",
        "credibility": source.get("credibilityScore", source.get("credibility_score")),
        "published": source.get("publishDate", source.get("publish_date")),
        "highlights": (source.get("highlights") or {}).get("content") or [],
    }


def excerpt(text: str, limit: int = config.FALLBACK_EXCERPT_CHARS) -> str:
    text = text or ""
    return text[:limit] + "..." if len(text) > limit else text


def fallback_response(question: str, total: int, results: Sequence[SearchResult]) -> str:
    """Templated answer listing the top results verbatim."""
    top = list(results[: config.FALLBACK_TOP_SOURCES])
    if not top:
        return (
            f'I couldn\'t find any sources for your question "{question}" right now. '
            "The search services may be temporarily unavailable; please try again shortly.\n\n"
            f"{FALLBACK_DISCLAIMER}"
        )
    lines = []
    for i, r in enumerate(top, start=1):
        title = r.title or "Unknown Source"
        source = r.source or "N/A"
        preview = excerpt(r.content) or "No content available"
        lines.append(f"{i}. {title} ({source})\n   {preview}")
    return (
        f'I found {total} sources related to your question "{question}". '
        "Here are the top findings:\n\n"
        + "\n\n".join(lines)
        + f"\n\n{FALLBACK_DISCLAIMER}"
    )


class AnalysisService:
    def __init__(self, llm: LLMClient):
        self.llm = llm

    # ────────────────────────────────────────────────────────────
    #  Credibility
    # ────────────────────────────────────────────────────────────

    def _credibility_prompt(self, content: str, sources: Sequence[SourceLike]) -> str:
        blocks = []
        for i, src in enumerate(sources, start=1):
            f = _source_fields(src)
            blocks.append(
                f"{i}. {f['title'] or 'No title'}\n"
                f"   - Source: {f['source'] or 'Unknown'}\n"
                f"   - URL: {f['url'] or 'No URL'}\n"
                f"   - Excerpt: {(f['content'] or 'No content')[:300]}"
            )
        return (
            "As an expert fact-checker, evaluate how well the sources below support "
            "or refute the content.\n\n"
            f'Content to analyze:\n"{content}"\n\n'
            "Sources:\n" + ("\n".join(blocks) or "(none)") + "\n\n"
            "Respond with JSON only, in this shape:\n"
            "{\n"
            '  "credibility_score": 0.0-1.0,\n'
            '  "confidence_level": "high|medium|low",\n'
            '  "key_findings": ["..."],\n'
            '  "source_reliability": {"high": [], "medium": [], "low": []},\n'
            '  "consensus": "strong_agreement|moderate_agreement|mixed|conflicting",\n'
            '  "red_flags": ["..."],\n'
            '  "verification_needed": ["..."],\n'
            '  "summary": "..."\n'
            "}\n"
            "Focus on factual accuracy, source quality and potential bias."
        )

    async def analyze_credibility(
        self, content: str, sources: Sequence[SourceLike]
    ) -> AnalysisResult:
        raw = await self.llm.complete(
            self._credibility_prompt(content, sources), temperature=0.3
        )
        payload = parse_json_payload(raw)
        if not isinstance(payload, dict):
            raise AnalysisParseError("Credibility analysis must be a JSON object")
        try:
            result = AnalysisResult.model_validate(payload)
        except (ValidationError, TypeError, ValueError) as e:
            raise AnalysisParseError(f"Credibility analysis has invalid fields: {e}") from e
        logger.info(
            "Credibility analysis complete",
            credibility_score=result.credibility_score,
            confidence_level=result.confidence_level.value,
        )
        return result

    # ────────────────────────────────────────────────────────────
    #  Bias
    # ────────────────────────────────────────────────────────────

    async def detect_bias(self, text: str, source: Optional[str] = None) -> BiasAnalysis:
        prompt = (
            "Analyze the text below for potential bias, inflammatory language or "
            "misleading framing.\n\n"
            f'Text: "{text}"\n'
            f"Source: {source or 'Unknown'}\n\n"
            "Respond with JSON only, in this shape:\n"
            "{\n"
            '  "bias_score": 0.0-1.0,\n'
            '  "bias_types": ["political", "commercial", "confirmation"],\n'
            '  "inflammatory_language": ["..."],\n'
            '  "emotional_indicators": ["..."],\n'
            '  "missing_context": ["..."],\n'
            '  "balanced_assessment": "..."\n'
            "}"
        )
        payload = parse_json_payload(await self.llm.complete(prompt, temperature=0.3))
        if not isinstance(payload, dict):
            raise AnalysisParseError("Bias analysis must be a JSON object")
        try:
            result = BiasAnalysis.model_validate(payload)
        except (ValidationError, TypeError, ValueError) as e:
            raise AnalysisParseError(f"Bias analysis has invalid fields: {e}") from e
        logger.info("Bias analysis complete", bias_score=result.bias_score, source=source)
        return result

    # ────────────────────────────────────────────────────────────
    #  Conversational synthesis
    # ────────────────────────────────────────────────────────────

    def _response_prompt(
        self,
        question: str,
        results: Sequence[SearchResult],
        history: Sequence[ChatMessage],
    ) -> str:
        blocks = []
        for i, r in enumerate(results, start=1):
            f = _source_fields(r)
            key_excerpt = " ... ".join(f["highlights"]) or (f["content"] or "")[:200]
            blocks.append(
                f"{i}. {f['title']}\n"
                f"   - Source: {f['source']} (Credibility: {f['credibility']}/1.0)\n"
                f"   - Published: {f['published'] or 'unknown'}\n"
                f"   - Key excerpt: {key_excerpt}\n"
                f"   - URL: {f['url']}"
            )
        context = "\n".join(m.to_prompt_line() for m in history) or "None"
        return (
            f'User question: "{question}"\n\n'
            f"Search results ({len(results)} sources):\n"
            + ("\n".join(blocks) or "(no sources found)")
            + f"\n\nPrevious conversation:\n{context}\n\n"
            "Write a balanced, conversational answer that:\n"
            "- references specific sources for each claim;\n"
            "- explains differing perspectives when the evidence is mixed;\n"
            "- mentions source credibility where it matters;\n"
            "- is open about gaps when information is insufficient;\n"
            "- avoids absolute certainty (\"evidence suggests\", \"according to reliable sources\").\n"
            "Respond in plain prose, not JSON."
        )

    async def generate_response(
        self,
        question: str,
        results: Sequence[SearchResult],
        history: Sequence[ChatMessage] = (),
    ) -> str:
        text = await self.llm.complete(
            self._response_prompt(question, results, history),
            temperature=0.6,
            max_tokens=1500,
        )
        return text.strip()

    # ────────────────────────────────────────────────────────────
    #  Follow-ups
    # ────────────────────────────────────────────────────────────

    async def generate_follow_up_questions(self, conversation: Sequence[ChatMessage]) -> List[str]:
        transcript = "\n".join(m.to_prompt_line() for m in conversation)
        prompt = (
            "Based on this fact-checking conversation, suggest 3 follow-up questions "
            "that would help the user dig deeper, explore related claims or understand "
            "other sides of the issue.\n\n"
            f"Conversation:\n{transcript}\n\n"
            'Respond with a JSON array only: ["Question 1?", "Question 2?", "Question 3?"]'
        )
        raw = await self.llm.complete(prompt, temperature=0.7)
        payload = parse_json_payload(raw)
        if not isinstance(payload, list):
            raise AnalysisParseError("Follow-up questions must be a JSON array")
        questions = [q.strip() for q in payload if isinstance(q, str) and q.strip()]
        if not questions:
            raise AnalysisParseError("No follow-up questions in model output")
        return questions[:3]
