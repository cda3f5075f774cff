"""
Credibility and bias analysis models produced by the language model (or the
degraded defaults used when it is unavailable).
"""

from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEGRADED_FINDING = "AI analysis temporarily unavailable"
DEGRADED_BIAS_ASSESSMENT = "Unable to complete bias analysis"


def _str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value if v is not None]


def _clamp_unit(value: Any) -> float:
    return min(1.0, max(0.0, float(value)))


class ConfidenceLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Consensus(str, Enum):
    STRONG_AGREEMENT = "strong_agreement"
    MODERATE_AGREEMENT = "moderate_agreement"
    MIXED = "mixed"
    CONFLICTING = "conflicting"


class SourceReliability(BaseModel):
    high: List[str] = Field(default_factory=list)
    medium: List[str] = Field(default_factory=list)
    low: List[str] = Field(default_factory=list)


class AnalysisResult(BaseModel):
    model_config = ConfigDict(use_enum_values=False, extra="ignore")

    credibility_score: float = 0.5
    confidence_level: ConfidenceLevel = ConfidenceLevel.LOW
    key_findings: List[str] = Field(default_factory=list)
    consensus: Consensus = Consensus.MIXED
    source_reliability: SourceReliability = Field(default_factory=SourceReliability)
    red_flags: List[str] = Field(default_factory=list)
    verification_needed: List[str] = Field(default_factory=list)
    summary: str = ""
    degraded: bool = False

    @field_validator("credibility_score", mode="before")
    @classmethod
    def _clamp_score(cls, value: Any) -> float:
        return _clamp_unit(value)

    @field_validator("confidence_level", "consensus", mode="before")
    @classmethod
    def _normalize_enum(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower().replace(" ", "_")
        return value

    @field_validator("key_findings", "red_flags", "verification_needed", mode="before")
    @classmethod
    def _coerce_str_list(cls, value: Any) -> List[str]:
        return _str_list(value)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


def degraded_analysis() -> AnalysisResult:
    """Fixed analysis used when the credibility capability is unavailable."""
    return AnalysisResult(
        credibility_score=0.5,
        confidence_level=ConfidenceLevel.LOW,
        key_findings=[DEGRADED_FINDING],
        consensus=Consensus.MIXED,
        summary="Manual review recommended - AI analysis unavailable",
        degraded=True,
    )


class BiasAnalysis(BaseModel):
    """Bias and framing assessment of a single piece of text."""

    model_config = ConfigDict(extra="ignore")

    bias_score: float = 0.5
    bias_types: List[str] = Field(default_factory=list)
    inflammatory_language: List[str] = Field(default_factory=list)
    emotional_indicators: List[str] = Field(default_factory=list)
    missing_context: List[str] = Field(default_factory=list)
    balanced_assessment: str = ""
    degraded: bool = False

    @field_validator("bias_score", mode="before")
    @classmethod
    def _clamp_score(cls, value: Any) -> float:
        return _clamp_unit(value)

    @field_validator(
        "bias_types",
        "inflammatory_language",
        "emotional_indicators",
        "missing_context",
        mode="before",
    )
    @classmethod
    def _coerce_str_list(cls, value: Any) -> List[str]:
        return _str_list(value)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


def degraded_bias_analysis() -> BiasAnalysis:
    return BiasAnalysis(balanced_assessment=DEGRADED_BIAS_ASSESSMENT, degraded=True)
