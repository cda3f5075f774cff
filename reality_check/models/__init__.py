from .analysis import (
    AnalysisResult,
    BiasAnalysis,
    ConfidenceLevel,
    Consensus,
    degraded_analysis,
    degraded_bias_analysis,
)
from .search import AggregateResult, ResultType, SearchResult

__all__ = [
    "AggregateResult",
    "AnalysisResult",
    "BiasAnalysis",
    "ConfidenceLevel",
    "Consensus",
    "ResultType",
    "SearchResult",
    "degraded_analysis",
    "degraded_bias_analysis",
]
