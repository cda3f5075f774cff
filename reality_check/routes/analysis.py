"""
Stand-alone analysis routes: credibility of content against caller-supplied
sources, and bias detection for a single text
"""

from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends, HTTPException

from ..core.dependencies import get_analyzer
from ..models.analysis import degraded_analysis, degraded_bias_analysis
from ..models.conversation import BiasRequest, CredibilityRequest
from ..services.analysis_service import AnalysisService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/analysis", tags=["analysis"])


@router.post("/credibility")
async def analyze_credibility(
    body: CredibilityRequest,
    analyzer: AnalysisService = Depends(get_analyzer),
) -> Dict[str, Any]:
    if not body.content.strip():
        return degraded_analysis().to_wire()
    try:
        result = await analyzer.analyze_credibility(body.content, body.sources)
    except Exception as e:
        logger.warning("Credibility analysis failed, returning degraded analysis", error=str(e))
        result = degraded_analysis()
    return result.to_wire()


@router.post("/bias")
async def detect_bias(
    body: BiasRequest,
    analyzer: AnalysisService = Depends(get_analyzer),
) -> Dict[str, Any]:
    if not body.text.strip():
        raise HTTPException(status_code=400, detail="Text is required")
    try:
        result = await analyzer.detect_bias(body.text, body.source)
    except Exception as e:
        logger.warning("Bias analysis failed, returning degraded analysis", error=str(e))
        result = degraded_bias_analysis()
    return result.to_wire()
