"""
FastAPI router for response quality scoring.

Endpoints:
    POST /quality/analyze           Score one survey response
    GET  /quality/stats/{surveyId}  Aggregate quality statistics for a survey
"""

from typing import Optional

from fastapi import APIRouter, Query

from survey_ml.core.dependencies import MLFeaturesServiceDep
from survey_ml.models.schemas import ResponseQualityInput


router = APIRouter()


@router.post("/quality/analyze", response_model=dict)
async def analyze_quality(
    body: ResponseQualityInput,
    service: MLFeaturesServiceDep,
    config_id: Optional[str] = Query(default=None, alias="configId"),
) -> dict:
    """
    Score a response for speeding, straight-lining, low variance, gibberish
    and answer patterns.

    Query Parameters:
        configId: Use this config instead of resolving one for the survey.

    Example Response:
        {
            "success": true,
            "data": {
                "qualityScore": 72.5,
                "flags": [{"type": "SPEEDING", "severity": "medium", ...}],
                "recommendation": "REVIEW",
                "confidence": 0.8,
                "modelVersion": "rule-based",
                "configId": "cfg_1"
            }
        }
    """
    return {"success": True, "data": await service.analyze_quality(body, config_id)}


@router.get("/quality/stats/{survey_id}", response_model=dict)
async def quality_stats(survey_id: str, service: MLFeaturesServiceDep) -> dict:
    return {"success": True, "data": await service.get_quality_stats(survey_id)}
