"""
FastAPI router for free-text sentiment analysis.

Endpoints:
    POST /sentiment/analyze             Analyze one text
    POST /sentiment/analyze/batch       Analyze many texts under one config
    GET  /sentiment/stats/{surveyId}    Aggregate sentiment statistics

Without a surveyId the earliest enabled sentiment config is used; with one,
survey overrides apply as for the other features.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query

from survey_ml.core.dependencies import MLFeaturesServiceDep
from survey_ml.models.schemas import SentimentBatchRequest, SentimentInput


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/sentiment/analyze", response_model=dict)
async def analyze_sentiment(
    body: SentimentInput,
    service: MLFeaturesServiceDep,
    config_id: Optional[str] = Query(default=None, alias="configId"),
    survey_id: Optional[str] = Query(default=None, alias="surveyId"),
    answer_id: Optional[str] = Query(default=None, alias="answerId"),
) -> dict:
    """
    Example Request:
        POST /ml-features/sentiment/analyze?surveyId=survey_456
        {"text": "Support was slow and unhelpful"}

    Example Response:
        {
            "success": true,
            "data": {
                "sentiment": "negative",
                "score": -0.5,
                "confidence": 0.7,
                "emotions": {"anger": 0.5},
                "keywords": ["support", "slow", "unhelpful"],
                "modelVersion": "lexicon-based",
                "configId": "cfg_2"
            }
        }
    """
    result = await service.analyze_sentiment(
        body, config_id=config_id, survey_id=survey_id, answer_id=answer_id
    )
    return {"success": True, "data": result}


@router.post("/sentiment/analyze/batch", response_model=dict)
async def analyze_sentiment_batch(
    body: SentimentBatchRequest,
    service: MLFeaturesServiceDep,
    config_id: Optional[str] = Query(default=None, alias="configId"),
    survey_id: Optional[str] = Query(default=None, alias="surveyId"),
) -> dict:
    """Results come back in input order, each tagged with its answerId."""
    logger.info(f"Batch sentiment request with {len(body.inputs)} inputs")
    results = await service.analyze_sentiment_batch(
        body.inputs, config_id=config_id, survey_id=survey_id
    )
    return {"success": True, "data": results}


@router.get("/sentiment/stats/{survey_id}", response_model=dict)
async def sentiment_stats(survey_id: str, service: MLFeaturesServiceDep) -> dict:
    return {"success": True, "data": await service.get_sentiment_stats(survey_id)}
