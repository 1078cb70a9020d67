"""
FastAPI router for drop-out risk prediction.

Endpoints:
    POST  /dropout/predict                         Predict drop-out risk
    PATCH /dropout/intervention/{predictionId}     Record that the intervention was shown
    GET   /dropout/stats/{surveyId}                Aggregate drop-out statistics

The survey client calls the PATCH endpoint after it has displayed the
suggested intervention, using the predictionId returned by /dropout/predict.
"""

from typing import Optional

from fastapi import APIRouter, Query

from survey_ml.core.dependencies import MLFeaturesServiceDep
from survey_ml.models.schemas import DropoutPredictionInput


router = APIRouter()


@router.post("/dropout/predict", response_model=dict)
async def predict_dropout(
    body: DropoutPredictionInput,
    service: MLFeaturesServiceDep,
    config_id: Optional[str] = Query(default=None, alias="configId"),
) -> dict:
    """
    Example Response:
        {
            "success": true,
            "data": {
                "dropoutProbability": 0.62,
                "riskLevel": "high",
                "suggestedIntervention": {"type": "PROGRESS_BAR", "message": "..."},
                "confidence": 0.7,
                "factors": [...],
                "modelVersion": "rule-based",
                "configId": "cfg_3",
                "predictionId": "5b0c..."
            }
        }
    """
    return {"success": True, "data": await service.predict_dropout(body, config_id)}


@router.patch("/dropout/intervention/{prediction_id}", response_model=dict)
async def mark_intervention_shown(prediction_id: str, service: MLFeaturesServiceDep) -> dict:
    await service.mark_intervention_shown(prediction_id)
    return {"success": True, "message": "Intervention marked as shown"}


@router.get("/dropout/stats/{survey_id}", response_model=dict)
async def dropout_stats(survey_id: str, service: MLFeaturesServiceDep) -> dict:
    return {"success": True, "data": await service.get_dropout_stats(survey_id)}
