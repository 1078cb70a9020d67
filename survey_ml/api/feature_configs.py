"""
FastAPI router for feature configuration administration.

Implements FeatureConfig CRUD, enable/disable toggling, per-type default
settings, survey override management and the cache-clear admin action.

Every response uses the standard envelope:
    {"success": true, "data": ...}      on reads and writes
    {"success": true, "message": ...}   on deletes and admin actions

Errors raised by the service (404 missing config, 409 duplicate name, 400 bad
feature type) are rendered by the MLFeatureError handler registered in main.py.
"""

import logging

from fastapi import APIRouter, status

from survey_ml.core.dependencies import CurrentUserDep, MLFeaturesServiceDep
from survey_ml.models.schemas import (
    FeatureConfigCreate,
    FeatureConfigUpdate,
    SurveyOverrideInput,
    ToggleRequest,
)


logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Feature Configs
# =============================================================================

@router.get("/configs", response_model=dict)
async def list_configs(service: MLFeaturesServiceDep) -> dict:
    """List every feature config, newest first."""
    return {"success": True, "data": await service.list_configs()}


@router.get("/configs/type/{feature_type}", response_model=dict)
async def list_configs_by_type(feature_type: str, service: MLFeaturesServiceDep) -> dict:
    """
    List configs of one feature type.

    Path Parameters:
        feature_type: RESPONSE_QUALITY, SENTIMENT_ANALYSIS or DROPOUT_PREDICTION.
            Anything else yields 400.
    """
    return {"success": True, "data": await service.list_configs_by_type(feature_type)}


@router.get("/configs/defaults/{feature_type}", response_model=dict)
async def get_default_settings(feature_type: str, service: MLFeaturesServiceDep) -> dict:
    """
    Full default settings bag for a feature type.

    Example Response:
        {
            "success": true,
            "data": {
                "speedingThresholdSeconds": 2,
                "minimumTotalTimeSeconds": 30,
                "straightLiningThreshold": 0.8,
                ...
            }
        }
    """
    return {"success": True, "data": service.get_default_settings(feature_type)}


@router.get("/configs/{config_id}", response_model=dict)
async def get_config(config_id: str, service: MLFeaturesServiceDep) -> dict:
    """Get one config together with its survey overrides."""
    return {"success": True, "data": await service.get_config(config_id)}


@router.post("/configs", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_config(
    body: FeatureConfigCreate,
    service: MLFeaturesServiceDep,
    user_id: CurrentUserDep,
) -> dict:
    """
    Create a feature config.

    Omitted settings are filled with the feature type's defaults. A name that
    already exists for the same feature type yields 409.

    Example Request:
        POST /ml-features/configs
        {
            "featureType": "SENTIMENT_ANALYSIS",
            "name": "Open-text sentiment",
            "isEnabled": true
        }
    """
    config = await service.create_config(body, created_by=user_id)
    return {"success": True, "data": config}


@router.put("/configs/{config_id}", response_model=dict)
async def update_config(
    config_id: str,
    body: FeatureConfigUpdate,
    service: MLFeaturesServiceDep,
) -> dict:
    """Partially update a config; only fields present in the body change."""
    return {"success": True, "data": await service.update_config(config_id, body)}


@router.delete("/configs/{config_id}", response_model=dict)
async def delete_config(config_id: str, service: MLFeaturesServiceDep) -> dict:
    """Delete a config and, by cascade, its survey overrides."""
    await service.delete_config(config_id)
    return {"success": True, "message": "Feature config deleted"}


@router.patch("/configs/{config_id}/toggle", response_model=dict)
async def toggle_config(
    config_id: str,
    body: ToggleRequest,
    service: MLFeaturesServiceDep,
) -> dict:
    """Enable or disable a config."""
    return {"success": True, "data": await service.toggle_config(config_id, body.isEnabled)}


# =============================================================================
# Survey Overrides
# =============================================================================

@router.get("/configs/{config_id}/overrides", response_model=dict)
async def list_overrides(config_id: str, service: MLFeaturesServiceDep) -> dict:
    return {"success": True, "data": await service.list_overrides(config_id)}


@router.post("/configs/{config_id}/overrides", response_model=dict)
async def upsert_override(
    config_id: str,
    body: SurveyOverrideInput,
    service: MLFeaturesServiceDep,
) -> dict:
    """
    Create or replace the override of a config for one survey.

    Example Request:
        POST /ml-features/configs/cfg_1/overrides
        {"surveyId": "survey_456", "isEnabled": false}
    """
    return {"success": True, "data": await service.upsert_override(config_id, body)}


@router.delete("/configs/{config_id}/overrides/{survey_id}", response_model=dict)
async def delete_override(
    config_id: str,
    survey_id: str,
    service: MLFeaturesServiceDep,
) -> dict:
    await service.delete_override(config_id, survey_id)
    return {"success": True, "message": "Survey override deleted"}


# =============================================================================
# Admin
# =============================================================================

@router.post("/cache/clear", response_model=dict)
async def clear_cache(service: MLFeaturesServiceDep) -> dict:
    """Drop all cached detector and provider instances."""
    service.clear_cache()
    logger.info("Caches cleared via admin endpoint")
    return {"success": True, "message": "Cache cleared"}
