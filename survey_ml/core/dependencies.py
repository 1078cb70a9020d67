"""
FastAPI dependency injection module for the ML feature scoring service.

Key Dependencies Provided:
- get_ml_features_service: The MLFeaturesService instance built in the lifespan
- get_current_user_optional: Caller identity taken from the X-User-Id header
- MLFeaturesServiceDep / CurrentUserDep: Annotated aliases

The scoring service owns the provider and detector caches, so it must be a
single shared instance per process. It is stored on ``app.state`` by the
lifespan and handed to endpoints through this module; tests replace it with
``app.dependency_overrides[get_ml_features_service]``.

Usage Examples:
    @router.get("/configs")
    async def list_configs(service: MLFeaturesServiceDep):
        return {"success": True, "data": await service.list_configs()}
"""

from typing import Annotated, Optional

from fastapi import Depends, Header, Request

from survey_ml.services.ml_features import MLFeaturesService


# =============================================================================
# Scoring Service Dependency
# =============================================================================

def get_ml_features_service(request: Request) -> MLFeaturesService:
    """
    Return the process-wide MLFeaturesService.

    Falls back to building one on first use when the app was started without
    the lifespan (for example by a bare TestClient without a context manager).
    """
    service = getattr(request.app.state, 'ml_features', None)
    if service is None:
        service = MLFeaturesService()
        request.app.state.ml_features = service
    return service


# =============================================================================
# Caller Identity
# =============================================================================

async def get_current_user_optional(
    x_user_id: Annotated[Optional[str], Header()] = None,
) -> Optional[str]:
    """
    Identify the caller for audit columns such as ``created_by``.

    Authentication happens upstream; the gateway forwards the authenticated
    user's id in ``X-User-Id``. Missing header means an anonymous caller.
    """
    return x_user_id or None


# =============================================================================
# Type Aliases for Dependency Injection
# =============================================================================

MLFeaturesServiceDep = Annotated[MLFeaturesService, Depends(get_ml_features_service)]

CurrentUserDep = Annotated[Optional[str], Depends(get_current_user_optional)]
