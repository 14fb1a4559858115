"""
System status and configuration endpoints
"""

from fastapi import APIRouter, Depends, Request

from api.dependencies import get_service_config
from utils.config_validator import PromoServiceConfig

SYSTEM_ROUTER = APIRouter(prefix="/api/v1/system", tags=["system"])


@SYSTEM_ROUTER.get("/status")
async def get_system_status(
    request: Request,
    config: PromoServiceConfig = Depends(get_service_config),
):
    """
    Current promo service configuration, useful for debugging deployments
    """
    is_valid, errors, warnings = config.validate()
    return {
        "service": "Remit Promo API",
        "status": "operational" if is_valid else "configuration_incomplete",
        "registry": {
            "backend": config.registry_backend,
            "implementation": type(request.app.state.promo_registry).__name__,
            "unknown_code_policy": config.unknown_code_policy,
            "apply_lock_timeout_seconds": config.apply_lock_timeout_seconds,
        },
        "errors": errors,
        "warnings": warnings,
    }


@SYSTEM_ROUTER.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": "Remit Promo API",
    }
