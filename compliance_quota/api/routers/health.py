"""Health check API endpoint."""

import logging
from datetime import datetime, timezone
from typing import Dict, Any

from fastapi import APIRouter, Depends

from compliance_quota.core.quota import QuotaService
from ..dependencies import get_quota_service
from ..schemas.common import HealthStatus, HealthStatusEnum

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get(
    "/health",
    response_model=HealthStatus,
    operation_id="getHealth",
    summary="Check service health",
)
async def health_check(service: QuotaService = Depends(get_quota_service)):
    """
    Check the health of the usage store.

    **No authentication required**: This endpoint does not require the X-User-ID header.
    """
    components: Dict[str, Dict[str, Any]] = {}
    store_name = type(service.store).__name__

    try:
        healthy = await service.health_check()
        components["usage_store"] = {
            "status": "healthy" if healthy else "unhealthy",
            "backend": store_name,
        }
    except Exception as e:
        logger.error(f"Usage store health check failed: {e}")
        components["usage_store"] = {
            "status": "unhealthy",
            "backend": store_name,
            "message": str(e),
        }

    status = HealthStatusEnum.healthy
    if components["usage_store"]["status"] != "healthy":
        status = HealthStatusEnum.unhealthy

    return HealthStatus(
        status=status,
        timestamp=datetime.now(timezone.utc),
        components=components,
    )
