"""Subscription Tiers API endpoints.

Public endpoint (no user header required) for retrieving available
subscription tiers. Used by the pricing page to display plan options.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends

from compliance_quota.core.quota import QuotaService, TierDefinition, effective_upload_limit
from compliance_quota.core.quota.schemas import BillingInterval
from ..dependencies import get_quota_service
from ..schemas.errors import BASE_ERROR_RESPONSES
from ..schemas.quota import TierResponse, TiersListResponse

logger = logging.getLogger(__name__)
router = APIRouter()


def _generate_key_features(tier: TierDefinition) -> List[str]:
    """Generate key features list for display."""
    return [
        f"{tier.monthly_upload_limit:,} reports/month",
        f"Files up to {tier.file_size_limit_mb:g} MB",
        f"{effective_upload_limit(tier, BillingInterval.yearly):,} reports/year on annual billing",
    ]


def _to_response(tier: TierDefinition) -> TierResponse:
    return TierResponse(
        id=tier.tier_name,
        name=tier.label,
        monthly_upload_limit=tier.monthly_upload_limit,
        yearly_upload_limit=effective_upload_limit(tier, BillingInterval.yearly),
        file_size_limit_mb=tier.file_size_limit_mb,
        monthly_price_usd=tier.monthly_price_cents / 100,
        annual_price_usd=tier.yearly_price_cents / 100,
        key_features=_generate_key_features(tier),
    )


@router.get(
    "",
    response_model=TiersListResponse,
    operation_id="listTiers",
    summary="List available subscription tiers",
    responses=BASE_ERROR_RESPONSES,
)
async def list_tiers(service: QuotaService = Depends(get_quota_service)):
    """
    Get all available subscription tiers with pricing and limits.

    Tiers are returned in upgrade order.
    """
    tiers = await service.list_tiers()
    return TiersListResponse(success=True, tiers=[_to_response(t) for t in tiers])
