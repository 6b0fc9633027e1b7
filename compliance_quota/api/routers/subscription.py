"""Billing-provider sync endpoint."""

import logging

from fastapi import APIRouter, Depends

from compliance_quota.core.quota import QuotaService
from ..dependencies import get_api_key, get_quota_service, get_user_id
from ..schemas.errors import BASE_ERROR_RESPONSES
from ..schemas.quota import SubscriptionSyncRequest, SubscriptionSyncResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/sync",
    response_model=SubscriptionSyncResponse,
    operation_id="syncSubscription",
    summary="Synchronize subscription state with the billing provider",
    responses=BASE_ERROR_RESPONSES,
)
async def sync_subscription(
    request: SubscriptionSyncRequest,
    user_id: str = Depends(get_user_id),
    service: QuotaService = Depends(get_quota_service),
    _api_key: str = Depends(get_api_key),
):
    """
    Pull the current subscription from the billing provider.

    Usage resets when the tier changed; renewing the same tier keeps the
    count. A price that maps to no tier returns 503 and every later upload
    is denied until the catalog is fixed.
    """
    result = await service.sync_subscription(user_id, request.email)
    return SubscriptionSyncResponse(
        subscribed=result.state.subscribed,
        tier_name=result.state.tier_name,
        billing_interval=result.state.billing_interval,
        period_end=result.state.period_end,
        previous_tier=result.previous_tier,
        tier_changed=result.tier_changed,
        uploads_used=result.usage.uploads_used,
        upload_limit=result.usage.effective_upload_limit,
        remaining=result.usage.remaining,
    )
