"""Entitlement, upload reservation and free-trial endpoints."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from compliance_quota.core.quota import QuotaService
from ..dependencies import get_api_key, get_quota_service, get_user_id
from ..schemas.errors import BASE_ERROR_RESPONSES, TRIAL_ERROR_RESPONSES, UPLOAD_ERROR_RESPONSES
from ..schemas.quota import (
    EntitlementResponse,
    GateDecisionResponse,
    ReserveUploadRequest,
    TrialConfirmResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get(
    "/entitlement",
    response_model=EntitlementResponse,
    operation_id="getEntitlement",
    summary="Get current tier, remaining quota and trial availability",
    responses=BASE_ERROR_RESPONSES,
)
async def get_entitlement(
    user_id: str = Depends(get_user_id),
    service: QuotaService = Depends(get_quota_service),
    _api_key: str = Depends(get_api_key),
):
    """
    Return what the calling user may do right now.

    Subscribed users see their tier, effective upload limit (×12 for yearly
    billing), uploads used and file-size limit. Unsubscribed users see the
    free-trial file-size limit and whether the trial is still available.
    """
    summary = await service.get_entitlement(user_id)
    return EntitlementResponse(entitlement=summary)


@router.post(
    "/uploads/reserve",
    response_model=GateDecisionResponse,
    operation_id="reserveUpload",
    summary="Check limits and reserve one upload unit",
    responses=UPLOAD_ERROR_RESPONSES,
)
async def reserve_upload(
    request: ReserveUploadRequest,
    user_id: str = Depends(get_user_id),
    service: QuotaService = Depends(get_quota_service),
    _api_key: str = Depends(get_api_key),
):
    """
    Run the quota gate for a file of the given size.

    **Allowed, subscribed**: one upload unit is consumed; `remaining` is the
    count after this upload.

    **Allowed, trial**: nothing is consumed; confirm the trial via
    `POST /trial/confirm` after processing succeeds.

    **Denied**: returns the reason with status 402, 403, 413 or 503.
    Usage is never touched on a deny.
    """
    decision = await service.reserve_upload(user_id, request.file_size_mb)
    if not decision.allowed:
        return JSONResponse(
            status_code=decision.status_code,
            content=decision.to_response_dict(),
        )
    return GateDecisionResponse(**decision.to_response_dict())


@router.post(
    "/trial/confirm",
    response_model=TrialConfirmResponse,
    operation_id="confirmTrialUse",
    summary="Mark the free trial as used",
    responses=TRIAL_ERROR_RESPONSES,
)
async def confirm_trial_use(
    user_id: str = Depends(get_user_id),
    service: QuotaService = Depends(get_quota_service),
    _api_key: str = Depends(get_api_key),
):
    """
    Confirm the free trial after the trial request completed successfully.

    Succeeds at most once per user; later calls return 403.
    """
    state = await service.confirm_trial_use(user_id)
    return TrialConfirmResponse(user_id=state.user_id, trial_used=state.trial_used)
