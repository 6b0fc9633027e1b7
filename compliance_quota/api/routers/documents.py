"""Gated compliance report generation endpoint."""

import logging
import time

from fastapi import APIRouter, Depends

from compliance_quota.core.quota import QuotaService
from compliance_quota.utils.timer_utils import elapsed_ms
from ..dependencies import get_api_key, get_quota_service, get_user_id
from ..schemas.errors import DOCUMENT_ERROR_RESPONSES
from ..schemas.quota import ProcessDocumentRequest, ProcessDocumentResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/process",
    response_model=ProcessDocumentResponse,
    operation_id="processDocument",
    summary="Generate a compliance report for a document",
    responses=DOCUMENT_ERROR_RESPONSES,
)
async def process_document(
    request: ProcessDocumentRequest,
    user_id: str = Depends(get_user_id),
    service: QuotaService = Depends(get_quota_service),
    _api_key: str = Depends(get_api_key),
):
    """
    Validate the document, reserve quota and generate the report.

    **Order of checks**:
    1. File type and content validation (400, no quota consumed)
    2. Quota gate (402 / 403 / 413 / 503)
    3. Report generation (503 on worker failure; the upload unit is not refunded)
    4. Free-trial confirmation, only after the report was generated
    """
    start_time = time.perf_counter()

    result = await service.process_document(
        user_id=user_id,
        document=request.document,
        filename=request.filename,
        report_type=request.report_type,
        compliance_data=request.compliance_data,
    )

    return ProcessDocumentResponse(
        report=result.report,
        filename=result.filename,
        report_type=result.report_type,
        trial_used=result.trial_used,
        tier_name=result.decision.tier_name,
        uploads_used=result.decision.uploads_used,
        upload_limit=result.decision.upload_limit,
        remaining=result.decision.remaining,
        processing_time_ms=elapsed_ms(start_time),
    )
