"""FastAPI dependencies: caller identity, API key check and the quota service.

The caller is identified by the X-User-ID header. Authenticating that
identity is the job of the gateway in front of this service.
"""

import logging
import os
from typing import Optional

from fastapi import Header, HTTPException

from compliance_quota.constants import API_KEY_HEADER, USER_ID_HEADER
from compliance_quota.core.quota import QuotaService
from compliance_quota.core.quota import get_quota_service as _get_quota_service
from compliance_quota.utils.env_utils import parse_bool_env

logger = logging.getLogger(__name__)


async def get_user_id(
    x_user_id: Optional[str] = Header(None, alias=USER_ID_HEADER)
) -> str:
    """Caller's user id; 400 when the header is missing or blank."""
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=400, detail=f"{USER_ID_HEADER} header required")
    return user_id


def get_quota_service() -> QuotaService:
    """Process-wide quota service; tests swap it via ``dependency_overrides``."""
    return _get_quota_service()


def get_api_key(
    x_api_key: Optional[str] = Header(None, alias=API_KEY_HEADER)
) -> Optional[str]:
    """
    Check X-API-Key when API_KEY_REQUIRED is true.

    401 when the key is missing, 403 when it does not match API_KEY.
    With the check off the header is passed through unchecked.
    """
    if not parse_bool_env("API_KEY_REQUIRED", False):
        return x_api_key

    if not x_api_key:
        raise HTTPException(status_code=401, detail=f"API key required. Provide {API_KEY_HEADER} header.")
    if x_api_key != os.getenv("API_KEY", ""):
        logger.warning("Rejected request with invalid API key")
        raise HTTPException(status_code=403, detail="Invalid API key")
    return x_api_key
