"""Shared error response definitions for OpenAPI documentation.

Use these in FastAPI route definitions for consistent error documentation.
"""

from .common import ErrorResponse

# =============================================================================
# Base Error Responses
# =============================================================================

BASE_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Missing X-User-ID header or invalid request"},
    401: {"model": ErrorResponse, "description": "API key required but not provided"},
    500: {"model": ErrorResponse, "description": "Internal server error"},
    503: {
        "model": ErrorResponse,
        "description": "Tier configuration or upstream service unavailable (fails closed)",
    },
}

# =============================================================================
# API-Specific Error Responses
# =============================================================================

UPLOAD_ERROR_RESPONSES = {
    **BASE_ERROR_RESPONSES,
    402: {"model": ErrorResponse, "description": "Upload quota exhausted for the current period"},
    403: {"model": ErrorResponse, "description": "Not subscribed and free trial already used"},
    413: {"model": ErrorResponse, "description": "File exceeds the tier's size limit"},
}

TRIAL_ERROR_RESPONSES = {
    **BASE_ERROR_RESPONSES,
    403: {"model": ErrorResponse, "description": "Free trial already used"},
}

DOCUMENT_ERROR_RESPONSES = {
    **UPLOAD_ERROR_RESPONSES,
    400: {"model": ErrorResponse, "description": "Invalid file type or suspicious content"},
}
