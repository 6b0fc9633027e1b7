"""Application-wide constants and configuration defaults.

This module centralizes magic values, default configurations, and constants
that are used across the codebase to improve maintainability.
"""

# =============================================================================
# Entitlement Rules
# =============================================================================
# Yearly subscribers prepay twelve months of upload quota in one period.
YEARLY_UPLOAD_MULTIPLIER = 12
DEFAULT_TRIAL_FILE_SIZE_LIMIT_MB = 1.0
DEFAULT_APPROACHING_LIMIT_PERCENTAGE = 80

# =============================================================================
# Default Tier Catalog (seed data)
# =============================================================================
DEFAULT_TIERS = [
    {
        "tier_name": "starter",
        "display_name": "Starter",
        "monthly_upload_limit": 100,
        "file_size_limit_mb": 1.0,
        "monthly_price_cents": 19900,
        "yearly_price_cents": 214920,
        "sort_order": 1,
    },
    {
        "tier_name": "professional",
        "display_name": "Professional",
        "monthly_upload_limit": 250,
        "file_size_limit_mb": 2.0,
        "monthly_price_cents": 39900,
        "yearly_price_cents": 430920,
        "sort_order": 2,
    },
    {
        "tier_name": "enterprise",
        "display_name": "Enterprise",
        "monthly_upload_limit": 500,
        "file_size_limit_mb": 3.0,
        "monthly_price_cents": 79900,
        "yearly_price_cents": 861720,
        "sort_order": 3,
    },
]

# =============================================================================
# Cache TTLs
# =============================================================================
TIER_CACHE_TTL_SECONDS = 3600  # 1 hour

# =============================================================================
# Document Validation
# =============================================================================
ALLOWED_DOCUMENT_EXTENSIONS = ("pdf", "docx", "doc", "txt")
SUSPICIOUS_CONTENT_PATTERNS = (
    r"<script",
    r"javascript:",
    r"\bon\w+\s*=",  # inline event handlers like onclick=
    r"\.\./",  # path traversal
    r"\x00",  # null bytes
)
DEFAULT_REPORT_TYPE = "compliance"

# =============================================================================
# Worker
# =============================================================================
DEFAULT_WORKER_TIMEOUT_SECONDS = 300

# =============================================================================
# Database Pool Configuration
# =============================================================================
DEFAULT_DB_POOL_SIZE = 5
DEFAULT_DB_MAX_OVERFLOW = 10
DEFAULT_DB_POOL_TIMEOUT = 30
DEFAULT_DB_POOL_RECYCLE = 1800  # 30 minutes in seconds

# =============================================================================
# API Configuration
# =============================================================================
DOCS_URL = "/docs"
REDOC_URL = "/redoc"
OPENAPI_URL = "/openapi.json"
DEFAULT_API_PREFIX = "/api/v1"
USER_ID_HEADER = "X-User-ID"
API_KEY_HEADER = "X-API-Key"
