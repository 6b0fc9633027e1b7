"""
FastAPI service for compliance report usage metering and tier gating.

This service provides a REST API for:
- Subscription tier catalog
- Entitlement lookup and upload reservation
- One-time free trial
- Billing provider sync
- Gated compliance report generation

Usage:
    uvicorn compliance_quota.main:app --reload --host 0.0.0.0 --port 8001
"""

import logging
import os

from dotenv import load_dotenv

# Load environment variables before importing anything else
load_dotenv()

log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

from compliance_quota.api import create_app  # noqa: E402

app = create_app()

logger.info("Compliance Quota API initialized")


if __name__ == "__main__":
    import uvicorn

    from compliance_quota.utils.env_utils import parse_bool_env, parse_int_env

    host = os.getenv("API_HOST", "0.0.0.0")
    port = parse_int_env("API_PORT", 8001)
    reload = parse_bool_env("DEBUG", False)

    logger.info(f"Starting server on {host}:{port}")

    uvicorn.run(
        "compliance_quota.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level.lower(),
    )
