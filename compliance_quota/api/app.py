"""FastAPI application factory."""

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi

from compliance_quota import __version__
from compliance_quota.constants import (
    API_KEY_HEADER,
    DEFAULT_API_PREFIX,
    DOCS_URL,
    OPENAPI_URL,
    REDOC_URL,
    USER_ID_HEADER,
)
from compliance_quota.utils.env_utils import parse_bool_env, parse_list_env, parse_str_env
from .middleware import add_middleware, register_exception_handlers
from .routers import (
    documents_router,
    health_router,
    quota_router,
    subscription_router,
    tiers_router,
)

logger = logging.getLogger(__name__)

OPENAPI_TAGS = [
    {"name": "Health", "description": "Service and usage store health"},
    {"name": "Tiers", "description": "Public catalog of subscription tiers with limits and pricing"},
    {"name": "Quota", "description": "Entitlement lookup, upload reservation and free-trial confirmation"},
    {"name": "Subscription", "description": "Pull subscription state from the billing provider"},
    {"name": "Documents", "description": "Gated compliance report generation"},
]

API_DESCRIPTION = f"""
Usage metering and tier gating for compliance report generation.

Each subscription tier sets an upload limit per billing period and a
per-file size limit. Yearly billing multiplies the monthly upload limit
by 12. Users without a subscription get one free report with a smaller
file-size limit.

Every endpoint except `/health` and `/tiers` needs the `{USER_ID_HEADER}`
header. `{API_KEY_HEADER}` is checked when `API_KEY_REQUIRED=true`.

Denied requests return `success: false` with a machine-readable `error`
(`quota_exceeded`, `file_too_large`, `not_subscribed_and_trial_used`, ...),
a `message` and, where one exists, an `upgrade` suggestion.
"""

# (router, path under the API prefix, tag)
ROUTES = [
    (health_router, "", "Health"),
    (tiers_router, "/tiers", "Tiers"),
    (quota_router, "", "Quota"),
    (subscription_router, "/subscription", "Subscription"),
    (documents_router, "/documents", "Documents"),
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the quota service at startup and release database pools at shutdown."""
    from compliance_quota.core.quota import get_quota_service
    from compliance_quota.db.connection import db

    logger.info("Starting Compliance Quota API...")
    service = get_quota_service()
    if not await service.health_check():
        # keep serving; /health reports the store as unhealthy
        logger.warning(f"Usage store {type(service.store).__name__} failed its startup check")

    yield

    logger.info("Shutting down Compliance Quota API...")
    try:
        await db.close_all()
    except Exception as e:
        logger.warning(f"Database cleanup error: {e}")


def custom_openapi(app: FastAPI) -> Dict[str, Any]:
    """OpenAPI schema with the user id and API key header schemes."""
    if app.openapi_schema:
        return app.openapi_schema

    schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
        tags=OPENAPI_TAGS,
    )
    schema["servers"] = [
        {"url": parse_str_env("PUBLIC_API_URL", "http://localhost:8001"), "description": "API server"},
    ]
    schema.setdefault("components", {})["securitySchemes"] = {
        "UserId": {
            "type": "apiKey",
            "in": "header",
            "name": USER_ID_HEADER,
            "description": "Caller's user id, set by the gateway",
        },
        "ApiKey": {
            "type": "apiKey",
            "in": "header",
            "name": API_KEY_HEADER,
            "description": "Checked only when API_KEY_REQUIRED=true",
        },
    }
    schema["security"] = [{"UserId": []}]

    app.openapi_schema = schema
    return schema


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    api_prefix = os.getenv("API_PREFIX", DEFAULT_API_PREFIX)

    app = FastAPI(
        title="Compliance Quota",
        description=API_DESCRIPTION,
        version=__version__,
        docs_url=DOCS_URL,
        redoc_url=REDOC_URL,
        openapi_url=OPENAPI_URL,
        openapi_tags=OPENAPI_TAGS,
        lifespan=lifespan,
        debug=parse_bool_env("DEBUG", False),
    )
    app.openapi = lambda: custom_openapi(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=parse_list_env("CORS_ORIGINS", ["*"]),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    add_middleware(app)
    register_exception_handlers(app)

    for router, path, tag in ROUTES:
        app.include_router(router, prefix=f"{api_prefix}{path}", tags=[tag])

    return app
