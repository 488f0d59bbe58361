"""
Main FastAPI application.

WHY: This is the entry point for the application. It configures logging,
middleware, routes, exception handlers and the billing service.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from saas_backend.api import webhooks
from saas_backend.core.config import Settings, settings
from saas_backend.core.exception_handlers import (
    app_exception_handler,
    generic_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    webhook_rejected_handler,
)
from saas_backend.core.exceptions import AppException, WebhookRejectedError
from saas_backend.core.logging import configure_logging
from saas_backend.middleware import RequestContextMiddleware
from saas_backend.services.billing_service import BillingConfig, BillingService

logger = logging.getLogger(__name__)


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure FastAPI application.

    WHY: Factory pattern lets tests build apps with their own settings.
    The billing configuration is validated here, once, so a
    misconfigured deployment fails at startup.

    Args:
        app_settings: Settings to use (defaults to the environment)

    Returns:
        Configured FastAPI application instance

    Raises:
        BillingConfigError: If billing is enabled but incomplete
    """
    app_settings = app_settings or settings
    configure_logging(app_settings.LOG_LEVEL)

    billing_service = BillingService.from_config(BillingConfig.from_settings(app_settings))

    app = FastAPI(
        title=app_settings.PROJECT_NAME,
        description="SaaS backend billing API",
        version=app_settings.VERSION,
        docs_url=f"{app_settings.API_V1_PREFIX}/docs",
        openapi_url=f"{app_settings.API_V1_PREFIX}/openapi.json",
    )
    app.state.settings = app_settings
    app.state.billing_service = billing_service

    # Register exception handlers
    # WHY: Webhook rejections have their own response shape; the more
    # specific class is matched first by Starlette.
    app.add_exception_handler(WebhookRejectedError, webhook_rejected_handler)
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # WHY: Assigns the request ID used by every log line of a delivery
    app.add_middleware(RequestContextMiddleware)

    @app.get("/health", tags=["health"])
    async def health_check(request: Request) -> dict:
        """
        Health check endpoint.

        WHY: Load balancers need a cheap liveness probe; billing
        availability is reported so a disabled webhook is visible.
        """
        billing: BillingService = request.app.state.billing_service
        return {
            "status": "healthy",
            "version": app_settings.VERSION,
            "billing": {"available": billing.is_available},
        }

    app.include_router(webhooks.router, prefix=app_settings.API_V1_PREFIX)

    logger.info(
        f"{app_settings.PROJECT_NAME} started",
        extra={"billing_available": billing_service.is_available},
    )
    return app


# Create app instance
# WHY: Imported by uvicorn (`uvicorn saas_backend.main:app`)
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "saas_backend.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="info" if settings.DEBUG else "warning",
    )
