"""
FastAPI exception handlers for custom exceptions.

WHY: Exception handlers convert our custom exceptions into JSON responses
with the right status code, so routes can simply raise.
"""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from saas_backend.core.exceptions import AppException, WebhookRejectedError
from saas_backend.schemas.stripe_events import WebhookErrorResponse

logger = logging.getLogger(__name__)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle custom AppException and its subclasses.

    Args:
        request: The FastAPI request object
        exc: The custom exception instance

    Returns:
        JSONResponse with error details
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


async def webhook_rejected_handler(request: Request, exc: WebhookRejectedError) -> JSONResponse:
    """
    Handle webhook deliveries refused before dispatch.

    WHY: Stripe only looks at the status code, but operators reading the
    delivery log in the Stripe dashboard see this body. It keeps the
    {"error", "message", "code"} shape webhook clients already expect.
    """
    logger.info(
        f"Rejected webhook delivery: {exc.message}",
        extra={"path": request.url.path, "reason": exc.__class__.__name__},
    )
    body = WebhookErrorResponse(message=exc.message, code=exc.status_code)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Handle Pydantic validation errors.

    Args:
        request: The FastAPI request object
        exc: The Pydantic validation error

    Returns:
        JSONResponse with field-level error details
    """
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]

    return JSONResponse(
        status_code=400,
        content={
            "error": "ValidationError",
            "message": "Request validation failed",
            "status_code": 400,
            "details": {"errors": errors},
        },
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """
    Handle Starlette HTTP exceptions (404, 405 raised before our routes).
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "HTTPException",
            "message": exc.detail,
            "status_code": exc.status_code,
            "details": None,
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all handler for unexpected exceptions.

    WHY: Logs the traceback but returns a generic error so implementation
    details do not leak (OWASP A04: Insecure Design).
    """
    logger.exception(
        f"Unhandled error on {request.method} {request.url.path}",
        extra={"path": request.url.path},
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "InternalServerError",
            "message": "An unexpected error occurred",
            "status_code": 500,
            "details": None,
        },
    )
