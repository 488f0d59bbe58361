"""
Middleware package.

WHY: Middleware provides cross-cutting concerns like request context
and log correlation that apply to all requests.
"""

from saas_backend.middleware.request_context import (
    RequestContextMiddleware,
    get_request_context,
    get_client_ip,
    RequestContext,
)

__all__ = [
    "RequestContextMiddleware",
    "get_request_context",
    "get_client_ip",
    "RequestContext",
]
