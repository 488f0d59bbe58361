"""
Logging setup.

WHY: Billing events are reconciled asynchronously, so log lines are the
primary record of what a webhook delivery did. Every record carries the
request ID so all lines from one delivery can be grouped together.
"""

import logging
import sys

from saas_backend.middleware.request_context import get_request_context


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(request_id)s] :: %(message)s"
HANDLER_NAME = "saas_backend"


class RequestIdFilter(logging.Filter):
    """
    Attach the current request ID to every log record.

    WHY: Services and DAOs log without access to the request object;
    the ID is read from the request ContextVar instead.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            ctx = get_request_context()
            record.request_id = ctx.request_id if ctx else "-"
        return True


def configure_logging(level: str = "INFO") -> None:
    """
    Configure the root logger once at application start.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ...)
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    # Repeated app creation (tests) must not stack handlers
    if any(getattr(h, "name", None) == HANDLER_NAME for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RequestIdFilter())
    root.addHandler(handler)
