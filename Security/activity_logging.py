"""
ACTIVITY TRACKING
=================
Structured request logging for monitoring.

FLOW:
- Middleware logs each request with request context.
- Added to the FastAPI middleware stack in app/main.py.

WHY:
- Provides traceability for security audits and incident response.

HOW:
- Writes structured request logs to logs/security.log.
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

from starlette.middleware.base import BaseHTTPMiddleware

from Security.audit_trail import clear_audit_request_context, set_audit_request_context
from Security.metrics import increment_feature_event
from Security.secrets_redaction import redact


def _get_logger() -> logging.Logger:
    logger = logging.getLogger("security.activity")
    if logger.handlers:
        return logger

    log_dir = os.getenv("LOG_DIR", "logs")
    os.makedirs(log_dir, exist_ok=True)
    handler = RotatingFileHandler(os.path.join(log_dir, "security.log"), maxBytes=2_000_000, backupCount=3)
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(message)s")
    handler.setFormatter(formatter)

    logger.setLevel(logging.INFO)
    logger.addHandler(handler)
    return logger


class ActivityLoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app):
        super().__init__(app)
        self.logger = _get_logger()

    async def dispatch(self, request, call_next):
        token = set_audit_request_context(request)
        try:
            response = await call_next(request)
        finally:
            clear_audit_request_context(token)
        increment_feature_event("activity-logging")
        request_id = getattr(request.state, "request_id", None)
        query = request.url.query
        if query:
            query = redact(query)
        self.logger.info(
            "method=%s path=%s query=%s status=%s request_id=%s ip=%s",
            request.method,
            request.url.path,
            query or "",
            response.status_code,
            request_id or "",
            request.client.host if request.client else "unknown",
        )
        return response
