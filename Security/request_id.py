"""
REQUEST ID
==========
Attach a unique request id for traceability.
"""

# FLOW:
# - Middleware sets/echoes x-request-id for every request.
# WHY:
# - Lets audit lines and request logs be correlated.
# HOW:
# - Reuses a sane incoming id, otherwise a new UUID.

from __future__ import annotations

import re
import uuid

from starlette.middleware.base import BaseHTTPMiddleware


_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        incoming = request.headers.get("x-request-id") or ""
        request_id = incoming if _REQUEST_ID_RE.match(incoming) else str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["x-request-id"] = request_id
        return response
