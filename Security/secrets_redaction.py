"""
SECRETS REDACTION
=================
Utility to mask secrets and SSNs in logs.
"""

# FLOW:
# - redact() masks common secret patterns before logging.
# WHY:
# - Prevents leaking credentials or identifiers in logs.
# HOW:
# - Replaces sensitive values with ***.

from __future__ import annotations

import re

from Security.security_config import feature_enabled


_SECRET_PATTERNS = [
    re.compile(r"(password=)([^&\s]+)", re.IGNORECASE),
    re.compile(r"(token=)([^&\s]+)", re.IGNORECASE),
    re.compile(r"(key=)([^&\s]+)", re.IGNORECASE),
    re.compile(r"(ssn=)([^&\s]+)", re.IGNORECASE),
]

_SSN_RE = re.compile(r"\b\d{3}-?\d{2}-?\d{4}\b")


def redact(value: str) -> str:
    if not feature_enabled("secrets-redaction", True):
        return value
    for pattern in _SECRET_PATTERNS:
        value = pattern.sub(r"\1***", value)
    return _SSN_RE.sub("***-**-****", value)
