"""
DATA INTEGRITY
==============
Hashing helpers for integrity checks and lookups on encrypted fields.

FLOW:
- blind_index() returns a keyed hash so encrypted values can still be matched.

WHY:
- Envelopes are randomized, so equal plaintexts never compare equal.

HOW:
- HMAC-SHA256 keyed with the passphrase for indexes.
"""

from __future__ import annotations

import hashlib
import hmac
import re


def normalize_ssn(value: str) -> str:
    return re.sub(r"\D", "", value or "")


def blind_index(value: str, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), value.encode("utf-8"), hashlib.sha256).hexdigest()


def ssn_index(ssn: str | None, secret: str) -> str | None:
    digits = normalize_ssn(ssn or "")
    if not digits:
        return None
    return blind_index("ssn:" + digits, secret)
