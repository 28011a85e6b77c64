"""
SECURE KEY MANAGEMENT
=====================
Load the field encryption passphrase from environment and hold the codec.
"""

# FLOW:
# - load_encryption_settings() reads ENCRYPTION_KEY from env / .env files.
# - initialize_encryption() builds the process-wide FieldCipher at startup.
# - get_field_cipher() hands it to routes, column types and scripts.
# WHY:
# - Prevents hard-coded keys; a missing key must stop the process.
# HOW:
# - Rejects empty and placeholder values, never generates a key.

from __future__ import annotations

import os
import threading

from Security.data_encryption_at_rest import (
    EncryptionConfigError,
    EncryptionSettings,
    FieldCipher,
)
from Security.security_config import get_bool, load_environment


PLACEHOLDERS = {
    "",
    "CHANGE_ME",
    "CHANGE_ME_BASE64_32_BYTES",
    "REPLACE_WITH_SECURE_RANDOM_SECRET",
    "AUTO_GENERATE",
}

_lock = threading.Lock()
_cipher: FieldCipher | None = None


def load_encryption_settings(env_name: str = "ENCRYPTION_KEY") -> EncryptionSettings:
    """Read the passphrase and fallback policy. Raises EncryptionConfigError."""
    load_environment()
    raw = os.getenv(env_name)
    if raw is None or raw.strip() in PLACEHOLDERS:
        raise EncryptionConfigError(
            f"{env_name} must be set before the application starts (see .env.local)"
        )
    return EncryptionSettings(
        passphrase=raw,
        allow_legacy_plaintext=get_bool("ALLOW_LEGACY_PLAINTEXT", True),
    )


def initialize_encryption(settings: EncryptionSettings | None = None) -> FieldCipher:
    """Build the process-wide cipher once. Call at startup."""
    global _cipher
    with _lock:
        if settings is None:
            settings = load_encryption_settings()
        _cipher = FieldCipher(settings)
        return _cipher


def get_field_cipher() -> FieldCipher:
    if _cipher is None:
        raise EncryptionConfigError("Field encryption was not initialized")
    return _cipher


def reset_field_cipher() -> None:
    global _cipher
    with _lock:
        _cipher = None
