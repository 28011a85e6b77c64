"""
DATA ENCRYPTION AT REST
=======================
AES-256-GCM envelopes for sensitive string fields (SSN, date of birth).

FLOW:
- protect() turns plaintext into a base64 envelope.
- reveal() turns an envelope back into plaintext (legacy plaintext passes through).

WHY:
- Protects data if the database is compromised and detects tampering.

HOW:
- Envelope layout is salt(64) || iv(16) || tag(16) || ciphertext, base64 encoded.
- The AES key is derived per call with PBKDF2-HMAC-SHA512 (100k iterations)
  from the process passphrase and the envelope's own salt.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
import re
from dataclasses import dataclass, field

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from Security.metrics import increment_feature_event


SALT_LENGTH = 64
IV_LENGTH = 16
TAG_LENGTH = 16
KEY_LENGTH = 32
KDF_ITERATIONS = 100_000
HEADER_LENGTH = SALT_LENGTH + IV_LENGTH + TAG_LENGTH

_BASE64_RE = re.compile(r"^[A-Za-z0-9+/=]+$")

logger = logging.getLogger("security.encryption")


class FieldEncryptionError(Exception):
    """Base class for every field encryption failure."""


class EncryptionConfigError(FieldEncryptionError):
    """Passphrase missing or unusable. Fatal at startup."""


class EncryptionFailed(FieldEncryptionError):
    pass


class DecryptionFailed(FieldEncryptionError):
    """Tag mismatch: tampered data, corrupted data or the wrong passphrase."""


class MalformedEnvelope(FieldEncryptionError):
    """Value is not an envelope and legacy plaintext is not allowed."""


@dataclass(frozen=True)
class EncryptionSettings:
    passphrase: str = field(repr=False)
    allow_legacy_plaintext: bool = True

    def __post_init__(self):
        if not isinstance(self.passphrase, str) or not self.passphrase.strip():
            raise EncryptionConfigError("Encryption passphrase must be a non-empty string")


def _decode(value: str) -> bytes | None:
    if not value or not _BASE64_RE.match(value):
        return None
    try:
        raw = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return None
    if len(raw) < HEADER_LENGTH:
        return None
    return raw


def is_envelope(value: str) -> bool:
    """True when value is structurally an envelope (not proof it decrypts)."""
    return isinstance(value, str) and _decode(value) is not None


class FieldCipher:
    """Stateless envelope codec bound to one immutable passphrase."""

    def __init__(self, settings: EncryptionSettings):
        self._settings = settings
        self._secret = settings.passphrase.encode("utf-8")

    @property
    def settings(self) -> EncryptionSettings:
        return self._settings

    def _derive_key(self, salt: bytes) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA512(),
            length=KEY_LENGTH,
            salt=salt,
            iterations=KDF_ITERATIONS,
        )
        return kdf.derive(self._secret)

    def protect(self, plaintext: str) -> str:
        """Encrypt plaintext into a fresh envelope. Raises EncryptionFailed."""
        if not isinstance(plaintext, str):
            raise TypeError("protect() expects str, got %s" % type(plaintext).__name__)
        try:
            salt = os.urandom(SALT_LENGTH)
            iv = os.urandom(IV_LENGTH)
            key = self._derive_key(salt)
            # AESGCM appends the tag to the ciphertext
            sealed = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
        except Exception as exc:
            increment_feature_event("field-encryption.failure")
            logger.warning("protect failed: %s", exc.__class__.__name__)
            raise EncryptionFailed("Field encryption failed") from exc

        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        increment_feature_event("field-encryption.protect")
        return base64.b64encode(salt + iv + tag + ciphertext).decode("ascii")

    def reveal(self, envelope: str) -> str:
        """Decrypt an envelope.

        Values that are not envelopes are returned unchanged when legacy
        plaintext is allowed, otherwise MalformedEnvelope is raised. A value
        that is an envelope but fails authentication raises DecryptionFailed.
        """
        if not isinstance(envelope, str):
            raise TypeError("reveal() expects str, got %s" % type(envelope).__name__)
        raw = _decode(envelope)
        if raw is None:
            if self._settings.allow_legacy_plaintext:
                return envelope
            increment_feature_event("field-encryption.failure")
            raise MalformedEnvelope("Value is not a field encryption envelope")

        salt = raw[:SALT_LENGTH]
        iv = raw[SALT_LENGTH:SALT_LENGTH + IV_LENGTH]
        tag = raw[SALT_LENGTH + IV_LENGTH:HEADER_LENGTH]
        ciphertext = raw[HEADER_LENGTH:]
        try:
            key = self._derive_key(salt)
            plaintext = AESGCM(key).decrypt(iv, ciphertext + tag, None)
            result = plaintext.decode("utf-8")
        except InvalidTag as exc:
            increment_feature_event("field-encryption.failure")
            logger.warning("reveal failed: authentication tag mismatch")
            raise DecryptionFailed("Field authentication failed") from exc
        except Exception as exc:
            increment_feature_event("field-encryption.failure")
            logger.warning("reveal failed: %s", exc.__class__.__name__)
            raise DecryptionFailed("Field decryption failed") from exc

        increment_feature_event("field-encryption.reveal")
        return result
