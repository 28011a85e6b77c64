"""
SENSITIVE DATA PROTECTION
=========================
Field-level encryption for the sensitive application fields.
"""

# FLOW:
# - encrypt_field()/decrypt_field() wrap the cipher for single values.
# - EncryptedString and the legacy backfill go through them.
# WHY:
# - Protects individual columns without encrypting whole rows.
# HOW:
# - Uses the process-wide FieldCipher unless one is passed in.

from __future__ import annotations

from Security.data_encryption_at_rest import FieldCipher
from Security.data_integrity import ssn_index
from Security.key_management import get_field_cipher


SENSITIVE_FIELDS = ("ssn", "date_of_birth")


def encrypt_field(value: str | None, cipher: FieldCipher | None = None) -> str | None:
    if value is None:
        return None
    return (cipher or get_field_cipher()).protect(value)


def decrypt_field(token: str | None, cipher: FieldCipher | None = None) -> str | None:
    if token is None:
        return None
    return (cipher or get_field_cipher()).reveal(token)


def ssn_lookup_hash(ssn: str | None, cipher: FieldCipher | None = None) -> str | None:
    """Keyed hash of the SSN digits, used for duplicate detection."""
    cipher = cipher or get_field_cipher()
    return ssn_index(ssn, cipher.settings.passphrase)
