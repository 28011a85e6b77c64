"""
ENCRYPTED SQLALCHEMY TYPES
==========================
Field-level encryption for SQLAlchemy String columns.
"""

# FLOW:
# - Protect on bind (write) and reveal on result (read).
# - Uses the FieldCipher built by initialize_encryption().
# WHY:
# - Ensures sensitive fields are encrypted at rest transparently.
# HOW:
# - SQLAlchemy TypeDecorator wraps String columns. Codec errors propagate
#   so a failed write never stores plaintext.

from __future__ import annotations

from sqlalchemy.types import String, TypeDecorator

from Security.field_level_encryption import decrypt_field, encrypt_field


class EncryptedString(TypeDecorator):
    impl = String
    cache_ok = True

    def __init__(self, length=None, **kwargs):
        super().__init__(**kwargs)
        self.length = length

    def load_dialect_impl(self, dialect):
        return dialect.type_descriptor(String(self.length))

    def process_bind_param(self, value, dialect):
        return encrypt_field(value)

    def process_result_value(self, value, dialect):
        return decrypt_field(value)

