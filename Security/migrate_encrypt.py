"""
Backfill encryption for existing rows.
Requires ENCRYPTION_KEY to be set.

Legacy rows may hold plaintext SSNs / dates of birth. This script reads the
raw column values (bypassing EncryptedString), protects every value that is
not already an envelope and fills ssn_hash. Safe to run repeatedly.

    python -m Security.migrate_encrypt
"""

from __future__ import annotations

import logging

from sqlalchemy import text

from Security.data_encryption_at_rest import FieldCipher, is_envelope
from Security.field_level_encryption import decrypt_field, encrypt_field, ssn_lookup_hash
from Security.key_management import initialize_encryption


logger = logging.getLogger("security.migrate")


def migrate_applications(db, cipher: FieldCipher) -> dict[str, int]:
    counts = {"scanned": 0, "encrypted_fields": 0, "indexed": 0}
    rows = db.execute(text("SELECT id, ssn, date_of_birth, ssn_hash FROM applications")).all()
    for row_id, ssn, dob, ssn_hash in rows:
        counts["scanned"] += 1
        updates = {}
        plain_ssn = None
        if ssn and not is_envelope(ssn):
            plain_ssn = ssn
            updates["ssn"] = encrypt_field(ssn, cipher)
        if dob and not is_envelope(dob):
            updates["date_of_birth"] = encrypt_field(dob, cipher)
        if ssn and not ssn_hash:
            plain_ssn = plain_ssn or decrypt_field(ssn, cipher)
            updates["ssn_hash"] = ssn_lookup_hash(plain_ssn, cipher)
            counts["indexed"] += 1
        if not updates:
            continue
        counts["encrypted_fields"] += len({"ssn", "date_of_birth"} & set(updates))
        assignments = ", ".join(f"{name} = :{name}" for name in updates)
        db.execute(text(f"UPDATE applications SET {assignments} WHERE id = :id"), {**updates, "id": row_id})
    return counts


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    cipher = initialize_encryption()

    from app.database import SessionLocal

    db = SessionLocal()
    try:
        counts = migrate_applications(db, cipher)
        db.commit()
    finally:
        db.close()
    logger.info(
        "scanned=%s encrypted_fields=%s indexed=%s",
        counts["scanned"], counts["encrypted_fields"], counts["indexed"],
    )


if __name__ == "__main__":
    main()
