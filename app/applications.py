"""
Application records: create, update and serialize.

Sensitive columns are EncryptedString, so assigning plaintext here is enough
for the envelope to be produced at flush time; reading them reveals.
"""

from __future__ import annotations

import datetime
from typing import Any, Iterable

from sqlalchemy.orm import Session, defer

from Security.field_level_encryption import SENSITIVE_FIELDS, ssn_lookup_hash
from .models import Application, WORK_PREFERENCES
from .schemas import ApplicationIn


PUBLIC_FIELDS = (
    "first_name", "last_name", "address", "city", "state", "zip_code",
    "phone", "email", "counselor_email", "program", "site", "lcgms_code",
    "geographic_district", "fingerprint_questionnaire",
    "fingerprint_payment_preference", "documents_verified",
    "attendance_verified", "status",
)
IMMUTABLE_FIELDS = {"id", "submitted_at", "ssn_hash"}


def payload_to_columns(payload: ApplicationIn, partial: bool = False) -> dict[str, Any]:
    data = payload.model_dump(exclude_unset=partial, exclude={"work_preferences"})
    if not partial:
        data = {k: v for k, v in data.items() if v is not None}
    prefs = payload.work_preferences
    if prefs is not None:
        data.update(prefs.model_dump())
    if data.get("email"):
        data["email"] = data["email"].strip().lower()
    return data


def build_application(data: dict[str, Any]) -> Application:
    columns = {k: v for k, v in data.items() if k not in IMMUTABLE_FIELDS}
    columns.setdefault("status", "pending")
    application = Application(**columns)
    application.submitted_at = datetime.datetime.utcnow()
    application.ssn_hash = ssn_lookup_hash(columns.get("ssn"))
    return application


def create_applications(db: Session, rows: Iterable[dict[str, Any]]) -> list[Application]:
    applications = [build_application(row) for row in rows]
    db.add_all(applications)
    db.commit()
    for application in applications:
        db.refresh(application, attribute_names=["id"])
    return applications


def update_application(db: Session, application: Application, changes: dict[str, Any]) -> Application:
    for key, value in changes.items():
        if key in IMMUTABLE_FIELDS or not hasattr(Application, key):
            continue
        if value is None or (key in SENSITIVE_FIELDS and not value):
            continue
        setattr(application, key, value)
        if key == "ssn":
            application.ssn_hash = ssn_lookup_hash(value)
    db.commit()
    return application


def list_applications(db: Session) -> list[Application]:
    # Sensitive columns stay unloaded so listing never decrypts
    options = [defer(getattr(Application, name)) for name in SENSITIVE_FIELDS]
    return db.query(Application).options(*options).order_by(Application.id).all()


def application_to_dict(application: Application, include_sensitive: bool = False) -> dict[str, Any]:
    result: dict[str, Any] = {"id": application.id}
    for name in PUBLIC_FIELDS:
        result[name] = getattr(application, name)
    result["work_preferences"] = {name: bool(getattr(application, name)) for name in WORK_PREFERENCES}
    result["submitted_at"] = application.submitted_at.isoformat() if application.submitted_at else None
    if include_sensitive:
        result["ssn"] = application.ssn
        result["date_of_birth"] = application.date_of_birth
    return result
