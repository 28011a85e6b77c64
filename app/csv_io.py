"""CSV import/export for applications and coupons."""

from __future__ import annotations

import csv
import io
from typing import Any, Iterable

from .models import WORK_PREFERENCES


TEMPLATE_COLUMNS = (
    ("firstName", "first_name"),
    ("lastName", "last_name"),
    ("email", "email"),
    ("counselor_email", "counselor_email"),
    ("phone", "phone"),
    ("address", "address"),
    ("city", "city"),
    ("state", "state"),
    ("zipCode", "zip_code"),
    ("ssn", "ssn"),
    ("dateOfBirth", "date_of_birth"),
    ("program", "program"),
    ("site", "site"),
    ("lcgmsCode", "lcgms_code"),
    ("geographicDistrict", "geographic_district"),
    ("bronx", "bronx"),
    ("brooklyn", "brooklyn"),
    ("queens", "queens"),
    ("statenIsland", "staten_island"),
    ("manhattan", "manhattan"),
    ("morning", "morning"),
    ("afternoon", "afternoon"),
    ("evening", "evening"),
    ("weekend", "weekend"),
    ("fingerprintQuestionnaire", "fingerprint_questionnaire"),
    ("documentsVerified", "documents_verified"),
    ("attendanceVerified", "attendance_verified"),
    ("fingerprintPaymentPreference", "fingerprint_payment_preference"),
)

BOOLEAN_COLUMNS = set(WORK_PREFERENCES) | {
    "fingerprint_questionnaire", "documents_verified", "attendance_verified",
}

TEMPLATE_SAMPLE = {
    "firstName": "John",
    "lastName": "Doe",
    "email": "john.doe@example.com",
    "counselor_email": "counselor@school.edu",
    "phone": "123-456-7890",
    "address": "123 Main St",
    "city": "New York",
    "state": "NY",
    "zipCode": "10001",
    "ssn": "123-45-6789",
    "dateOfBirth": "2000-01-01",
    "program": "Program Name",
    "site": "Site Name",
    "lcgmsCode": "123456",
    "geographicDistrict": "District 1",
    "bronx": "true",
    "brooklyn": "false",
    "queens": "true",
    "statenIsland": "false",
    "manhattan": "true",
    "morning": "true",
    "afternoon": "false",
    "evening": "true",
    "weekend": "false",
    "fingerprintQuestionnaire": "true",
    "documentsVerified": "false",
    "attendanceVerified": "false",
    "fingerprintPaymentPreference": "self",
}

EXPORT_HEADERS = (
    "ID", "First Name", "Last Name", "Email", "Counselor Email", "Phone",
    "Program", "Site", "LCGMS Code", "Geographic District", "SSN",
    "Date of Birth", "Bronx", "Brooklyn", "Queens", "Staten Island",
    "Manhattan", "Morning", "Afternoon", "Evening", "Weekend",
    "Fingerprint Questionnaire", "Documents Verified", "Attendance Verified",
    "Status", "Submitted At", "Coupon Code", "Coupon Assigned At",
)

_HEADER_TO_COLUMN = {}
for _header, _column in TEMPLATE_COLUMNS:
    _HEADER_TO_COLUMN[_header] = _column
    _HEADER_TO_COLUMN[_column] = _column


def parse_bool(value: str | None) -> bool:
    return (value or "").strip().lower() in {"true", "yes"}


def parse_applications_csv(text: str) -> list[dict[str, Any]]:
    """Rows keyed by column name; accepts template or snake_case headers."""
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    rows = []
    for record in reader:
        row: dict[str, Any] = {}
        for header, raw in record.items():
            column = _HEADER_TO_COLUMN.get((header or "").strip())
            if column is None:
                continue
            value = (raw or "").strip()
            if column in BOOLEAN_COLUMNS:
                row[column] = parse_bool(value)
            elif value:
                row[column] = value
        if not any(isinstance(v, str) for v in row.values()):
            continue
        if row.get("email"):
            row["email"] = row["email"].lower()
        rows.append(row)
    return rows


def parse_coupons_csv(text: str) -> list[dict[str, str]]:
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    coupons = []
    for record in reader:
        coupon_id = (record.get("coupon_id") or "").strip()
        coupon_code = (record.get("coupon_code") or "").strip()
        if coupon_id and coupon_code:
            coupons.append({"coupon_id": coupon_id, "coupon_code": coupon_code})
    return coupons


def template_csv() -> str:
    buffer = io.StringIO()
    headers = [header for header, _ in TEMPLATE_COLUMNS]
    writer = csv.DictWriter(buffer, fieldnames=headers)
    writer.writeheader()
    writer.writerow(TEMPLATE_SAMPLE)
    return buffer.getvalue()


def _fmt(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def export_csv(records: Iterable[dict[str, Any]]) -> str:
    """records are revealed application dicts with coupon_code/coupon_assigned_at."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL)
    writer.writerow(EXPORT_HEADERS)
    for rec in records:
        prefs = rec.get("work_preferences") or {}
        writer.writerow([_fmt(v) for v in (
            rec.get("id"), rec.get("first_name"), rec.get("last_name"),
            rec.get("email"), rec.get("counselor_email"), rec.get("phone"),
            rec.get("program"), rec.get("site"), rec.get("lcgms_code"),
            rec.get("geographic_district"), rec.get("ssn"), rec.get("date_of_birth"),
            *(prefs.get(name, False) for name in WORK_PREFERENCES),
            rec.get("fingerprint_questionnaire"), rec.get("documents_verified"),
            rec.get("attendance_verified"), rec.get("status"), rec.get("submitted_at"),
            rec.get("coupon_code"), rec.get("coupon_assigned_at"),
        )])
    return buffer.getvalue()
