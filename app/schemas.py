from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


REQUIRED_FIELDS = (
    "first_name", "last_name", "address", "city", "state", "zip_code",
    "phone", "email", "counselor_email", "ssn", "date_of_birth",
    "program", "site", "lcgms_code", "geographic_district",
)


class CamelModel(BaseModel):
    # Accepts both firstName and first_name
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WorkPreferences(CamelModel):
    bronx: bool = False
    brooklyn: bool = False
    queens: bool = False
    staten_island: bool = False
    manhattan: bool = False
    morning: bool = False
    afternoon: bool = False
    evening: bool = False
    weekend: bool = False


class ApplicationIn(CamelModel):
    """Intake payload. Every field is optional here; required ones are
    checked by missing_fields() so the API can answer 400 with the name."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    counselor_email: Optional[str] = None
    ssn: Optional[str] = None
    date_of_birth: Optional[str] = None
    program: Optional[str] = None
    site: Optional[str] = None
    lcgms_code: Optional[str] = None
    geographic_district: Optional[str] = None
    work_preferences: Optional[WorkPreferences] = None
    fingerprint_questionnaire: Optional[bool] = None
    fingerprint_payment_preference: Optional[str] = None
    documents_verified: Optional[bool] = None
    attendance_verified: Optional[bool] = None
    status: Optional[str] = None

    def missing_fields(self) -> List[str]:
        return [name for name in REQUIRED_FIELDS if not getattr(self, name)]


class BulkStatusUpdate(CamelModel):
    application_ids: List[int] = []
    status: Optional[str] = None


class DuplicateCheck(CamelModel):
    email: Optional[str] = None
    ssn: Optional[str] = None


class DownloadRequest(CamelModel):
    password: Optional[str] = None


class CouponAssignment(CamelModel):
    student_id: int
    coupon_id: int


class BulkCouponAssignment(CamelModel):
    assignments: List[CouponAssignment] = []
