from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, ForeignKey
from sqlalchemy.orm import relationship
from .database import Base
from Security.encrypted_type import EncryptedString
import datetime


WORK_PREFERENCES = (
    "bronx", "brooklyn", "queens", "staten_island", "manhattan",
    "morning", "afternoon", "evening", "weekend",
)

APPLICATION_STATUSES = ("pending", "approved", "rejected", "accepted")


# --- APPLICATIONS ---

class Application(Base):
    __tablename__ = "applications"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    address = Column(Text, nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(50), nullable=False)
    zip_code = Column(String(20), nullable=False)
    phone = Column(String(40), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    counselor_email = Column(String(255), nullable=True)

    # Stored as envelopes, see Security/data_encryption_at_rest.py
    ssn = Column(EncryptedString(255), nullable=True)
    date_of_birth = Column(EncryptedString(255), nullable=True)
    ssn_hash = Column(String(64), nullable=True, index=True)

    program = Column(String(100), nullable=True)
    site = Column(String(100), nullable=True)
    lcgms_code = Column(String(50), nullable=True)
    geographic_district = Column(String(50), nullable=True)

    # Work preferences
    bronx = Column(Boolean, default=False)
    brooklyn = Column(Boolean, default=False)
    queens = Column(Boolean, default=False)
    staten_island = Column(Boolean, default=False)
    manhattan = Column(Boolean, default=False)
    morning = Column(Boolean, default=False)
    afternoon = Column(Boolean, default=False)
    evening = Column(Boolean, default=False)
    weekend = Column(Boolean, default=False)

    # Verification
    fingerprint_questionnaire = Column(Boolean, default=False)
    fingerprint_payment_preference = Column(String(50), nullable=True)
    documents_verified = Column(Boolean, default=False)
    attendance_verified = Column(Boolean, default=False)

    status = Column(String(20), default="pending", nullable=False)
    submitted_at = Column(DateTime, default=datetime.datetime.utcnow)

    coupons = relationship("Coupon", order_by="Coupon.assigned_at")


# --- COUPONS ---

class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True, index=True)
    coupon_id = Column(String(100), nullable=False)
    coupon_code = Column(String(100), nullable=False)
    assigned_to = Column(Integer, ForeignKey("applications.id"), nullable=True)
    assigned_at = Column(DateTime, nullable=True)
    status = Column(String(20), default="available", nullable=False)
