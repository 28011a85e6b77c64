"""Shared fixtures. Environment is set before any app module is imported."""
import os
import tempfile

_TMP = tempfile.mkdtemp(prefix="applications-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["LOG_DIR"] = os.path.join(_TMP, "logs")
os.environ["ENCRYPTION_KEY"] = "test-passphrase-do-not-use"
os.environ["DOWNLOAD_PASSWORD"] = "let-me-in"
os.environ.setdefault("ALLOW_LEGACY_PLAINTEXT", "true")

import pytest
from fastapi.testclient import TestClient

from Security.data_encryption_at_rest import EncryptionSettings, FieldCipher
from Security.key_management import initialize_encryption, reset_field_cipher


@pytest.fixture
def settings():
    return EncryptionSettings(passphrase="test-passphrase-do-not-use")


@pytest.fixture
def cipher(settings):
    return FieldCipher(settings)


@pytest.fixture
def active_cipher(settings):
    cipher = initialize_encryption(settings)
    yield cipher
    reset_field_cipher()


@pytest.fixture
def client():
    from app.database import Base, engine
    from app.main import create_app

    Base.metadata.drop_all(bind=engine)
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client
    reset_field_cipher()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def raw_db():
    """Connection that sees stored column values without the encrypted type."""
    from app.database import engine

    with engine.connect() as conn:
        yield conn


def application_payload(**overrides):
    payload = {
        "firstName": "Ana",
        "lastName": "Lopez",
        "address": "12 Grand St",
        "city": "New York",
        "state": "NY",
        "zipCode": "10013",
        "phone": "212-555-0101",
        "email": "Ana.Lopez@example.com",
        "counselor_email": "counselor@school.edu",
        "ssn": "987-65-4321",
        "dateOfBirth": "2001-07-04",
        "program": "Summer Youth",
        "site": "Downtown",
        "lcgmsCode": "M123",
        "geographicDistrict": "2",
        "workPreferences": {"bronx": True, "morning": True},
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_payload():
    return application_payload
