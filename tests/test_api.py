"""End-to-end through the HTTP API with a real SQLite store."""
import base64
import csv
import dataclasses
import io
import os

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import text
from sqlalchemy.exc import StatementError

from Security import data_encryption_at_rest as codec
from Security.audit_trail import audit
from Security.data_encryption_at_rest import is_envelope
from Security.key_management import initialize_encryption
from Security.security_config import SECURITY_SETTINGS
from app.error_handlers import register_error_handlers


def _stored(raw_db, application_id, column):
    return raw_db.execute(
        text(f"SELECT {column} FROM applications WHERE id = :id"), {"id": application_id}
    ).scalar_one()


def _submit(client, payload):
    response = client.post("/api/submit-application", json=payload)
    assert response.status_code == 200, response.text
    return response.json()["id"]


def test_submit_stores_envelopes_and_get_reveals(client, raw_db, make_payload):
    application_id = _submit(client, make_payload())

    stored_ssn = _stored(raw_db, application_id, "ssn")
    stored_dob = _stored(raw_db, application_id, "date_of_birth")
    assert is_envelope(stored_ssn) and "987-65-4321" not in stored_ssn
    assert is_envelope(stored_dob) and "2001-07-04" not in stored_dob
    assert _stored(raw_db, application_id, "email") == "ana.lopez@example.com"

    first = client.get(f"/api/applications/{application_id}").json()
    second = client.get(f"/api/applications/{application_id}").json()
    assert first["ssn"] == second["ssn"] == "987-65-4321"
    assert first["date_of_birth"] == "2001-07-04"
    assert first["status"] == "pending"
    assert first["work_preferences"]["bronx"] is True
    assert first["work_preferences"]["queens"] is False
    assert _stored(raw_db, application_id, "ssn") == stored_ssn


def test_submit_missing_field(client, make_payload):
    payload = make_payload()
    del payload["ssn"]
    response = client.post("/api/submit-application", json=payload)
    assert response.status_code == 400
    assert response.json()["detail"] == "Missing required field: ssn"


def test_submit_many(client, make_payload):
    response = client.post(
        "/api/submit-applications",
        json=[make_payload(), make_payload(email="b@example.com", ssn="111-22-3333")],
    )
    assert response.status_code == 200
    assert response.json()["inserted_count"] == 2
    assert client.post("/api/submit-applications", json={"not": "a list"}).status_code == 400


def test_listing_omits_sensitive_fields(client, make_payload):
    _submit(client, make_payload())
    body = client.get("/api/applications").json()
    assert body["total"] == 1
    assert "ssn" not in body["applications"][0]
    assert "date_of_birth" not in body["applications"][0]


def test_get_unknown_application(client):
    assert client.get("/api/applications/999").status_code == 404


def test_update_reencrypts_with_fresh_envelope(client, raw_db, make_payload):
    application_id = _submit(client, make_payload())
    before = _stored(raw_db, application_id, "ssn")
    dob_before = _stored(raw_db, application_id, "date_of_birth")

    response = client.patch(f"/api/applications/{application_id}", json={"ssn": "222-33-4444", "city": "Bronx"})
    assert response.status_code == 200

    after = _stored(raw_db, application_id, "ssn")
    assert after != before and is_envelope(after)
    assert _stored(raw_db, application_id, "date_of_birth") == dob_before
    body = client.get(f"/api/applications/{application_id}").json()
    assert body["ssn"] == "222-33-4444"
    assert body["city"] == "Bronx"

    dup = client.post("/api/check-duplicate", json={"email": "nobody@example.com", "ssn": "222334444"})
    assert dup.json()["is_duplicate"] is True


def test_update_rejects_unknown_status(client, make_payload):
    application_id = _submit(client, make_payload())
    assert client.patch(f"/api/applications/{application_id}", json={"status": "lost"}).status_code == 400


def test_tampered_record_fails_loudly(client, raw_db, make_payload):
    application_id = _submit(client, make_payload())
    raw = bytearray(base64.b64decode(_stored(raw_db, application_id, "ssn")))
    raw[-1] ^= 0xFF
    raw_db.execute(
        text("UPDATE applications SET ssn = :ssn WHERE id = :id"),
        {"ssn": base64.b64encode(bytes(raw)).decode(), "id": application_id},
    )
    raw_db.commit()

    response = client.get(f"/api/applications/{application_id}")
    assert response.status_code == 500
    assert response.json() == {"detail": "Sensitive field could not be processed"}
    assert "987-65-4321" not in response.text


def test_legacy_plaintext_row_is_readable(client, raw_db, make_payload):
    application_id = _submit(client, make_payload())
    raw_db.execute(
        text("UPDATE applications SET ssn = '123-45-6789' WHERE id = :id"), {"id": application_id}
    )
    raw_db.commit()
    assert client.get(f"/api/applications/{application_id}").json()["ssn"] == "123-45-6789"


def test_check_duplicate(client, make_payload):
    _submit(client, make_payload())
    check = lambda body: client.post("/api/check-duplicate", json=body)
    assert check({"email": "ANA.LOPEZ@example.com", "ssn": "000-00-0000"}).json()["is_duplicate"] is True
    assert check({"email": "other@example.com", "ssn": "987654321"}).json()["is_duplicate"] is True
    assert check({"email": "other@example.com", "ssn": "111-11-1111"}).json()["is_duplicate"] is False
    assert check({"email": "other@example.com"}).status_code == 400


def test_bulk_status_update(client, make_payload):
    ids = [_submit(client, make_payload()), _submit(client, make_payload(email="z@example.com"))]
    response = client.patch("/api/applications/bulk-update", json={"applicationIds": ids, "status": "approved"})
    assert response.json() == {"success": True, "modified_count": 2}
    assert client.get(f"/api/applications/{ids[0]}").json()["status"] == "approved"
    assert client.patch("/api/applications/bulk-update", json={"applicationIds": [], "status": "approved"}).status_code == 400
    assert client.patch("/api/applications/bulk-update", json={"applicationIds": ids, "status": "pending"}).status_code == 400


def test_bulk_upload_csv(client, raw_db):
    template = client.get("/api/template")
    assert template.status_code == 200
    assert template.headers["content-type"].startswith("text/csv")

    response = client.post(
        "/api/bulk-upload",
        files={"file": ("applications.csv", template.content, "text/csv")},
    )
    assert response.status_code == 200, response.text
    assert response.json()["inserted_count"] == 1

    listed = client.get("/api/applications").json()["applications"]
    application_id = listed[0]["id"]
    assert is_envelope(_stored(raw_db, application_id, "ssn"))
    assert client.get(f"/api/applications/{application_id}").json()["ssn"] == "123-45-6789"


def test_bulk_upload_rejects_empty_and_incomplete(client):
    empty = client.post("/api/bulk-upload", files={"file": ("a.csv", b"firstName,lastName\n", "text/csv")})
    assert empty.status_code == 400
    incomplete = client.post("/api/bulk-upload", files={"file": ("a.csv", b"firstName,lastName\nAna,Lopez\n", "text/csv")})
    assert incomplete.status_code == 400
    assert "Record 1" in incomplete.json()["detail"]


def test_download_reveals_and_requires_password(client, make_payload):
    assert client.post("/api/applications/download", json={"password": "let-me-in"}).status_code == 404
    _submit(client, make_payload())

    assert client.post("/api/applications/download", json={"password": "nope"}).status_code == 401
    assert client.post("/api/applications/download", json={"password": "l\u00e9t-me-in"}).status_code == 401
    assert client.post("/api/applications/download", json={}).status_code == 401

    response = client.post("/api/applications/download", json={"password": "let-me-in"})
    assert response.status_code == 200
    assert "attachment" in response.headers["content-disposition"]
    rows = list(csv.DictReader(io.StringIO(response.text)))
    assert rows[0]["SSN"] == "987-65-4321"
    assert rows[0]["Date of Birth"] == "2001-07-04"


def test_delete_releases_coupons(client, make_payload):
    application_id = _submit(client, make_payload())
    client.post("/api/import-coupons", files={"file": ("c.csv", b"coupon_id,coupon_code\nC1,AAA\n", "text/csv")})
    coupon = client.get("/api/coupons").json()[0]
    assert client.post("/api/coupons", json={"studentId": application_id, "couponId": coupon["id"]}).status_code == 200

    response = client.delete(f"/api/applications/{application_id}")
    assert response.status_code == 200
    assert client.get(f"/api/applications/{application_id}").status_code == 404
    assert client.get("/api/coupons").json()[0]["status"] == "available"
    assert client.delete(f"/api/applications/{application_id}").status_code == 404


def test_request_id_is_echoed(client):
    response = client.get("/health", headers={"x-request-id": "abc-123"})
    assert response.headers["x-request-id"] == "abc-123"


def test_failed_encryption_stores_nothing(client, raw_db, make_payload, monkeypatch):
    class Broken:
        def __init__(self, key):
            raise RuntimeError("cipher unavailable")

    monkeypatch.setattr(codec, "AESGCM", Broken)
    response = client.post("/api/submit-application", json=make_payload())
    assert response.status_code == 500
    assert response.json() == {"detail": "Sensitive field could not be processed"}
    assert "987-65-4321" not in response.text
    assert raw_db.execute(text("SELECT COUNT(*) FROM applications")).scalar_one() == 0


def test_strict_mode_rejects_plaintext_row(client, raw_db, make_payload, settings):
    application_id = _submit(client, make_payload())
    raw_db.execute(
        text("UPDATE applications SET ssn = '123-45-6789' WHERE id = :id"), {"id": application_id}
    )
    raw_db.commit()

    initialize_encryption(dataclasses.replace(settings, allow_legacy_plaintext=False))
    response = client.get(f"/api/applications/{application_id}")
    assert response.status_code == 500
    assert response.json() == {"detail": "Sensitive field could not be processed"}
    assert "123-45-6789" not in response.text


def test_other_database_errors_are_generic():
    app = FastAPI()
    register_error_handlers(app)

    @app.get("/boom")
    def boom():
        raise StatementError("constraint failed", "INSERT INTO applications", None, ValueError("bad row"))

    response = TestClient(app).get("/boom")
    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}


def test_oversized_uploads_are_rejected(client, monkeypatch):
    monkeypatch.setitem(SECURITY_SETTINGS, "MAX_UPLOAD_BYTES", 16)
    template = client.get("/api/template").content
    upload = client.post("/api/bulk-upload", files={"file": ("a.csv", template, "text/csv")})
    assert upload.status_code == 413
    coupons = client.post(
        "/api/import-coupons",
        files={"file": ("c.csv", b"coupon_id,coupon_code\nC1,AAA-111\nC2,BBB-222\n", "text/csv")},
    )
    assert coupons.status_code == 413
    assert client.get("/api/coupons").json() == []


def test_audit_log_records_access_without_ssn(client, make_payload):
    application_id = _submit(client, make_payload())
    client.get(f"/api/applications/{application_id}", headers={"x-request-id": "audit-check-1"})
    client.post("/api/applications/download", json={"password": "let-me-in"})
    audit("application.note", record_id=application_id, details="ssn=987-65-4321")

    with open(os.path.join(os.environ["LOG_DIR"], "audit.log"), encoding="utf-8") as fh:
        log = fh.read()
    revealed = [line for line in log.splitlines() if "event=application.revealed" in line]
    assert revealed
    assert f"record_id={application_id}" in revealed[-1]
    assert "request_id=audit-check-1" in revealed[-1]
    assert "method=GET" in revealed[-1]
    assert "event=applications.exported" in log
    assert "event=application.note" in log
    assert "987-65-4321" not in log
    assert "987654321" not in log
