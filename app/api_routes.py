import hmac
from datetime import date
from typing import Any

from fastapi import Body, Depends, File, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import ValidationError
from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload
from starlette.concurrency import run_in_threadpool

from Security.audit_trail import audit
from Security.field_level_encryption import ssn_lookup_hash
from Security.security_config import SECURITY_SETTINGS, download_password
from .applications import (
    application_to_dict,
    create_applications,
    list_applications,
    payload_to_columns,
    update_application,
)
from .csv_io import export_csv, parse_applications_csv, template_csv
from .database import get_db
from .models import APPLICATION_STATUSES, Application, Coupon
from .schemas import ApplicationIn, BulkStatusUpdate, DownloadRequest, DuplicateCheck


BULK_STATUSES = ("approved", "rejected", "accepted")
CSV_REQUIRED_FIELDS = (
    "first_name", "last_name", "address", "city", "state", "zip_code",
    "phone", "email", "ssn", "date_of_birth",
)


def _get_application_or_404(db: Session, application_id: int) -> Application:
    application = db.query(Application).filter(Application.id == application_id).first()
    if not application:
        raise HTTPException(status_code=404, detail="Application not found")
    return application


def _missing_field_error(payload: ApplicationIn):
    missing = payload.missing_fields()
    if missing:
        raise HTTPException(status_code=400, detail=f"Missing required field: {missing[0]}")


async def read_csv_upload(file: UploadFile) -> str:
    """Read at most MAX_UPLOAD_BYTES and decode as UTF-8."""
    limit = SECURITY_SETTINGS["MAX_UPLOAD_BYTES"]
    data = await file.read(limit + 1)
    if len(data) > limit:
        raise HTTPException(status_code=413, detail="File too large")
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="CSV file must be UTF-8 encoded")


def register_api_routes(app):
    @app.post("/api/submit-application")
    def submit_application(payload: ApplicationIn, db: Session = Depends(get_db)):
        _missing_field_error(payload)
        columns = payload_to_columns(payload)
        columns["status"] = "pending"
        [application] = create_applications(db, [columns])
        audit("application.submitted", record_id=application.id)
        return {"success": True, "id": application.id}

    @app.post("/api/submit-applications")
    def submit_applications(payload: Any = Body(...), db: Session = Depends(get_db)):
        if not isinstance(payload, list):
            raise HTTPException(status_code=400, detail="Invalid data format")
        rows = []
        for item in payload:
            if not isinstance(item, dict):
                raise HTTPException(status_code=400, detail="Invalid data format")
            try:
                parsed = ApplicationIn.model_validate(item)
            except ValidationError:
                raise HTTPException(status_code=400, detail="Invalid data format")
            _missing_field_error(parsed)
            columns = payload_to_columns(parsed)
            columns["status"] = "pending"
            rows.append(columns)
        applications = create_applications(db, rows)
        ids = [a.id for a in applications]
        audit("applications.submitted", details=f"count={len(ids)}")
        return {"success": True, "inserted_count": len(ids), "inserted_ids": ids}

    @app.get("/api/applications")
    def get_applications(db: Session = Depends(get_db)):
        applications = list_applications(db)
        return {
            "applications": [application_to_dict(a) for a in applications],
            "total": len(applications),
        }

    @app.get("/api/applications/verify")
    def verify_applications(db: Session = Depends(get_db)):
        applications = list_applications(db)
        return {
            "total_documents": len(applications),
            "documents": [application_to_dict(a) for a in applications],
        }

    @app.patch("/api/applications/bulk-update")
    def bulk_update_status(payload: BulkStatusUpdate, db: Session = Depends(get_db)):
        if not payload.application_ids:
            raise HTTPException(status_code=400, detail="No applications selected")
        if payload.status not in BULK_STATUSES:
            raise HTTPException(status_code=400, detail="Invalid status")
        modified = (
            db.query(Application)
            .filter(Application.id.in_(payload.application_ids))
            .update({Application.status: payload.status}, synchronize_session=False)
        )
        db.commit()
        audit("applications.status_updated", details=f"status={payload.status} count={modified}")
        return {"success": True, "modified_count": modified}

    @app.post("/api/applications/download")
    def download_applications(payload: DownloadRequest, db: Session = Depends(get_db)):
        expected = download_password()
        supplied = (payload.password or "").encode("utf-8")
        if not expected or not hmac.compare_digest(supplied, expected.encode("utf-8")):
            raise HTTPException(status_code=401, detail="Invalid password")

        applications = (
            db.query(Application).options(selectinload(Application.coupons)).order_by(Application.id).all()
        )
        if not applications:
            raise HTTPException(status_code=404, detail="No applications found")

        records = []
        for application in applications:
            record = application_to_dict(application, include_sensitive=True)
            coupon = application.coupons[-1] if application.coupons else None
            record["coupon_code"] = coupon.coupon_code if coupon else ""
            record["coupon_assigned_at"] = coupon.assigned_at if coupon else ""
            records.append(record)

        audit("applications.exported", details=f"count={len(records)}")
        filename = f"applications-{date.today().isoformat()}.csv"
        return Response(
            content=export_csv(records),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.get("/api/applications/{application_id}")
    def get_application(application_id: int, db: Session = Depends(get_db)):
        application = _get_application_or_404(db, application_id)
        result = application_to_dict(application, include_sensitive=True)
        audit("application.revealed", record_id=application.id)
        return result

    @app.patch("/api/applications/{application_id}")
    def patch_application(application_id: int, payload: ApplicationIn, db: Session = Depends(get_db)):
        application = _get_application_or_404(db, application_id)
        if payload.status is not None and payload.status not in APPLICATION_STATUSES:
            raise HTTPException(status_code=400, detail="Invalid status")
        changes = payload_to_columns(payload, partial=True)
        update_application(db, application, changes)
        audit("application.updated", record_id=application_id, details=",".join(sorted(changes)))
        return {"message": "Application updated successfully"}

    @app.delete("/api/applications/{application_id}")
    def delete_application(application_id: int, db: Session = Depends(get_db)):
        exists = db.query(Application.id).filter(Application.id == application_id).first()
        if not exists:
            raise HTTPException(status_code=404, detail="Application not found")
        db.query(Coupon).filter(Coupon.assigned_to == application_id).update(
            {Coupon.assigned_to: None, Coupon.assigned_at: None, Coupon.status: "available"},
            synchronize_session=False,
        )
        deleted = db.query(Application).filter(Application.id == application_id).delete(synchronize_session=False)
        db.commit()
        audit("application.deleted", record_id=application_id)
        return {"message": "Application deleted successfully", "deleted_count": deleted}

    @app.post("/api/check-duplicate")
    def check_duplicate(payload: DuplicateCheck, db: Session = Depends(get_db)):
        if not payload.email or not payload.ssn:
            raise HTTPException(status_code=400, detail="Email and SSN are required")
        conditions = [Application.email == payload.email.strip().lower()]
        ssn_hash = ssn_lookup_hash(payload.ssn)
        if ssn_hash:
            conditions.append(Application.ssn_hash == ssn_hash)
        existing = db.query(Application.id).filter(or_(*conditions)).first()
        return {"is_duplicate": existing is not None}

    @app.post("/api/bulk-upload")
    async def bulk_upload(file: UploadFile = File(None), db: Session = Depends(get_db)):
        if file is None:
            raise HTTPException(status_code=400, detail="No file provided")
        rows = parse_applications_csv(await read_csv_upload(file))
        if not rows:
            raise HTTPException(status_code=400, detail="No records found in CSV file")
        for index, row in enumerate(rows, start=1):
            missing = [name for name in CSV_REQUIRED_FIELDS if not row.get(name)]
            if missing:
                raise HTTPException(status_code=400, detail=f"Record {index}: missing required field: {missing[0]}")
            row["status"] = "pending"

        # PBKDF2 per field is CPU bound, keep it off the event loop
        applications = await run_in_threadpool(create_applications, db, rows)
        audit("applications.bulk_uploaded", details=f"count={len(applications)}")
        return {
            "message": f"Successfully uploaded {len(applications)} applications",
            "inserted_count": len(applications),
        }

    @app.get("/api/template")
    def download_template():
        return Response(
            content=template_csv(),
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="application-template.csv"'},
        )
