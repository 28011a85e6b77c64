import datetime

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.orm import Session

from Security.audit_trail import audit
from .api_routes import read_csv_upload
from .csv_io import parse_coupons_csv
from .database import get_db
from .models import Application, Coupon
from .schemas import BulkCouponAssignment, CouponAssignment

router = APIRouter(prefix="/api")


def coupon_to_dict(coupon: Coupon) -> dict:
    return {
        "id": coupon.id,
        "coupon_id": coupon.coupon_id,
        "coupon_code": coupon.coupon_code,
        "assigned_to": coupon.assigned_to,
        "assigned_at": coupon.assigned_at.isoformat() if coupon.assigned_at else None,
        "status": coupon.status,
    }


def _assign(db: Session, coupon_id: int, student_id: int) -> bool:
    """Atomic assign: only an available coupon changes state."""
    updated = (
        db.query(Coupon)
        .filter(Coupon.id == coupon_id, Coupon.status == "available")
        .update(
            {
                Coupon.assigned_to: student_id,
                Coupon.assigned_at: datetime.datetime.utcnow(),
                Coupon.status: "assigned",
            },
            synchronize_session=False,
        )
    )
    return updated > 0


@router.get("/coupons")
def list_coupons(db: Session = Depends(get_db)):
    return [coupon_to_dict(c) for c in db.query(Coupon).order_by(Coupon.id).all()]


@router.post("/coupons")
def assign_coupon(payload: CouponAssignment, db: Session = Depends(get_db)):
    student = db.query(Application.id).filter(Application.id == payload.student_id).first()
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    if not _assign(db, payload.coupon_id, payload.student_id):
        raise HTTPException(status_code=400, detail="Coupon not available")
    db.commit()
    audit("coupon.assigned", record_id=payload.student_id, details=f"coupon={payload.coupon_id}")
    return {"success": True}


@router.delete("/coupons")
def unassign_coupon(payload: CouponAssignment, db: Session = Depends(get_db)):
    db.query(Coupon).filter(
        Coupon.id == payload.coupon_id,
        Coupon.assigned_to == payload.student_id,
    ).update(
        {Coupon.assigned_to: None, Coupon.assigned_at: None, Coupon.status: "available"},
        synchronize_session=False,
    )
    db.commit()
    audit("coupon.unassigned", record_id=payload.student_id, details=f"coupon={payload.coupon_id}")
    return {"success": True}


@router.post("/coupons/bulk-assign")
def bulk_assign_coupons(payload: BulkCouponAssignment, db: Session = Depends(get_db)):
    if not payload.assignments:
        raise HTTPException(status_code=400, detail="No assignments provided")

    successful, failed = [], []
    for item in payload.assignments:
        entry = {"student_id": item.student_id, "coupon_id": item.coupon_id}
        student = db.query(Application.id).filter(Application.id == item.student_id).first()
        if student and _assign(db, item.coupon_id, item.student_id):
            successful.append(entry)
        else:
            failed.append({**entry, "error": "Failed to assign"})
    db.commit()
    audit("coupon.bulk_assigned", details=f"ok={len(successful)} failed={len(failed)}")
    return {
        "success": True,
        "total_assignments": len(payload.assignments),
        "successful_assignments": len(successful),
        "failed_assignments": len(failed),
        "details": {"successful": successful, "failed": failed},
    }


@router.post("/import-coupons")
async def import_coupons(file: UploadFile = File(...), db: Session = Depends(get_db)):
    rows = parse_coupons_csv(await read_csv_upload(file))
    if not rows:
        raise HTTPException(status_code=400, detail="No coupons found in CSV file")

    # Replaces the whole pool
    db.query(Coupon).delete(synchronize_session=False)
    db.add_all(Coupon(coupon_id=r["coupon_id"], coupon_code=r["coupon_code"], status="available") for r in rows)
    db.commit()
    audit("coupons.imported", details=f"count={len(rows)}")
    return {"success": True, "message": f"Imported {len(rows)} coupons"}
