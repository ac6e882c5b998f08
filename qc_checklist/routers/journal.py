# qc_checklist/routers/journal.py
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..db.session import get_db
from ..models.audit import AuditLog
from ..services.audit import verify_audit

router = APIRouter(prefix="/journal", tags=["Journal"])

SORT_COLUMNS = {
    "id": AuditLog.id,
    "occurred_at": AuditLog.occurred_at,
    "action": AuditLog.action,
    "status": AuditLog.status,
    "target_type": AuditLog.target_type,
    "target_id": AuditLog.target_id,
}


def _parse_day(raw: Optional[str], name: str) -> Optional[datetime]:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.strip())
    except ValueError:
        raise HTTPException(400, f"Paramètre '{name}' invalide, format attendu AAAA-MM-JJ.")


# ===================== LIST =====================
@router.get("")
def list_logs(
    db: Session = Depends(get_db),
    action: Optional[str] = Query(None),
    target_type: Optional[str] = Query(None),
    target_id: Optional[str] = Query(None),
    q: Optional[str] = Query(None, description="keyword: path, ip, correlation_id, action, target_id"),
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
    sort: Optional[str] = Query(None, description="field:dir, vd occurred_at:desc"),
):
    qset = db.query(AuditLog)

    if action:
        qset = qset.filter(AuditLog.action == action)
    if target_type:
        qset = qset.filter(AuditLog.target_type == target_type)
    if target_id:
        qset = qset.filter(AuditLog.target_id == target_id)

    if q:
        like = f"%{q.strip()}%"
        qset = qset.filter(
            (AuditLog.path.ilike(like)) |
            (AuditLog.ip_address.ilike(like)) |
            (AuditLog.correlation_id.ilike(like)) |
            (AuditLog.action.ilike(like)) |
            (AuditLog.target_id.ilike(like))
        )

    # Khoảng ngày theo occurred_at (ISO yyyy-mm-dd), cận trên loại trừ
    from_dt = _parse_day(from_, "from")
    to_dt = _parse_day(to, "to")
    if from_dt:
        qset = qset.filter(AuditLog.occurred_at >= from_dt)
    if to_dt:
        qset = qset.filter(AuditLog.occurred_at < to_dt + timedelta(days=1))

    order_col = AuditLog.occurred_at
    order_dir = "desc"
    if sort:
        field, dir_ = (sort.split(":") + [""])[:2]
        order_col = SORT_COLUMNS.get(field.strip(), AuditLog.occurred_at)
        order_dir = "asc" if dir_.strip().lower() == "asc" else "desc"

    total = qset.count()
    qset = qset.order_by(
        order_col.asc() if order_dir == "asc" else order_col.desc(),
        AuditLog.id.asc() if order_dir == "asc" else AuditLog.id.desc(),
    )
    items = (
        qset.offset((page - 1) * page_size)
           .limit(page_size)
           .all()
    )

    return {
        "total": total,
        "page": page,
        "size": page_size,
        "items": [i.to_dict() for i in items],
    }


# ===================== DETAIL =====================
@router.get("/{log_id}")
def log_detail(log_id: int, db: Session = Depends(get_db)):
    row = db.get(AuditLog, log_id)
    if not row:
        raise HTTPException(404, "Journal introuvable")
    data = row.to_dict()
    data["verified"] = verify_audit(row)
    return data
