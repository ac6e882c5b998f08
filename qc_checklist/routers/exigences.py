# qc_checklist/routers/exigences.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ..db.session import get_db
from ..schemas.exigence import Exigence, ExigenceIn
from ..services.audit import write_audit
from ..services.workspace import QualityControl
from .deps import get_qc

router = APIRouter(prefix="/exigences", tags=["Exigences"])


def _out(qc: QualityControl, ex: Exigence) -> dict:
    data = ex.model_dump(mode="json")
    data["order_count"] = len(qc.registry.orders_for_exigence(ex.id))
    return data


def _get_or_404(qc: QualityControl, exigence_id: str) -> Exigence:
    ex = qc.registry.get_exigence(exigence_id)
    if not ex:
        raise HTTPException(404, "Exigence introuvable")
    return ex


@router.get("")
def list_exigences(qc: QualityControl = Depends(get_qc)):
    return [_out(qc, ex) for ex in qc.registry.exigences]


@router.get("/{exigence_id}")
def get_exigence(exigence_id: str, qc: QualityControl = Depends(get_qc)):
    return _out(qc, _get_or_404(qc, exigence_id))


@router.post("")
def create_exigence(
    payload: ExigenceIn,
    request: Request,
    qc: QualityControl = Depends(get_qc),
    db: Session = Depends(get_db),
):
    created = qc.registry.upsert_exigence(payload.model_copy(update={"id": None}))
    write_audit(
        db,
        action="EXIGENCE_CREATE",
        target_type="Exigence",
        target_id=created.id,
        new_values=created.model_dump(mode="json"),
        request=request,
    )
    db.commit()
    return _out(qc, created)


@router.put("/{exigence_id}")
def update_exigence(
    exigence_id: str,
    payload: ExigenceIn,
    request: Request,
    qc: QualityControl = Depends(get_qc),
    db: Session = Depends(get_db),
):
    with qc.lock:
        prev = _get_or_404(qc, exigence_id)
        updated = qc.registry.upsert_exigence(payload.model_copy(update={"id": exigence_id}))
    write_audit(
        db,
        action="EXIGENCE_UPDATE",
        target_type="Exigence",
        target_id=exigence_id,
        prev_values=prev.model_dump(mode="json"),
        new_values=updated.model_dump(mode="json"),
        request=request,
    )
    db.commit()
    return _out(qc, updated)


@router.delete("/{exigence_id}")
def delete_exigence(
    exigence_id: str,
    request: Request,
    qc: QualityControl = Depends(get_qc),
    db: Session = Depends(get_db),
):
    with qc.lock:
        prev = _get_or_404(qc, exigence_id)
        removed_orders = qc.registry.delete_exigence(exigence_id)
    write_audit(
        db,
        action="EXIGENCE_DELETE",
        target_type="Exigence",
        target_id=exigence_id,
        prev_values=prev.model_dump(mode="json"),
        new_values={"deleted_orders": removed_orders},
        request=request,
    )
    db.commit()
    return {"ok": True, "deleted_id": exigence_id, "deleted_orders": removed_orders}
