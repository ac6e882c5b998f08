# qc_checklist/routers/operator.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..db.session import get_db
from ..schemas.operation import LabelIn, ResponseIn, SampleIn, ScanIn
from ..services.audit import write_audit
from ..services.operator_session import OperatorSession, idle_snapshot
from .deps import find_station, get_station, require_station

router = APIRouter(prefix="/operator", tags=["Operator"])


@router.get("/session")
def get_session(station: Optional[OperatorSession] = Depends(find_station)):
    # poste chưa scan: không tạo state phía server
    return station.snapshot() if station else idle_snapshot()


@router.post("/scan")
def scan(payload: ScanIn, station: OperatorSession = Depends(get_station)):
    # Étape 1 · Scanner le tapis
    station.submit_scan(payload.value)
    return station.snapshot()


@router.put("/responses/{item_id}")
def set_response(item_id: str, payload: ResponseIn, station: OperatorSession = Depends(require_station)):
    station.set_response(item_id, payload.value)
    return station.snapshot()


@router.put("/label")
def set_label(payload: LabelIn, station: OperatorSession = Depends(require_station)):
    station.set_label(payload.label)
    return station.snapshot()


@router.post("/samples")
def save_sample(
    request: Request,
    payload: Optional[SampleIn] = None,
    station: OperatorSession = Depends(require_station),
    db: Session = Depends(get_db),
):
    # Étape 2 · Valider l'échantillon; đủ số lượng -> tự lưu historique
    result = station.save_sample(payload.label if payload else None)
    if result.completed:
        rec = result.record
        write_audit(
            db,
            action="OPERATION_COMPLETED",
            target_type="Operation",
            target_id=rec.id,
            new_values={
                "order_number": rec.order_number,
                "required_samples": rec.required_samples,
                "samples": len(rec.samples),
            },
            request=request,
        )
        db.commit()

    out = station.snapshot()
    out["saved_sample"] = result.sample.model_dump(mode="json")
    out["record"] = result.record.model_dump(mode="json") if result.record else None
    return out


@router.post("/resume")
def resume_last(station: OperatorSession = Depends(get_station)):
    # Reprendre le dernier ordre contrôlé
    station.resume_last()
    return station.snapshot()
