# qc_checklist/routers/operations.py
from __future__ import annotations

import io
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from starlette.responses import StreamingResponse

from ..schemas.operation import OperationRecord
from ..services.export_service import build_operations_excel, format_response
from ..services.workspace import QualityControl
from ..utils.datetime import utcnow
from .deps import get_qc

router = APIRouter(prefix="/operations", tags=["Operations"])


def _filtered(qc: QualityControl, order_number: Optional[str]):
    records = qc.operations.records
    if order_number:
        wanted = order_number.strip().lower()
        records = [r for r in records if r.order_number.lower() == wanted]
    return records


def _detail(qc: QualityControl, rec: OperationRecord) -> dict:
    """Gắn nhãn checklist vào từng response (nếu exigence còn tồn tại)."""
    data = rec.model_dump(mode="json")
    ex = qc.registry.get_exigence(rec.exigence_id)
    items = {it.id: it for it in ex.checklist} if ex else {}
    data["exigence_name"] = ex.name if ex else None
    for sample in data["samples"]:
        for resp in sample["responses"]:
            it = items.get(resp["item_id"])
            resp["label"] = it.label if it else None
            resp["display"] = format_response(it, resp["value"]) if it else None
    return data


@router.get("")
def list_operations(
    qc: QualityControl = Depends(get_qc),
    order_number: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
):
    records = _filtered(qc, order_number)
    start = (page - 1) * page_size
    return {
        "total": len(records),
        "page": page,
        "page_size": page_size,
        "items": [r.model_dump(mode="json") for r in records[start:start + page_size]],
    }


@router.get("/export")
def export_operations(
    qc: QualityControl = Depends(get_qc),
    order_number: Optional[str] = Query(None),
):
    records = _filtered(qc, order_number)
    content = build_operations_excel(records, qc.registry.exigences)
    filename = f"controles_{utcnow().strftime('%Y%m%d_%H%M%S')}.xlsx"
    return StreamingResponse(
        io.BytesIO(content),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{record_id}")
def get_operation(record_id: str, qc: QualityControl = Depends(get_qc)):
    rec = qc.operations.get(record_id)
    if not rec:
        raise HTTPException(404, "Contrôle introuvable")
    return _detail(qc, rec)
