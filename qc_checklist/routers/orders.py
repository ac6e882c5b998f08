# qc_checklist/routers/orders.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ..db.session import get_db
from ..schemas.order import OrderConfig, OrderIn
from ..services.audit import write_audit
from ..services.sampling import required_samples
from ..services.workspace import QualityControl
from .deps import get_qc

router = APIRouter(prefix="/orders", tags=["Orders"])


def _out(qc: QualityControl, order: OrderConfig) -> dict:
    data = order.model_dump(mode="json")
    ex = qc.registry.get_exigence(order.exigence_id)
    data["exigence_name"] = ex.name if ex else None
    data["exigence_code"] = ex.code if ex else None
    data["required_samples"] = required_samples(order.piece_count, ex.sample_rule) if ex else None
    return data


def _get_or_404(qc: QualityControl, order_id: str) -> OrderConfig:
    order = qc.registry.get_order(order_id)
    if not order:
        raise HTTPException(404, "Ordre introuvable")
    return order


def _validate(qc: QualityControl, payload: OrderIn, order_id: Optional[str] = None):
    if qc.registry.get_exigence(payload.exigence_id) is None:
        raise HTTPException(422, "Associez une exigence à l'ordre.")
    existed = qc.registry.find_order_by_number(payload.order_number)
    if existed and existed.id != order_id:
        raise HTTPException(409, f"Le numéro d'ordre {payload.order_number} existe déjà.")


@router.get("")
def list_orders(qc: QualityControl = Depends(get_qc)):
    return [_out(qc, o) for o in qc.registry.orders]


@router.get("/{order_id}")
def get_order(order_id: str, qc: QualityControl = Depends(get_qc)):
    return _out(qc, _get_or_404(qc, order_id))


@router.post("")
def create_order(
    payload: OrderIn,
    request: Request,
    qc: QualityControl = Depends(get_qc),
    db: Session = Depends(get_db),
):
    with qc.lock:
        _validate(qc, payload)
        created = qc.registry.upsert_order(payload.model_copy(update={"id": None}))
    write_audit(
        db,
        action="ORDER_CREATE",
        target_type="Order",
        target_id=created.id,
        new_values=created.model_dump(mode="json"),
        request=request,
    )
    db.commit()
    return _out(qc, created)


@router.put("/{order_id}")
def update_order(
    order_id: str,
    payload: OrderIn,
    request: Request,
    qc: QualityControl = Depends(get_qc),
    db: Session = Depends(get_db),
):
    with qc.lock:
        prev = _get_or_404(qc, order_id)
        _validate(qc, payload, order_id)
        updated = qc.registry.upsert_order(payload.model_copy(update={"id": order_id}))
    write_audit(
        db,
        action="ORDER_UPDATE",
        target_type="Order",
        target_id=order_id,
        prev_values=prev.model_dump(mode="json"),
        new_values=updated.model_dump(mode="json"),
        request=request,
    )
    db.commit()
    return _out(qc, updated)


@router.delete("/{order_id}")
def delete_order(
    order_id: str,
    request: Request,
    qc: QualityControl = Depends(get_qc),
    db: Session = Depends(get_db),
):
    with qc.lock:
        prev = _get_or_404(qc, order_id)
        qc.registry.delete_order(order_id)
    write_audit(
        db,
        action="ORDER_DELETE",
        target_type="Order",
        target_id=order_id,
        prev_values=prev.model_dump(mode="json"),
        request=request,
    )
    db.commit()
    return {"ok": True, "deleted_id": order_id}
