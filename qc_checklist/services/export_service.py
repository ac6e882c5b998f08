# ================================
# qc_checklist/services/export_service.py
# ================================
from __future__ import annotations
from typing import Dict, Iterable, List
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Alignment

from ..schemas.checklist import ChecklistItem, PASS_FAIL
from ..schemas.exigence import Exigence
from ..schemas.operation import OperationRecord, ResponseValue
from ..utils.datetime import fmt_dt

EMPTY_VALUE = "—"
# Excel/LibreOffice hiểu các ký tự đầu này là công thức
FORMULA_PREFIXES = ("=", "+", "-", "@")


# ---------- Helper ----------
def format_response(item: ChecklistItem, value: ResponseValue) -> str:
    if item.type == PASS_FAIL:
        return "Conforme" if value is True else "Non conforme"
    return str(value) if value else EMPTY_VALUE

def safe_text(value):
    """Chữ do opérateur nhập -> luôn là text trong ô, không bao giờ thành công thức."""
    if isinstance(value, str) and value.startswith(FORMULA_PREFIXES):
        return "'" + value
    return value

def merged_items(records: Iterable[OperationRecord], exigences: Dict[str, Exigence]) -> List[ChecklistItem]:
    """
    Gộp item checklist của các exigence có mặt trong records, bỏ trùng theo id,
    giữ thứ tự xuất hiện. Exigence đã xoá -> không còn nhãn, bỏ qua.
    """
    seen = set()
    items: List[ChecklistItem] = []
    for rec in records:
        ex = exigences.get(rec.exigence_id)
        if ex is None:
            continue
        for it in ex.checklist:
            if it.id not in seen:
                seen.add(it.id)
                items.append(it)
    return items

def _autosize(ws):
    ws.freeze_panes = "A2"
    for col in ws.columns:
        w = max(10, *(len(str(c.value)) if c.value else 0 for c in col)) + 2
        ws.column_dimensions[col[0].column_letter].width = min(w, 40)


# ---------- Export: 1 dòng / échantillon ----------
def build_operations_excel(records: List[OperationRecord], exigences: List[Exigence]) -> bytes:
    by_id = {e.id: e for e in exigences}
    items = merged_items(records, by_id)

    base_headers = [
        "Ordre", "Pièces", "Échantillons requis", "Démarré", "Clôturé",
        "N° échantillon", "Code échantillon",
    ]
    headers = base_headers + [safe_text(it.label) for it in items]

    wb = Workbook()
    ws = wb.active
    ws.title = "Controles"
    ws.append(headers)

    for rec in records:
        for idx, sample in enumerate(rec.samples, start=1):
            values = {r.item_id: r.value for r in sample.responses}
            row = [
                safe_text(rec.order_number),
                rec.piece_count,
                rec.required_samples,
                fmt_dt(rec.started_at),
                fmt_dt(rec.completed_at),
                idx,
                safe_text(sample.label),
            ]
            for it in items:
                row.append(safe_text(format_response(it, values[it.id])) if it.id in values else "")
            ws.append(row)

    for col in (2, 3, 6):
        for cells in ws.iter_cols(min_col=col, max_col=col, min_row=2):
            for c in cells:
                c.alignment = Alignment(horizontal="center")

    _autosize(ws)
    out = BytesIO()
    wb.save(out)
    out.seek(0)
    return out.getvalue()
