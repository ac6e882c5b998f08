# ================================
# file: qc_checklist/utils/datetime.py
# ================================
from datetime import datetime, timezone

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def fmt_dt(v: datetime | None) -> str:
    """Hiển thị kiểu fr-FR: dd/mm/YYYY HH:MM:SS theo giờ máy."""
    if v is None:
        return ""
    return v.astimezone().strftime("%d/%m/%Y %H:%M:%S")
