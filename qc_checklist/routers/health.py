# ================================
# file: qc_checklist/routers/health.py
# ================================
from fastapi import APIRouter

from ..utils.datetime import utcnow

router = APIRouter()

@router.get("/health")
def health():
    return {"ok": True, "time": utcnow().isoformat()}
