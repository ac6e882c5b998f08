# Aggregator: cho phép "from qc_checklist.models import StoreEntry, AuditLog"

from ..db.base import Base

from .store import StoreEntry
from .audit import AuditLog

__all__ = [
    "Base",
    "StoreEntry",
    "AuditLog",
]
