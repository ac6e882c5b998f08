# qc_checklist/models/store.py
from sqlalchemy import Column, String, DateTime, JSON, func
from ..db.base import Base

class StoreEntry(Base):
    """Một dòng = một collection (exigences / orders / operations) dạng JSON."""
    __tablename__ = "kv_store"

    key = Column(String(128), primary_key=True)
    value = Column(JSON, nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<StoreEntry(key='{self.key}')>"
