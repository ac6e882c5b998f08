# ================================
# file: qc_checklist/services/store.py
# ================================
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models import StoreEntry

log = logging.getLogger("store")


class KeyValueStore:
    """
    Store key -> JSON trên bảng kv_store.
    Mỗi collection được ghi lại toàn bộ sau mỗi thay đổi.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def load(self, key: str) -> Optional[Any]:
        """None nghĩa là key chưa từng được ghi (khác với list rỗng)."""
        db = self._session_factory()
        try:
            row = db.get(StoreEntry, key)
            return None if row is None else row.value
        finally:
            db.close()

    def save(self, key: str, value: Any) -> None:
        self.save_many({key: value})

    def save_many(self, entries: Dict[str, Any]) -> None:
        """
        Ghi nhiều key trong cùng một transaction.
        Hai tiến trình cùng ghi lần đầu một key -> bên thua gặp IntegrityError, thử lại một lần (lúc này là update).
        """
        for attempt in (1, 2):
            db = self._session_factory()
            try:
                for key, value in entries.items():
                    row = db.get(StoreEntry, key)
                    if row is None:
                        db.add(StoreEntry(key=key, value=value))
                    else:
                        row.value = value
                db.commit()
                log.debug("store write: %s", ", ".join(entries))
                return
            except IntegrityError:
                db.rollback()
                if attempt == 2:
                    raise
                log.warning("store write raced on insert, retrying: %s", ", ".join(entries))
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()
