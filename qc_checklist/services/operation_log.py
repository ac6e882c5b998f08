# qc_checklist/services/operation_log.py
from __future__ import annotations

import logging
import threading
from typing import List, Optional

from pydantic import TypeAdapter

from ..core.config import settings
from ..schemas.operation import OperationRecord
from .store import KeyValueStore

log = logging.getLogger("operations")

_RECORDS = TypeAdapter(List[OperationRecord])


class OperationLog:
    """Historique des contrôles, mới nhất ở đầu. Chỉ thêm, không sửa."""

    def __init__(self, store: KeyValueStore, key: str = settings.OPERATIONS_KEY, lock=None):
        self._store = store
        self.key = key
        self.lock = lock or threading.RLock()
        raw = store.load(key)
        self._records: List[OperationRecord] = [] if raw is None else _RECORDS.validate_python(raw)

    @property
    def records(self) -> List[OperationRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def latest(self) -> Optional[OperationRecord]:
        records = self._records
        return records[0] if records else None

    def get(self, record_id: str) -> Optional[OperationRecord]:
        return next((r for r in self._records if r.id == record_id), None)

    def log_operation(self, record: OperationRecord) -> None:
        with self.lock:
            records = [record, *self._records]
            self._store.save(self.key, _RECORDS.dump_python(records, mode="json"))
            self._records = records
        log.info("operation logged: %s order=%s samples=%d", record.id, record.order_number, len(record.samples))

    def clear(self) -> int:
        """Reset quản trị (scripts/clear_operations.py). Trả về số bản ghi đã xoá."""
        with self.lock:
            count = len(self._records)
            self._store.save(self.key, [])
            self._records = []
        log.warning("operation log cleared (%d record(s))", count)
        return count
