# qc_checklist/services/workspace.py
from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from datetime import datetime
from typing import Callable, Optional

from ..core.config import settings
from ..utils.datetime import utcnow
from .ids import create_id as default_create_id
from .operation_log import OperationLog
from .operator_session import OperatorSession, SessionState
from .registry import ConfigurationRegistry
from .store import KeyValueStore

log = logging.getLogger("workspace")


class QualityControl:
    """
    Đối tượng điều phối duy nhất: sở hữu registry, historique và các poste opérateur.
    main.py tạo một instance lúc startup và gắn vào app.state.

    Handler sync của FastAPI chạy trong threadpool: registry, historique và mọi poste
    dùng chung `lock` để từng thao tác chạy trọn vẹn trước thao tác kế tiếp.
    """

    def __init__(
        self,
        store: KeyValueStore,
        create_id: Callable[[], str] = default_create_id,
        clock: Callable[[], datetime] = utcnow,
        seed_defaults: bool = settings.SEED_DEFAULTS,
        max_stations: int = settings.MAX_STATIONS,
    ):
        self.store = store
        self.lock = threading.RLock()
        self._create_id = create_id
        self._clock = clock
        self.registry = ConfigurationRegistry(
            store, create_id=create_id, seed_defaults=seed_defaults, lock=self.lock,
        )
        self.operations = OperationLog(store, lock=self.lock)
        self.max_stations = max(1, max_stations)
        self._stations: "OrderedDict[str, OperatorSession]" = OrderedDict()

    @property
    def station_count(self) -> int:
        return len(self._stations)

    def find_station(self, station_id: Optional[str]) -> Optional[OperatorSession]:
        """Poste đã tồn tại (không tạo mới)."""
        if not station_id:
            return None
        with self.lock:
            st = self._stations.get(station_id)
            if st is not None:
                self._stations.move_to_end(station_id)
            return st

    def station(self, station_id: str) -> OperatorSession:
        """Mỗi poste (cookie session) có state machine riêng, tạo khi scan lần đầu."""
        with self.lock:
            st = self.find_station(station_id)
            if st is None:
                st = OperatorSession(
                    self.registry,
                    self.operations,
                    create_id=self._create_id,
                    clock=self._clock,
                    lock=self.lock,
                )
                self._stations[station_id] = st
                self._evict(keep=station_id)
            return st

    def _evict(self, keep: str) -> None:
        # ưu tiên bỏ poste IDLE cũ nhất; chỉ bỏ poste ACTIVE khi không còn poste IDLE
        while len(self._stations) > self.max_stations:
            victim = next(
                (sid for sid, st in self._stations.items() if sid != keep and st.state == SessionState.IDLE),
                next(iter(self._stations)),
            )
            dropped = self._stations.pop(victim)
            log.info("station evicted: %s (%s)", victim, dropped.state.value)
