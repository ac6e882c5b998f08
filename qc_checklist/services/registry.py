# qc_checklist/services/registry.py
from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

from pydantic import TypeAdapter

from ..core.config import settings
from ..schemas.checklist import ChecklistItem
from ..schemas.exigence import Exigence, ExigenceIn
from ..schemas.order import OrderConfig, OrderIn
from .checklist_service import default_exigences, default_orders
from .ids import create_id as default_create_id
from .store import KeyValueStore

log = logging.getLogger("registry")

_EXIGENCES = TypeAdapter(List[Exigence])
_ORDERS = TypeAdapter(List[OrderConfig])


class ConfigurationRegistry:
    """
    Exigences + ordres de production do manager cấu hình.

    Payload đã được validate ở tầng gọi (ExigenceIn / OrderIn); registry không kiểm tra lại.
    Sau mỗi thay đổi, collection liên quan được ghi lại toàn bộ vào store.
    """

    def __init__(
        self,
        store: KeyValueStore,
        create_id: Callable[[], str] = default_create_id,
        seed_defaults: bool = True,
        exigences_key: str = settings.EXIGENCES_KEY,
        orders_key: str = settings.ORDERS_KEY,
        lock=None,
    ):
        self._store = store
        # mọi thay đổi đọc state hiện tại rồi mới ghi -> phải tuần tự hoá
        self.lock = lock or threading.RLock()
        self._create_id = create_id
        self.exigences_key = exigences_key
        self.orders_key = orders_key

        raw_exigences = store.load(exigences_key)
        raw_orders = store.load(orders_key)

        seeded_exigences: List[Exigence] = []
        if raw_exigences is None:
            seeded_exigences = default_exigences(create_id) if seed_defaults else []
            self._exigences = seeded_exigences
        else:
            self._exigences = _EXIGENCES.validate_python(raw_exigences)

        if raw_orders is None:
            # ordre mẫu chỉ trỏ tới exigence mẫu vừa seed
            self._orders = default_orders(seeded_exigences, create_id) if seed_defaults else []
        else:
            self._orders = _ORDERS.validate_python(raw_orders)

        # lưu ngay dữ liệu mẫu để id ổn định giữa các lần khởi động
        if seed_defaults and (raw_exigences is None or raw_orders is None):
            self._commit(
                exigences=self._exigences if raw_exigences is None else None,
                orders=self._orders if raw_orders is None else None,
            )

        log.info("registry loaded: %d exigence(s), %d order(s)", len(self._exigences), len(self._orders))

    # ==================== Read ====================

    @property
    def exigences(self) -> List[Exigence]:
        return list(self._exigences)

    @property
    def orders(self) -> List[OrderConfig]:
        return list(self._orders)

    def get_exigence(self, exigence_id: str) -> Optional[Exigence]:
        return next((e for e in self._exigences if e.id == exigence_id), None)

    def get_order(self, order_id: str) -> Optional[OrderConfig]:
        return next((o for o in self._orders if o.id == order_id), None)

    def find_order_by_number(self, order_number: str) -> Optional[OrderConfig]:
        """So khớp chính xác, không phân biệt hoa thường."""
        wanted = order_number.lower()
        return next((o for o in self._orders if o.order_number.lower() == wanted), None)

    def orders_for_exigence(self, exigence_id: str) -> List[OrderConfig]:
        return [o for o in self._orders if o.exigence_id == exigence_id]

    # ==================== Exigences ====================

    def _build_checklist(self, payload: ExigenceIn) -> List[ChecklistItem]:
        return [
            ChecklistItem(
                id=item.id or self._create_id(),
                label=item.label,
                type=item.type,
                guidance=item.guidance,
            )
            for item in payload.checklist
        ]

    def upsert_exigence(self, payload: ExigenceIn) -> Optional[Exigence]:
        """
        payload.id trỏ tới exigence có sẵn -> merge (giữ id, checklist bị thay nguyên mảng).
        payload.id không khớp -> không làm gì, trả None.
        Không có id -> tạo mới, thêm vào cuối.
        """
        with self.lock:
            fields = {
                "name": payload.name,
                "code": payload.code,
                "description": payload.description,
                "sample_rule": payload.sample_rule.to_rule(),
                "checklist": self._build_checklist(payload),
            }

            if payload.id:
                current = self.get_exigence(payload.id)
                if current is None:
                    return None
                updated = current.model_copy(update=fields)
                exigences = [updated if e.id == payload.id else e for e in self._exigences]
                self._commit(exigences=exigences)
                log.info("exigence updated: %s (%s)", updated.code, updated.id)
                return updated

            created = Exigence(id=self._create_id(), **fields)
            self._commit(exigences=[*self._exigences, created])
            log.info("exigence created: %s (%s)", created.code, created.id)
            return created

    def delete_exigence(self, exigence_id: str) -> List[str]:
        """
        Xoá exigence và mọi ordre tham chiếu tới nó trong cùng một lần ghi.
        Trả về danh sách id ordre đã xoá theo.
        """
        with self.lock:
            exigences = [e for e in self._exigences if e.id != exigence_id]
            removed = [o.id for o in self._orders if o.exigence_id == exigence_id]
            orders = [o for o in self._orders if o.exigence_id != exigence_id]
            self._commit(exigences=exigences, orders=orders)
        log.info("exigence deleted: %s (cascade %d order(s))", exigence_id, len(removed))
        return removed

    # ==================== Orders ====================

    def upsert_order(self, payload: OrderIn) -> Optional[OrderConfig]:
        fields = {
            "order_number": payload.order_number,
            "exigence_id": payload.exigence_id,
            "piece_count": payload.piece_count,
            "notes": payload.notes,
        }

        with self.lock:
            if payload.id:
                current = self.get_order(payload.id)
                if current is None:
                    return None
                updated = current.model_copy(update=fields)
                self._commit(orders=[updated if o.id == payload.id else o for o in self._orders])
                log.info("order updated: %s (%s)", updated.order_number, updated.id)
                return updated

            created = OrderConfig(id=self._create_id(), **fields)
            self._commit(orders=[*self._orders, created])
            log.info("order created: %s (%s)", created.order_number, created.id)
            return created

    def delete_order(self, order_id: str) -> None:
        with self.lock:
            self._commit(orders=[o for o in self._orders if o.id != order_id])
        log.info("order deleted: %s", order_id)

    # ==================== Persistence ====================

    def _commit(
        self,
        exigences: Optional[List[Exigence]] = None,
        orders: Optional[List[OrderConfig]] = None,
    ) -> None:
        """Ghi store trước; chỉ đổi state trong bộ nhớ khi ghi thành công."""
        entries = {}
        if exigences is not None:
            entries[self.exigences_key] = _EXIGENCES.dump_python(exigences, mode="json")
        if orders is not None:
            entries[self.orders_key] = _ORDERS.dump_python(orders, mode="json")
        with self.lock:
            self._store.save_many(entries)
            if exigences is not None:
                self._exigences = exigences
            if orders is not None:
                self._orders = orders
