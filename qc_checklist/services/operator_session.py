# ================================
# file: qc_checklist/services/operator_session.py
# ================================
from __future__ import annotations

import functools
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..schemas.checklist import ChecklistItem, PASS_FAIL
from ..schemas.exigence import Exigence
from ..schemas.operation import ChecklistResponse, OperationRecord, ResponseValue, SampleScan
from ..schemas.order import OrderConfig
from ..utils.datetime import utcnow
from .errors import GateFailed, MissingExigence, NoActiveSession, OrderNotFound, ValidationFailed
from .ids import create_id as default_create_id
from .operation_log import OperationLog
from .registry import ConfigurationRegistry
from .sampling import required_samples

log = logging.getLogger("operator")

COMPLETED_MESSAGE = "Contrôle finalisé et sauvegardé automatiquement."


class SessionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"


@dataclass(frozen=True)
class ActiveSession:
    order: OrderConfig
    exigence: Exigence
    required_samples: int
    started_at: datetime


@dataclass(frozen=True)
class SaveResult:
    sample: SampleScan
    # có giá trị khi échantillon này là cái cuối -> đã lưu vào historique
    record: Optional[OperationRecord] = None

    @property
    def completed(self) -> bool:
        return self.record is not None


def _serialized(method):
    """Chạy method khi giữ lock của poste (lock chung với registry/historique)."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self.lock:
            return method(self, *args, **kwargs)
    return wrapper


def idle_snapshot() -> Dict[str, Any]:
    """Trạng thái của một poste chưa từng scan."""
    return {"state": SessionState.IDLE.value, "scan_value": "", "feedback": None, "session": None}


def build_checklist_responses(
    checklist: List[ChecklistItem],
    state: Dict[str, ResponseValue],
) -> List[ChecklistResponse]:
    """Một response cho mỗi item, theo thứ tự checklist. Chưa trả lời: passFail -> False, text -> ""."""
    return [
        ChecklistResponse(
            item_id=item.id,
            value=state[item.id] if item.id in state else (False if item.type == PASS_FAIL else ""),
        )
        for item in checklist
    ]


class OperatorSession:
    """
    Poste opérateur: IDLE -> (scan) -> ACTIVE -> (đủ échantillons) -> lưu OperationRecord -> IDLE.

    Mỗi thao tác lỗi chỉ đặt `feedback` và raise, không đổi state.
    Scan một ordre mới khi đang ACTIVE sẽ bỏ tiến độ chưa lưu của phiên trước.
    """

    def __init__(
        self,
        registry: ConfigurationRegistry,
        operations: OperationLog,
        create_id: Callable[[], str] = default_create_id,
        clock: Callable[[], datetime] = utcnow,
        lock=None,
    ):
        self._registry = registry
        self.lock = lock or threading.RLock()
        self._operations = operations
        self._create_id = create_id
        self._clock = clock

        self.scan_value = ""
        self.session: Optional[ActiveSession] = None
        self.samples: List[SampleScan] = []
        self.responses: Dict[str, ResponseValue] = {}
        self.sample_label = ""
        self.feedback: Optional[str] = None

    # ==================== State ====================

    @property
    def state(self) -> SessionState:
        return SessionState.ACTIVE if self.session else SessionState.IDLE

    @property
    def checklist_ready(self) -> bool:
        """Mọi item passFail đã có giá trị bool; item text luôn đạt (kể cả để trống)."""
        if not self.session:
            return False
        return all(
            isinstance(self.responses.get(item.id), bool)
            for item in self.session.exigence.checklist
            if item.type == PASS_FAIL
        )

    @property
    def remaining_samples(self) -> int:
        required = self.session.required_samples if self.session else 0
        return max(required - len(self.samples), 0)

    def _fail(self, exc):
        self.feedback = exc.message
        raise exc

    def _require_session(self) -> ActiveSession:
        if not self.session:
            self._fail(NoActiveSession())
        return self.session

    # ==================== Scan ====================

    @_serialized
    def submit_scan(self, value: Optional[str] = None) -> ActiveSession:
        if value is not None:
            self.scan_value = value

        cleaned = (self.scan_value or "").strip()
        if not cleaned:
            self._fail(ValidationFailed("Scanner le tapis pour récupérer un numéro d'ordre valide."))

        order = self._registry.find_order_by_number(cleaned)
        if order is None:
            log.info("scan %r: no matching order", cleaned)
            self._fail(OrderNotFound(cleaned))

        exigence = self._registry.get_exigence(order.exigence_id)
        if exigence is None:
            log.warning("order %s references missing exigence %s", order.order_number, order.exigence_id)
            self._fail(MissingExigence(order.order_number))

        if self.session:
            log.info("scan %s discards session on %s (%d unsaved sample(s))",
                     order.order_number, self.session.order.order_number, len(self.samples))

        self.session = ActiveSession(
            order=order,
            exigence=exigence,
            required_samples=required_samples(order.piece_count, exigence.sample_rule),
            started_at=self._clock(),
        )
        self.samples = []
        self.sample_label = ""
        self.responses = {}
        self.feedback = None
        log.info("session started: order=%s required=%d", order.order_number, self.session.required_samples)
        return self.session

    # ==================== Checklist ====================

    @_serialized
    def set_response(self, item_id: str, value: ResponseValue) -> None:
        session = self._require_session()
        item = next((it for it in session.exigence.checklist if it.id == item_id), None)
        if item is None:
            self._fail(ValidationFailed("Contrôle inconnu pour cette exigence."))
        if item.type == PASS_FAIL and not isinstance(value, bool):
            self._fail(ValidationFailed(f"« {item.label} » attend Conforme / Non conforme."))
        if item.type != PASS_FAIL and not isinstance(value, str):
            self._fail(ValidationFailed(f"« {item.label} » attend une remarque texte."))
        self.responses[item_id] = value

    @_serialized
    def set_label(self, label: str) -> None:
        self._require_session()
        self.sample_label = label or ""

    @_serialized
    def save_sample(self, label: Optional[str] = None) -> SaveResult:
        session = self._require_session()
        if label is not None:
            self.sample_label = label

        trimmed = (self.sample_label or "").strip()
        if not trimmed:
            self._fail(GateFailed("Scanner le code d'échantillon avant de valider."))
        if not self.checklist_ready:
            self._fail(GateFailed("Compléter la check-list pour l'échantillon courant."))

        sample = SampleScan(
            id=self._create_id(),
            label=trimmed,
            responses=build_checklist_responses(session.exigence.checklist, self.responses),
        )
        next_samples = [*self.samples, sample]

        if len(next_samples) < session.required_samples:
            self.samples = next_samples
            self.sample_label = ""
            self.responses = {}
            self.feedback = None
            return SaveResult(sample=sample)

        record = OperationRecord(
            id=self._create_id(),
            order_id=session.order.id,
            exigence_id=session.exigence.id,
            order_number=session.order.order_number,
            piece_count=session.order.piece_count,
            required_samples=session.required_samples,
            samples=next_samples,
            started_at=session.started_at,
            completed_at=self._clock(),
        )
        self._operations.log_operation(record)
        log.info("session completed: order=%s record=%s", record.order_number, record.id)

        self.session = None
        self.samples = []
        self.sample_label = ""
        self.responses = {}
        self.scan_value = ""
        self.feedback = COMPLETED_MESSAGE
        return SaveResult(sample=sample, record=record)

    # ==================== Reprise ====================

    @_serialized
    def resume_last(self) -> str:
        """Điền sẵn ô scan bằng numéro d'ordre của contrôle gần nhất (chỉ khi đang IDLE)."""
        if self.session:
            self._fail(ValidationFailed("Un contrôle est déjà en cours."))
        last = self._operations.latest()
        if last is None:
            self._fail(ValidationFailed("Aucun contrôle enregistré pour le moment."))
        self.scan_value = last.order_number
        self.feedback = None
        return self.scan_value

    # ==================== View ====================

    @_serialized
    def snapshot(self) -> Dict[str, Any]:
        out = idle_snapshot()
        out.update(state=self.state.value, scan_value=self.scan_value, feedback=self.feedback)
        if not self.session:
            return out

        s = self.session
        out["session"] = {
            "order": s.order.model_dump(mode="json"),
            "exigence": {
                "id": s.exigence.id,
                "name": s.exigence.name,
                "code": s.exigence.code,
                "checklist": [it.model_dump(mode="json") for it in s.exigence.checklist],
            },
            "required_samples": s.required_samples,
            "remaining_samples": self.remaining_samples,
            "started_at": s.started_at.isoformat(),
            "samples": [x.model_dump(mode="json") for x in self.samples],
            "responses": dict(self.responses),
            "sample_label": self.sample_label,
            "checklist_ready": self.checklist_ready,
        }
        return out
