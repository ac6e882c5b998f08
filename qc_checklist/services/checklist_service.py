# ================================
# file: qc_checklist/services/checklist_service.py
# ================================
from __future__ import annotations

from typing import Callable, List

from ..schemas.checklist import ChecklistItem, PASS_FAIL, TEXT
from ..schemas.exigence import Exigence, SampleRule
from ..schemas.order import OrderConfig

DEFAULT_SAMPLE_RULE = SampleRule(pieces_per_sample=30, min_samples=1, max_samples=10)

# (label, type) của exigence mẫu
DEFAULT_ITEMS = [
    ("État visuel conforme", PASS_FAIL),
    ("Dimensions vérifiées", PASS_FAIL),
    ("Observation / Remarque", TEXT),
]


def default_exigences(create_id: Callable[[], str]) -> List[Exigence]:
    """Exigence mẫu, chỉ dùng khi store chưa có key exigences."""
    return [
        Exigence(
            id=create_id(),
            name="Control Qualité Standard",
            code="STD-CTRL",
            description="Checklist générique pour les ordres standards.",
            sample_rule=DEFAULT_SAMPLE_RULE,
            checklist=[
                ChecklistItem(id=create_id(), label=label, type=kind)
                for label, kind in DEFAULT_ITEMS
            ],
        )
    ]


def default_orders(exigences: List[Exigence], create_id: Callable[[], str]) -> List[OrderConfig]:
    if not exigences:
        return []
    return [
        OrderConfig(
            id=create_id(),
            order_number="CMD-1001",
            exigence_id=exigences[0].id,
            piece_count=120,
            notes="Commande test pour démonstration.",
        )
    ]
