# qc_checklist/services/sampling.py
import math
from typing import Optional

from ..schemas.exigence import SampleRule


def _bound(v: Optional[int]) -> Optional[int]:
    # giá trị <= 0 coi như không đặt
    return v if v is not None and v > 0 else None


def required_samples(piece_count: int, rule: SampleRule) -> int:
    """
    Số échantillon cần kiểm cho một ordre:
      ceil(pieces / pieces_per_sample), kẹp trong [min_samples, max_samples], tối thiểu 1.
    pieces_per_sample không hợp lệ -> max(min_samples, 1).
    """
    per_sample = _bound(rule.pieces_per_sample)
    min_samples = _bound(rule.min_samples)
    max_samples = _bound(rule.max_samples)

    if per_sample is None:
        return max(min_samples or 1, 1)

    count = math.ceil(piece_count / per_sample)
    if min_samples is not None:
        count = max(count, min_samples)
    if max_samples is not None:
        count = min(count, max_samples)
    return max(count, 1)
