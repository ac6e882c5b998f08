# qc_checklist/schemas/exigence.py
from __future__ import annotations

import math
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .checklist import ChecklistItem, ChecklistItemIn


# ========= Règle d'échantillonnage =========
class SampleRule(BaseModel):
    """
    Giá trị đã lưu. Không ràng buộc lại khi đọc:
    clamp max >= min chỉ áp dụng lúc nhập (SampleRuleIn.to_rule).
    """
    model_config = ConfigDict(frozen=True)

    pieces_per_sample: Optional[int] = None
    min_samples: Optional[int] = None
    max_samples: Optional[int] = None


class SampleRuleIn(BaseModel):
    pieces_per_sample: Optional[float] = 30
    min_samples: Optional[float] = 1
    max_samples: Optional[float] = 10

    @field_validator("pieces_per_sample", "min_samples", "max_samples")
    @classmethod
    def _finite(cls, v):
        # inf / NaN (vd: 1e400 trong JSON) -> 422, không tới được int()
        if v is not None and not math.isfinite(v):
            raise ValueError("Les règles d'échantillonnage doivent être des nombres finis.")
        return v

    def to_rule(self) -> SampleRule:
        """
        Chuẩn hoá lúc submit:
          - pieces_per_sample: >= 1 (0 / None -> 1)
          - min_samples: None hoặc 0 -> không đặt, còn lại >= 1
          - max_samples: None hoặc 0 -> không đặt, còn lại >= min_samples (hoặc 1)
        """
        pieces = max(1, int(self.pieces_per_sample or 1))
        min_samples = max(1, int(self.min_samples)) if self.min_samples else None
        max_samples = (
            max(min_samples or 1, int(self.max_samples)) if self.max_samples else None
        )
        return SampleRule(
            pieces_per_sample=pieces,
            min_samples=min_samples,
            max_samples=max_samples,
        )


# ========= Exigence =========
class Exigence(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    code: str
    description: Optional[str] = None
    sample_rule: SampleRule
    checklist: List[ChecklistItem]


class ExigenceIn(BaseModel):
    # có id -> cập nhật (merge), không có -> tạo mới
    id: Optional[str] = None
    name: str
    code: str
    description: Optional[str] = None
    sample_rule: SampleRuleIn = Field(default_factory=SampleRuleIn)
    checklist: List[ChecklistItemIn] = Field(default_factory=list)

    @field_validator("name", "code", mode="before")
    @classmethod
    def _strip_required(cls, v):
        s = "" if v is None else str(v).strip()
        if not s:
            raise ValueError("Nom et code exigence sont obligatoires.")
        return s

    @field_validator("description", mode="before")
    @classmethod
    def _normalize_description(cls, v):
        if v is None:
            return None
        s = str(v).strip()
        return s or None

    @model_validator(mode="after")
    def _validate_checklist(self):
        if not self.checklist:
            raise ValueError("Ajouter au minimum un item dans la check-list.")
        ids = [it.id for it in self.checklist if it.id]
        if len(ids) != len(set(ids)):
            raise ValueError("Les identifiants de la check-list doivent être uniques.")
        return self
