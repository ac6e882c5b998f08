# ================================
# file: qc_checklist/schemas/checklist.py
# ================================
from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator

# passFail: Conforme / Non conforme ; text: champ libre (không bắt buộc)
ChecklistItemType = Literal["passFail", "text"]

PASS_FAIL: ChecklistItemType = "passFail"
TEXT: ChecklistItemType = "text"


class ChecklistItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    type: ChecklistItemType
    guidance: Optional[str] = None


class ChecklistItemIn(BaseModel):
    # id None -> registry cấp id mới khi lưu
    id: Optional[str] = None
    label: str
    type: ChecklistItemType = PASS_FAIL
    guidance: Optional[str] = None

    @field_validator("label")
    @classmethod
    def _validate_label(cls, v):
        s = (v or "").strip()
        if not s:
            raise ValueError("Libellé du contrôle obligatoire.")
        return s

    @field_validator("guidance", mode="before")
    @classmethod
    def _normalize_guidance(cls, v):
        """Chuỗi rỗng -> None."""
        if v is None:
            return None
        s = str(v).strip()
        return s or None
