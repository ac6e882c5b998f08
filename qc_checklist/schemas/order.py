# qc_checklist/schemas/order.py
from __future__ import annotations

import math
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class OrderConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    order_number: str
    exigence_id: str
    piece_count: int
    notes: Optional[str] = None


class OrderIn(BaseModel):
    id: Optional[str] = None
    order_number: str
    exigence_id: str
    piece_count: int
    notes: Optional[str] = None

    @field_validator("order_number", mode="before")
    @classmethod
    def _validate_order_number(cls, v):
        s = "" if v is None else str(v).strip()
        if not s:
            raise ValueError("Le numéro d'ordre est obligatoire.")
        return s

    @field_validator("exigence_id", mode="before")
    @classmethod
    def _validate_exigence_id(cls, v):
        s = "" if v is None else str(v).strip()
        if not s:
            raise ValueError("Associez une exigence à l'ordre.")
        return s

    @field_validator("piece_count", mode="before")
    @classmethod
    def _floor_piece_count(cls, v):
        """Số lẻ -> làm tròn xuống; sau khi làm tròn phải >= 1."""
        try:
            n = math.floor(float(v))
        except (TypeError, ValueError, OverflowError):
            raise ValueError("Le nombre de pièces doit être supérieur à 0.")
        if n <= 0:
            raise ValueError("Le nombre de pièces doit être supérieur à 0.")
        return n

    @field_validator("notes", mode="before")
    @classmethod
    def _normalize_notes(cls, v):
        if v is None:
            return None
        s = str(v).strip()
        return s or None
