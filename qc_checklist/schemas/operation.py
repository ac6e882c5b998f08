# qc_checklist/schemas/operation.py
from __future__ import annotations

from datetime import datetime
from typing import List, Union

from pydantic import BaseModel, ConfigDict

# bool cho passFail, str cho text
ResponseValue = Union[bool, str]


class ChecklistResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    item_id: str
    value: ResponseValue


class SampleScan(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    responses: List[ChecklistResponse]


class OperationRecord(BaseModel):
    """Bản ghi lưu trữ của một lần contrôle đã hoàn tất. Không sửa, không xoá."""
    model_config = ConfigDict(frozen=True)

    id: str
    order_id: str
    exigence_id: str
    order_number: str
    piece_count: int
    required_samples: int
    samples: List[SampleScan]
    started_at: datetime
    completed_at: datetime


# ========= Payload poste opérateur =========
class ScanIn(BaseModel):
    value: str = ""


class ResponseIn(BaseModel):
    value: ResponseValue


class LabelIn(BaseModel):
    label: str = ""


class SampleIn(BaseModel):
    # None -> dùng label đang nhập trên session
    label: str | None = None
