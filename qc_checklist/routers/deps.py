# qc_checklist/routers/deps.py
import uuid
from typing import Optional

from fastapi import Depends, Request

from ..services.errors import NoActiveSession
from ..services.operator_session import OperatorSession
from ..services.workspace import QualityControl


def get_qc(request: Request) -> QualityControl:
    # instance tạo ở startup (main.py); test override dependency này
    return request.app.state.qc


def get_station_id(request: Request) -> Optional[str]:
    """station_id lưu trong cookie session; None nếu poste chưa từng scan."""
    return request.session.get("station_id")


def find_station(
    station_id: Optional[str] = Depends(get_station_id),
    qc: QualityControl = Depends(get_qc),
) -> Optional[OperatorSession]:
    return qc.find_station(station_id)


def require_station(station: Optional[OperatorSession] = Depends(find_station)) -> OperatorSession:
    if station is None:
        raise NoActiveSession()
    return station


def get_station(request: Request, qc: QualityControl = Depends(get_qc)) -> OperatorSession:
    """Chỉ dùng cho thao tác mở phiên (scan, reprise): cấp station_id nếu chưa có."""
    sid = request.session.get("station_id")
    if not sid:
        sid = str(uuid.uuid4())
        request.session["station_id"] = sid
    return qc.station(sid)
