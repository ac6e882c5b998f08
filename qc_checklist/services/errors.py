# qc_checklist/services/errors.py
from __future__ import annotations

from typing import Optional


class QualityControlError(Exception):
    """
    Lỗi nghiệp vụ: không thay đổi state, chỉ trả thông báo cho người dùng.
    main.py chuyển thành JSON {"detail", "kind"} với status_code tương ứng.
    """
    status_code = 400
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(QualityControlError):
    status_code = 422
    kind = "validation"


class OrderNotFound(QualityControlError):
    status_code = 404
    kind = "order_not_found"

    def __init__(self, scanned: str):
        super().__init__(
            f"Aucun ordre trouvé pour le numéro {scanned}. Vérifiez la configuration."
        )
        self.scanned = scanned


class MissingExigence(QualityControlError):
    status_code = 409
    kind = "missing_exigence"

    def __init__(self, order_number: Optional[str] = None):
        super().__init__(
            "Cet ordre n'a pas d'exigence associée. "
            "Configurez la check-list dans l'espace manager."
        )
        self.order_number = order_number


class GateFailed(QualityControlError):
    status_code = 422
    kind = "gate"


class NoActiveSession(QualityControlError):
    status_code = 409
    kind = "no_session"

    def __init__(self, message: str = "Aucun contrôle en cours. Scanner d'abord le tapis."):
        super().__init__(message)
