# ================================
# file: qc_checklist/core/config.py
# ================================
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # DB mặc định là SQLite cục bộ; override bằng DB_URL (vd: mysql+pymysql://...) hoặc file .env
    DB_URL: str = "sqlite:///./qc_checklist.db"

    # Khoá ký cookie session (mỗi poste opérateur giữ station_id trong cookie)
    SESSION_SECRET: str = "change-me-please"

    # Seed exigence/ordre mẫu khi store chưa có giá trị
    SEED_DEFAULTS: bool = True

    # Khoá của 3 collection trong kv_store
    EXIGENCES_KEY: str = "odoo-checklist-exigences"
    ORDERS_KEY: str = "odoo-checklist-orders"
    OPERATIONS_KEY: str = "odoo-checklist-operations"

    # Số poste opérateur giữ trong bộ nhớ; vượt quá thì bỏ poste IDLE ít dùng nhất
    MAX_STATIONS: int = 256

    LOG_LEVEL: str = "INFO"

    # Pydantic v2: cấu hình đọc .env, bỏ qua biến lạ
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

# Tạo singleton settings cho toàn app
settings = Settings()
