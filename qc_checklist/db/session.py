# qc_checklist/db/session.py
import os
import logging
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import OperationalError

from .base import Base
from ..core.config import settings

log = logging.getLogger("db")

# lấy URL từ cấu hình / .env, fallback SQLite nếu chưa đặt
DB_URL = getattr(settings, "DB_URL", None) or os.getenv("DB_URL") or "sqlite:///./qc_checklist.db"
FALLBACK_URL = "sqlite:///./qc_checklist.db"

def make_engine(url_str: str):
    url = make_url(url_str)
    connect_args = {}
    if url.get_backend_name().startswith("sqlite"):
        connect_args["check_same_thread"] = False
    elif url.get_backend_name().startswith("mysql"):
        # PyMySQL: truyền charset xuống DBAPI connect() cho chắc
        connect_args["charset"] = "utf8mb4"

    return create_engine(
        url_str,
        connect_args=connect_args,
        pool_pre_ping=True,
        pool_recycle=3600,
        future=True,
    )

# engine ban đầu theo cấu hình
engine = make_engine(DB_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

def init_db():
    """Tạo bảng (kv_store, audit_logs); nếu MySQL chết và cho phép fallback thì rơi sang SQLite."""
    global engine

    # import để các model đăng ký vào Base.metadata
    from .. import models  # noqa: F401

    try:
        Base.metadata.create_all(bind=engine)
        log.info("DB init OK with %s", make_url(DB_URL).render_as_string(hide_password=True))
        return
    except OperationalError as e:
        backend = make_url(DB_URL).get_backend_name()
        log.error("DB init failed on %s: %s", backend, e)

        # Bật FALLBACK_SQLITE=1 trong .env nếu muốn chạy tạm trên SQLite
        allow_fallback = os.getenv("FALLBACK_SQLITE", "0") == "1"
        if backend.startswith("mysql") and allow_fallback:
            log.warning("Falling back to SQLite: %s", FALLBACK_URL)
            engine = make_engine(FALLBACK_URL)
            SessionLocal.configure(bind=engine)
            Base.metadata.create_all(bind=engine)
        else:
            raise

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
