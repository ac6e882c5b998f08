# qc_checklist/main.py
import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.middleware.sessions import SessionMiddleware
from starlette.responses import JSONResponse

from .core.config import settings
from .db.session import SessionLocal, init_db, get_db
from .services.audit import write_audit
from .services.errors import QualityControlError
from .services.store import KeyValueStore
from .services.workspace import QualityControl

# Routers
from .routers import health, exigences, orders, operator, operations, journal

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
log = logging.getLogger("qc_checklist")

app = FastAPI(title="Checklist digit - contrôle qualité")

# ---------------- Session cookie (station_id của poste opérateur) ----------------
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SESSION_SECRET,
    max_age=60 * 60 * 24 * 7,  # 7 ngày
    same_site="lax",
)

# ---------------- Correlation-ID ----------------
@app.middleware("http")
async def add_correlation_id(request: Request, call_next):
    cid = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
    request.state.correlation_id = cid
    resp = await call_next(request)
    resp.headers["X-Correlation-ID"] = cid
    return resp

# ---------------- Lỗi nghiệp vụ -> thông báo cho người dùng ----------------
@app.exception_handler(QualityControlError)
async def quality_control_error_handler(request: Request, exc: QualityControlError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "kind": exc.kind},
    )

# ---------------- Lỗi validate body -> 422 ----------------
# Không trả lại "input": giá trị như 1e400 (inf) không encode được sang JSON
@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")}
        for e in exc.errors()
    ]
    return JSONResponse(status_code=422, content={"detail": errors, "kind": "validation"})

# ---------------- Global exception handler ----------------
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    log.exception("unhandled error on %s", request.url.path)
    try:
        # dùng override của get_db nếu có (test trỏ sang DB riêng)
        db_gen = app.dependency_overrides.get(get_db, get_db)()
        db = next(db_gen)
        try:
            write_audit(
                db,
                action="EXCEPTION",
                target_type="System",
                status="FAILURE",
                new_values={"path": request.url.path, "error": type(exc).__name__},
                request=request,
            )
            db.commit()
        finally:
            db_gen.close()
    except Exception:
        log.exception("could not write EXCEPTION audit row")
    return JSONResponse(status_code=500, content={"detail": "Une erreur inattendue est survenue. Veuillez réessayer."})

# ---------------- Mount routers ----------------
ROUTERS = (health.router, exigences.router, orders.router, operator.router, operations.router, journal.router)

for r in ROUTERS:
    app.include_router(r, prefix="/api")

# Alias không /api (ẩn khỏi docs)
for r in ROUTERS:
    app.include_router(r, prefix="", include_in_schema=False)

# ---------------- Startup ----------------
@app.on_event("startup")
def startup():
    init_db()
    app.state.qc = QualityControl(KeyValueStore(SessionLocal))

@app.on_event("startup")
def _log_routes():
    for r in app.routes:
        log.debug("ROUTE: %s %s", getattr(r, "path", r), getattr(r, "methods", ""))
