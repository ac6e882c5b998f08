import itertools
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from qc_checklist.db.base import Base
from qc_checklist import models  # noqa: F401  (đăng ký bảng vào Base.metadata)
from qc_checklist.db.session import get_db
from qc_checklist.routers.deps import get_qc
from qc_checklist.services.store import KeyValueStore
from qc_checklist.services.workspace import QualityControl


class FakeClock:
    """Mỗi lần gọi tiến thêm 1 giây, để completed_at luôn sau started_at."""

    def __init__(self, start=datetime(2026, 1, 5, 8, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self):
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return KeyValueStore(session_factory)


@pytest.fixture
def ids():
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def qc(store, ids, clock):
    return QualityControl(store, create_id=ids, clock=clock, seed_defaults=True)


@pytest.fixture
def empty_qc(store, ids, clock):
    return QualityControl(store, create_id=ids, clock=clock, seed_defaults=False)


@pytest.fixture
def client(qc, session_factory):
    from qc_checklist.main import app

    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_qc] = lambda: qc
    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
