"""
Shared fixtures: in-memory SQLite schema per test, API client, fake Redis dedup store.
Environment is set before gympay is imported (Settings reads it at import time).
"""
import os
import tempfile
from unittest.mock import MagicMock, patch

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6399/0")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("PAYHERE_MERCHANT_ID", "1221149")
os.environ.setdefault("PAYHERE_MERCHANT_SECRET", "test-merchant-secret")
os.environ.setdefault("APP_ENV", "local")
os.environ.setdefault("UPLOADS_DIR", tempfile.mkdtemp(prefix="gympay-uploads-"))
os.environ.setdefault("BANK_ACCOUNT_NUMBER", "1000123456")
os.environ.setdefault("BANK_NAME", "Commercial Bank")
os.environ.setdefault("BANK_ACCOUNT_HOLDER", "ZFit Gym (Pvt) Ltd")

import pytest

from gympay.db.init_db import create_tables, drop_tables
from gympay.db.session import SessionLocal, engine
from tests.factories import FakeIdempotencyStore


@pytest.fixture
def db():
    create_tables(engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        drop_tables(engine)


@pytest.fixture
def idempotency_store():
    store = FakeIdempotencyStore()
    with patch("gympay.services.payhere.service.IdempotencyStore", return_value=store):
        yield store


@pytest.fixture
def email_task():
    with patch("gympay.workers.tasks.notifications.send_bank_transfer_decision_email") as task:
        task.delay = MagicMock()
        yield task


@pytest.fixture
def client(db, idempotency_store, email_task, tmp_path):
    from fastapi.testclient import TestClient

    from gympay.api.routes.bank_transfers import get_storage
    from gympay.db.session import get_db
    from gympay.main import app
    from gympay.storage.local import LocalStorage

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_storage] = lambda: LocalStorage(root=str(tmp_path))
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()
