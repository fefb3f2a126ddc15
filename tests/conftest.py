"""
Shared pytest fixtures for the ProcessHub test suite.

Provides:
    - _environment: temporary SQLite database, Redis disabled, cheap bcrypt (import time)
    - reset_database: per-test drop/create of all tables plus reference data (autouse)
    - client: anonymous TestClient
    - admin_client: TestClient logged in as the seeded administrator
    - make_user / login: create common users and log them in with their own cookie jar
    - create_process: helper posting a process through the API
"""

import os
import tempfile

# Configuration is read at import time, so the environment must be ready before
# the application modules are imported.
_TMP_DIR = tempfile.mkdtemp(prefix="processhub-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["REDIS_URL"] = ""
os.environ["BCRYPT_ROUNDS"] = "4"

import pytest
from fastapi.testclient import TestClient

from app import app
from core import security
from core.cache import catalog_cache
from database import Base, SessionLocal, engine, seed_reference_data

TEST_PASSWORD = "secret123"

# Seeded ids (see database.FLOW_DEPARTMENTS / DEFAULT_MODALITIES / DEFAULT_SOURCES)
SOLICITACAO, DIVISAO, COORDENACAO, DIRECAO, GABINETE, ARQUIVO = 1, 2, 3, 4, 5, 6
PREGAO, CONCORRENCIA, DISPENSA = 1, 2, 3


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_reference_data(db)
    finally:
        db.close()
    catalog_cache.clear()
    security.user_sessions.clear()
    yield
    catalog_cache.clear()
    security.user_sessions.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def _login(username: str, password: str = TEST_PASSWORD) -> TestClient:
    test_client = TestClient(app)
    response = test_client.post("/api/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return test_client


@pytest.fixture
def admin_client(client):
    response = client.post("/api/auth/login", json={"username": "admin", "password": "admin123"})
    assert response.status_code == 200, response.text
    return client


@pytest.fixture
def make_user(admin_client):
    """Create an active user through the admin API and return its JSON."""
    def _make(username: str, department: str = "Setor de Solicitação", role: str = "common", **extra):
        payload = {
            "username": username,
            "password": TEST_PASSWORD,
            "full_name": username.replace(".", " ").title(),
            "department": department,
            "role": role,
        }
        payload.update(extra)
        response = admin_client.post("/api/users", json=payload)
        assert response.status_code == 201, response.text
        return response.json()
    return _make


@pytest.fixture
def login():
    return _login


@pytest.fixture
def create_process(admin_client):
    """POST a process (as admin unless another client is given) and return its JSON."""
    counter = {"n": 0}

    def _create(http=None, **overrides):
        counter["n"] += 1
        payload = {
            "pbdoc_number": f"PBDOC-2025-{counter['n']:05d}",
            "description": "Aquisição de material de expediente",
            "modality_id": CONCORRENCIA,
            "source_id": 1,
        }
        payload.update(overrides)
        response = (http or admin_client).post("/api/processes", json=payload)
        assert response.status_code == 201, response.text
        return response.json()
    return _create
