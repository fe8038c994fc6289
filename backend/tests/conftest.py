import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from backend_stub import Base, create_backend_app
from rh_portal.config import settings
from rh_portal.dependencies import get_backend
from rh_portal.main import app
from rh_portal.services.backend_client import BackendClient

BACKEND_URL = "http://backend.test"


def _set_sqlite_pragmas(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _use_transport(transport: httpx.AsyncBaseTransport):
    async def override_get_backend():
        async with httpx.AsyncClient(transport=transport, base_url=BACKEND_URL) as http:
            yield BackendClient(http)

    app.dependency_overrides[get_backend] = override_get_backend


class RecordingBackend:
    """httpx mock handler keeping every outbound request; `reply` builds the answer."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.reply = lambda request: httpx.Response(200, json={"id": 1})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.reply(request)


@pytest.fixture(autouse=True)
def backend_settings(monkeypatch):
    monkeypatch.setattr(settings, "api_url", BACKEND_URL)
    monkeypatch.setattr(settings, "files_path", "/api/files")
    yield settings


@pytest.fixture
def backend_db(tmp_path):
    db_path = tmp_path / "backend.sqlite"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    event.listen(engine, "connect", _set_sqlite_pragmas)
    Base.metadata.create_all(engine)
    TestSession = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    yield TestSession
    engine.dispose()


@pytest.fixture
def backend_app(backend_db):
    return create_backend_app(backend_db)


@pytest.fixture
def client(backend_app):
    """Portal client talking to the SQLite-backed stub backend."""
    _use_transport(httpx.ASGITransport(app=backend_app))
    c = TestClient(app)
    yield c
    app.dependency_overrides.clear()


@pytest.fixture
def mock_backend():
    return RecordingBackend()


@pytest.fixture
def mock_client(mock_backend):
    """Portal client whose backend calls are recorded and answered by `mock_backend.reply`."""
    _use_transport(httpx.MockTransport(mock_backend))
    c = TestClient(app)
    yield c
    app.dependency_overrides.clear()
