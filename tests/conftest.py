import sys
from pathlib import Path as _Path
sys.path.insert(0, str(_Path(__file__).resolve().parents[1] / "src"))

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from crmb.app import create_app
from crmb.config import Settings


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at an empty temporary data dir."""
    data_dir = tmp_path / "data"
    return Settings(
        data_dir=data_dir,
        users_path=data_dir / "users.json",
        document_path=data_dir / "data.json",
        secret_key="test-secret",
        session_salt="crmb.session.test",
        session_max_age=24 * 60 * 60,
        cookie_name="crmb_session",
        cookie_secure=False,
    )


@pytest.fixture()
def app(settings):
    return create_app(settings)


@pytest.fixture()
def client(app) -> TestClient:
    return TestClient(app)


def _login(app, username: str, password: str) -> TestClient:
    c = TestClient(app)
    r = c.post("/api/login", json={"username": username, "password": password})
    assert r.status_code == 200
    assert r.json()["ok"] is True
    return c


@pytest.fixture()
def admin_client(app) -> TestClient:
    return _login(app, "admin", "admin123")


@pytest.fixture()
def user_client(app) -> TestClient:
    return _login(app, "user1", "user123")
