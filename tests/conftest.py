import pytest
from fastapi.testclient import TestClient

from linkdash.config import Settings
from linkdash.main import create_app


@pytest.fixture
def settings(tmp_path):
    return Settings(
        data_file=tmp_path / "data.json",
        log_dir=tmp_path / "logs",
        static_dir=tmp_path / "public",
        admin_password="s3cret",
        jwt_secret="test-secret",
    )


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as c:
        yield c


@pytest.fixture
def token(client):
    return client.post("/api/verify-password", json={"password": "s3cret"}).json()["token"]
