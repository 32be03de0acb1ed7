import pytest

from app import app as flask_app


@pytest.fixture
def app(tmp_path, monkeypatch):
    monkeypatch.setitem(flask_app.config, "TESTING", True)
    monkeypatch.setitem(flask_app.config, "DATA_DIR", str(tmp_path / "data"))
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()
