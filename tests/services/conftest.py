# tests/services/conftest.py
from __future__ import annotations
import pytest
from starlette.testclient import TestClient

from mediarepo.common.settings import get_settings
from mediarepo.services.api.app import create_app
from mediarepo.services.handlers.registry import get_handler_registry
from mediarepo.services.storage.local_repo import LocalFileRepo


@pytest.fixture()
def api_repo_root(tmp_path, monkeypatch):
    """
    Point the settings at a fresh repository under tmp_path. The cached
    settings are dropped before and after so other tests see the defaults.
    """
    root = tmp_path / "api-repo"
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("REPO__ROOT", str(root))
    monkeypatch.setenv("TRANSFORM__TEMP_DIR", str(tmp_path / "api-scratch"))
    monkeypatch.delenv("EDGE_CACHE__ENABLED", raising=False)
    get_settings.cache_clear()
    yield root
    get_settings.cache_clear()


@pytest.fixture()
def api_publish(api_repo_root, make_png):
    """Publish a PNG into the API's repository; returns the stored name."""

    def _publish(name: str = "Sunset.png", size=(400, 200)) -> str:
        repo = LocalFileRepo(get_settings().repo, get_handler_registry())
        status = repo.publish(make_png(size), name)
        assert status.ok, status.message
        return repo.new_file(name).name

    return _publish


@pytest.fixture()
def api_client(api_repo_root):
    app = create_app()
    with TestClient(app) as client:
        yield client
