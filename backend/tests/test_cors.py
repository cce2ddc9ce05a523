import importlib
import sys

import pytest


def _cleanup_main():
    sys.modules.pop("arena.main", None)


@pytest.fixture(autouse=True)
def main_import_isolation():
    _cleanup_main()
    try:
        yield
    finally:
        _cleanup_main()


def test_rejects_wildcard_with_credentials(monkeypatch):
    monkeypatch.setenv("ALLOWED_ORIGINS", "*")
    monkeypatch.setenv("ALLOW_CREDENTIALS", "true")
    with pytest.raises(ValueError):
        importlib.import_module("arena.main")


def test_requires_allowed_origins(monkeypatch):
    monkeypatch.delenv("ALLOWED_ORIGINS", raising=False)
    monkeypatch.delenv("ALLOW_CREDENTIALS", raising=False)
    with pytest.raises(ValueError):
        importlib.import_module("arena.main")


def test_blank_origins_are_rejected(monkeypatch):
    monkeypatch.setenv("ALLOWED_ORIGINS", " , ")
    with pytest.raises(ValueError):
        importlib.import_module("arena.main")


def test_allowed_origin_gets_cors_headers(monkeypatch):
    from fastapi.testclient import TestClient

    monkeypatch.setenv("ALLOWED_ORIGINS", "https://arena.example")
    main = importlib.import_module("arena.main")

    with TestClient(main.app) as client:
        resp = client.get("/healthz", headers={"Origin": "https://arena.example"})

    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "https://arena.example"
