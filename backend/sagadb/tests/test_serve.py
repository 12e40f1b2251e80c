import pytest

from sagadb import serve


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("HOST", "PORT", "RELOAD", "WEB_CONCURRENCY", *serve._SSL_ENV):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    options = serve.uvicorn_options()

    assert options["host"] == "0.0.0.0"
    assert options["port"] == 8000
    assert options["reload"] is False
    assert "workers" not in options
    assert "ssl_certfile" not in options


def test_ssl_and_workers_from_env(monkeypatch):
    monkeypatch.setenv("SSL_CERTFILE", "/etc/saga/cert.pem")
    monkeypatch.setenv("SSL_KEYFILE", "/etc/saga/key.pem")
    monkeypatch.setenv("WEB_CONCURRENCY", "3")

    options = serve.uvicorn_options()

    assert options["ssl_certfile"] == "/etc/saga/cert.pem"
    assert options["ssl_keyfile"] == "/etc/saga/key.pem"
    assert options["workers"] == 3


def test_reload_with_workers_is_rejected(monkeypatch):
    monkeypatch.setenv("RELOAD", "yes")
    monkeypatch.setenv("WEB_CONCURRENCY", "2")

    with pytest.raises(RuntimeError):
        serve.uvicorn_options()
