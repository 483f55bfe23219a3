from __future__ import annotations

import pytest

from authcore.core.config import DevelopmentConfig, ProductionConfig, TestingConfig, get_config
from authcore.factory import create_app
from authcore.services._shared.errors import ConfigurationError


@pytest.mark.parametrize(
    ("env", "expected"),
    [
        ("production", ProductionConfig),
        ("Testing", TestingConfig),
        ("something-else", DevelopmentConfig),
    ],
)
def test_get_config_follows_app_env(monkeypatch, env, expected):
    monkeypatch.setenv("APP_ENV", env)
    assert get_config() is expected


def test_missing_signing_key_aborts_startup():
    class NoKeyConfig(TestingConfig):
        JWT_SECRET_KEY = ""

    with pytest.raises(ConfigurationError):
        create_app(NoKeyConfig)


def test_health(client):
    resp = client.get("/api/v1/health")

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "ok"
    assert body["db"] == "ok"
    assert "redis" not in body


def test_unknown_route_is_problem(client):
    resp = client.get("/api/v1/nowhere")

    assert resp.status_code == 404
    assert resp.mimetype == "application/problem+json"
    problem = resp.get_json()
    assert problem["code"] == "not_found"
    assert problem["message"] == "Route '/api/v1/nowhere' not found"


def test_request_id_is_echoed(client):
    resp = client.get("/api/v1/health", headers={"X-Request-ID": "trace-42"})
    assert resp.headers["X-Request-ID"] == "trace-42"


def test_request_id_is_generated(client):
    resp = client.get("/api/v1/health")
    assert resp.headers["X-Request-ID"]


def test_request_id_is_scoped_to_its_request(client):
    first = client.get("/api/v1/health", headers={"X-Request-ID": "trace-a"})
    second = client.get("/api/v1/health", headers={"X-Correlation-ID": "trace-b"})
    third = client.get("/api/v1/health")

    assert first.headers["X-Request-ID"] == "trace-a"
    assert second.headers["X-Request-ID"] == "trace-b"
    assert third.headers["X-Request-ID"] not in {"trace-a", "trace-b"}


def test_non_json_body_is_validation_error(client):
    resp = client.post("/api/v1/auth/login", data="not json", content_type="text/plain")
    assert resp.status_code == 422
    assert resp.get_json()["code"] == "validation_error"


def test_init_db_command_is_registered(app):
    result = app.test_cli_runner().invoke(args=["init-db", "--help"])

    assert result.exit_code == 0
    assert "--drop" in result.output
