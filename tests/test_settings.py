"""
Tests for configuration settings
"""
from pgbroker.config.settings import Settings


def test_defaults():
    settings = Settings()

    assert settings.CONTROL_DATABASE == "broker"
    assert settings.INSTANCE_EXPIRY_SECONDS == 3600
    assert settings.tags == ["shared", "postgres", "postgresql", "tinsmith"]


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("SERVICE_NAME", "pg-shared")
    monkeypatch.setenv("TAGS", "a, b,,c")
    monkeypatch.setenv("STATEMENT_TIMEOUT_SECONDS", "2.5")

    settings = Settings()

    assert settings.SERVICE_NAME == "pg-shared"
    assert settings.tags == ["a", "b", "c"]
    assert settings.STATEMENT_TIMEOUT_SECONDS == 2.5


def test_zero_timeout_means_none(monkeypatch):
    monkeypatch.setenv("TASK_TIMEOUT_SECONDS", "0")

    assert Settings().TASK_TIMEOUT_SECONDS is None


def test_catalog():
    settings = Settings(SERVICE_ID="svc", PLAN_ID="plan", PLAN_NAME="tiny")

    catalog = settings.get_catalog()

    service = catalog["services"][0]
    assert service["id"] == "svc"
    assert service["bindable"] is True
    assert service["plans"] == [
        {"id": "plan", "name": "tiny", "description": settings.DESCRIPTION}
    ]
