from datetime import timedelta

import pytest
from pydantic import ValidationError

from assessment_delivery.platform.config import Settings


def _settings(**overrides):
    return Settings(_env_file=None, **overrides)


def test_lifecycle_defaults(monkeypatch):
    for name in ("SESSION_TIMEOUT_MINUTES", "CLEANUP_INTERVAL_MINUTES", "ABANDONED_SESSION_HOURS",
                 "SESSION_RETENTION_DAYS", "CLEANUP_SESSION_COUNT_THRESHOLD", "SESSION_CONFLICT_POLICY"):
        monkeypatch.delenv(name, raising=False)
    settings = _settings()
    assert settings.session_timeout == timedelta(minutes=60)
    assert settings.cleanup_interval == timedelta(minutes=30)
    assert settings.abandoned_after == timedelta(hours=24)
    assert settings.retention == timedelta(days=7)
    assert settings.CLEANUP_SESSION_COUNT_THRESHOLD == 100
    assert settings.SESSION_CONFLICT_POLICY == "auto_expire_previous"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("SESSION_TIMEOUT_MINUTES", "90")
    monkeypatch.setenv("SESSION_RETENTION_DAYS", "30")
    monkeypatch.setenv("SESSION_CONFLICT_POLICY", "reject")
    settings = _settings()
    assert settings.session_timeout == timedelta(minutes=90)
    assert settings.retention == timedelta(days=30)
    assert settings.SESSION_CONFLICT_POLICY == "reject"


@pytest.mark.parametrize("minutes", [0, 1441])
def test_session_timeout_bounds(minutes):
    with pytest.raises(ValidationError):
        _settings(SESSION_TIMEOUT_MINUTES=minutes)


def test_unknown_conflict_policy_rejected():
    with pytest.raises(ValidationError):
        _settings(SESSION_CONFLICT_POLICY="first_wins")


def test_cleanup_interval_must_be_positive():
    with pytest.raises(ValidationError):
        _settings(CLEANUP_INTERVAL_MINUTES=0)


def test_is_production():
    assert _settings(DEPLOYMENT_ENV="production").is_production is True
    assert _settings(DEPLOYMENT_ENV=" Production ").is_production is True
    assert _settings(DEPLOYMENT_ENV="development").is_production is False
