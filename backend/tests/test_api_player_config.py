"""API tests for the stored player configuration (/api/v1/player-config)."""

from datetime import datetime, timedelta

from tests.conftest import create_session_via_api

CONFIG_URL = "/api/v1/player-config"


def _ts(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def test_defaults_from_settings(client):
    data = client.get(CONFIG_URL).json()
    assert data == {
        "endpoint": "items.learnosity.com",
        "expires_minutes": 60,
        "source": "default",
        "updated_at": None,
    }


def test_save_config(client):
    resp = client.post(CONFIG_URL, json={"endpoint": "items-eu.example.com", "expiresMinutes": 15})
    assert resp.status_code == 200
    data = resp.json()
    assert data["endpoint"] == "items-eu.example.com"
    assert data["expires_minutes"] == 15
    assert data["source"] == "stored"
    assert client.get(CONFIG_URL).json()["source"] == "stored"


def test_newest_config_wins(client):
    client.post(CONFIG_URL, json={"endpoint": "first.example.com", "expires_minutes": 20})
    client.post(CONFIG_URL, json={"endpoint": "second.example.com", "expires_minutes": 25})
    assert client.get(CONFIG_URL).json()["endpoint"] == "second.example.com"


def test_stored_timeout_applies_to_new_sessions(client, api_clock):
    client.post(CONFIG_URL, json={"endpoint": "items.example.com", "expiresMinutes": 15})

    session = create_session_via_api(client).json()

    assert _ts(session["expires_at"]) - _ts(session["created_at"]) == timedelta(minutes=15)


def test_clear_config_restores_defaults(client):
    client.post(CONFIG_URL, json={"endpoint": "items.example.com", "expiresMinutes": 15})
    resp = client.delete(CONFIG_URL)
    assert resp.status_code == 200
    assert resp.json()["source"] == "default"
    assert resp.json()["expires_minutes"] == 60


def test_invalid_config_422(client):
    assert client.post(CONFIG_URL, json={"endpoint": "x.example.com", "expiresMinutes": 0}).status_code == 422
    assert client.post(CONFIG_URL, json={"endpoint": "x.example.com", "expiresMinutes": 1441}).status_code == 422
    assert client.post(CONFIG_URL, json={"endpoint": "   ", "expiresMinutes": 10}).status_code == 422
