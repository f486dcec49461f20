"""Application wiring: health probes, error bodies and request ids."""

from unittest.mock import patch

from fastapi import status
from fastapi.testclient import TestClient

from api.dependencies import get_firestore
from api.main import API_VERSION, app, create_app


def test_healthz(api_client):
    response = api_client.get("/healthz")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "healthy"
    assert data["version"] == API_VERSION


def test_readyz_reports_optional_components(api_client):
    response = api_client.get("/readyz")

    assert response.json()["details"] == {"ai_bridge": "disabled", "expiry_sweep": "disabled"}


def test_every_response_carries_a_request_id(api_client):
    response = api_client.get("/healthz")

    assert response.headers["X-Request-ID"].startswith("req_")


def test_domain_error_body(api_client):
    response = api_client.get("/api/tasks/missing")

    assert response.status_code == status.HTTP_404_NOT_FOUND
    body = response.json()
    assert body["error"] == "NOT_FOUND"
    assert body["message"] == "Task with ID missing not found"
    assert body["request_id"] == response.headers["X-Request-ID"]


def test_unexpected_error_is_a_generic_500(api_client):
    def broken_firestore():
        raise RuntimeError("connection pool exhausted")

    app.dependency_overrides[get_firestore] = broken_firestore
    client = TestClient(app, raise_server_exceptions=False)

    response = client.get("/api/tasks")

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["error"] == "INTERNAL_ERROR"
    assert "connection pool" not in response.text


def test_lifespan_starts_and_cancels_expiry_task(monkeypatch, fake_firestore):
    from libs.common.settings import get_settings

    monkeypatch.setenv("COACHING_EXPIRY_SWEEP_ENABLED", "true")
    get_settings.cache_clear()

    with patch("api.main.initialize_firebase_app") as mock_init, patch(
        "api.main.get_firestore_async_client", return_value=fake_firestore
    ), patch("api.main.run_expiry_scheduler") as mock_scheduler:

        async def idle(client, hour):
            return None

        mock_scheduler.side_effect = idle
        with TestClient(create_app()) as client:
            assert client.get("/healthz").status_code == status.HTTP_200_OK
            assert client.app.state.chat_bridge is None

    mock_init.assert_called_once()
    mock_scheduler.assert_called_once_with(fake_firestore, 0)


def test_lifespan_builds_chat_bridge_when_key_is_set(monkeypatch):
    from libs.common.settings import get_settings

    monkeypatch.setenv("COACHING_OPENAI_API_KEY", "sk-test")
    get_settings.cache_clear()

    with patch("api.main.initialize_firebase_app"):
        with TestClient(create_app()) as client:
            response = client.get("/readyz")
            assert client.app.state.chat_bridge.model == "gpt-4o-mini"

    assert response.json()["details"]["ai_bridge"] == "configured"
