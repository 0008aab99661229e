"""Tests for the HTTP entry point."""

import pytest
from fastapi.testclient import TestClient

from recurring_accounts.app import create_app
from recurring_accounts.clients.backing_store import BackingStoreUnavailable
from recurring_accounts.config.settings import Settings, get_settings

ENDPOINT = "/generate-recurring-accounts"


@pytest.fixture
def settings():
    return Settings(
        SUPABASE_URL="http://localhost:54321",
        SUPABASE_SERVICE_ROLE_KEY="service-role-test",
    )


class TestGenerateRecurringAccounts:
    def test_success_returns_summary(self, settings, make_store, payable_record):
        store = make_store({"accounts_payable": [payable_record()]})

        with TestClient(create_app(settings=settings, store=store)) as client:
            response = client.post(ENDPOINT)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"]
        assert body["timestamp"]
        assert body["summary"]["payables_created"] == 1
        assert body["summary"]["receivables_created"] == 0
        assert body["summary"]["total_created"] == 1

    def test_get_is_accepted_without_body(self, settings, store):
        with TestClient(create_app(settings=settings, store=store)) as client:
            response = client.get(ENDPOINT)

        assert response.status_code == 200
        assert response.json()["summary"]["total_created"] == 0

    def test_second_call_creates_nothing(self, settings, make_store, payable_record):
        store = make_store({"accounts_payable": [payable_record()]})

        with TestClient(create_app(settings=settings, store=store)) as client:
            client.post(ENDPOINT)
            response = client.post(ENDPOINT)

        assert response.json()["summary"]["total_created"] == 0
        assert response.json()["summary"]["skipped"] == 1

    def test_unreachable_store_returns_500(self, settings, store):
        store.failing_tables["accounts_payable"] = BackingStoreUnavailable(
            "Request failed: connection refused"
        )

        with TestClient(create_app(settings=settings, store=store)) as client:
            response = client.post(ENDPOINT)

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Request failed: connection refused"
        assert body["timestamp"]

    def test_missing_configuration_returns_500(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)
        get_settings.cache_clear()
        try:
            with TestClient(create_app()) as client:
                response = client.post(ENDPOINT)
        finally:
            get_settings.cache_clear()

        assert response.status_code == 500
        assert response.json()["success"] is False
        assert "not configured" in response.json()["error"]

    def test_cors_preflight(self, settings, store):
        with TestClient(create_app(settings=settings, store=store)) as client:
            response = client.options(
                ENDPOINT,
                headers={
                    "Origin": "https://app.example.com",
                    "Access-Control-Request-Method": "POST",
                    "Access-Control-Request-Headers": "authorization, apikey",
                },
            )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"

    def test_injected_store_is_not_closed(self, settings, store):
        with TestClient(create_app(settings=settings, store=store)):
            pass

        assert store.closed is False


def test_health(settings, store):
    with TestClient(create_app(settings=settings, store=store)) as client:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
