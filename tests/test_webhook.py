"""
Tests for the FastAPI application and WeCom webhook route.
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from wecomly.app.main import app
from wecomly.pipeline import DeliveryPipeline
from wecomly.pipeline.transports import WeComTransport, register_transport, reset_transport_registry

WEBHOOK = "/api/v1/webhook/wecom"


@pytest.fixture
def client():
    # No context manager: lifespan (env-driven startup) is not run.
    return TestClient(app)


@pytest.fixture
def registered(api_config, mock_client):
    reset_transport_registry()
    transport = WeComTransport(DeliveryPipeline(api_config, client=mock_client), api_config)
    register_transport(transport)
    yield transport
    reset_transport_registry()


class TestWebhookRoute:
    def test_receives_message(self, client, registered, sample_text_payload):
        response = client.post(WEBHOOK, json=sample_text_payload)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "received"
        assert body["should_reply"] is True
        assert body["messages"][0]["peer"]["id"] == "zhangsan"
        assert body["messages"][0]["text"] == "@lisi 明天开会"

    def test_malformed_payload(self, client, registered):
        response = client.post(WEBHOOK, json={"MsgType": "text"})
        assert response.status_code == 400

    def test_non_json_body(self, client, registered):
        response = client.post(WEBHOOK, content=b"<xml></xml>", headers={"content-type": "application/xml"})
        assert response.status_code == 400

    def test_permission_denied_is_ignored(self, client, registered, sample_text_payload):
        with patch.object(registered, "check_permission", return_value=False):
            response = client.post(WEBHOOK, json=sample_text_payload)

        assert response.status_code == 200
        assert response.json() == {"status": "ignored", "messages": [], "should_reply": False}

    def test_channel_not_initialized(self, client, sample_text_payload):
        reset_transport_registry()
        response = client.post(WEBHOOK, json=sample_text_payload)
        assert response.status_code == 503


class TestHealthRoute:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health_reports_channel(self, client, registered):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["channel"]["details"]["mode"] == "enterprise-api"

    def test_health_without_channel(self, client):
        reset_transport_registry()
        assert client.get("/health").json()["status"] == "disabled"


@pytest.fixture
def webhook_env(monkeypatch):
    from wecomly.app.dependencies import get_settings

    monkeypatch.setenv("WECOMLY_WECOM_WEBHOOK_URL", "https://qyapi.weixin.qq.com/cgi-bin/webhook/send?key=k")
    monkeypatch.setenv("WECOMLY_WECOM_DM_POLICY", "open")
    monkeypatch.setenv("WECOMLY_WECOM_ALLOW_FROM", "zhangsan, lisi")
    monkeypatch.setenv("WECOMLY_WECOM_MAX_RETRIES", "5")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestServices:
    def test_settings_from_env(self, webhook_env):
        from wecomly.app.dependencies import get_settings

        settings = get_settings()
        assert settings.wecom.mode.value == "webhook"
        assert settings.wecom.allow_from == ["zhangsan", "lisi"]
        assert settings.wecom.max_retries == 5

    @pytest.mark.asyncio
    async def test_initialize_and_shutdown(self, webhook_env):
        from wecomly.app.dependencies import get_wecom_transport, initialize_services, shutdown_services
        from wecomly.pipeline.transports import TransportNotFoundError

        await initialize_services()
        try:
            transport = get_wecom_transport()
            assert transport.pipeline.mode.value == "webhook"
        finally:
            await shutdown_services()

        with pytest.raises(TransportNotFoundError):
            get_wecom_transport()
