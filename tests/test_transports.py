"""
Tests for Transport Layer.

Tests the transport abstraction pattern including:
- SendResult contract
- TransportRegistry
- WeComTransport implementation
"""

import logging
from unittest.mock import MagicMock

import pytest

from wecomly.config import WeComConfig
from wecomly.integrations.wecom.errors import ErrorKind, VendorError
from wecomly.messages import Peer, PeerKind
from wecomly.pipeline import DeliveryPipeline, LoggingObserver
from wecomly.pipeline.transports import (
    SendResult,
    TransportAdapter,
    TransportNotFoundError,
    TransportRegistry,
    WeComTransport,
    get_transport,
    get_transport_registry,
    register_transport,
    reset_transport_registry,
)

# =============================================================================
# SendResult Tests
# =============================================================================


class TestSendResult:
    """Tests for SendResult dataclass."""

    def test_success_result(self):
        result = SendResult.ok("m1")
        assert result.success is True
        assert result.message_id == "m1"
        assert result.error is None
        assert result.attempted_at > 0

    def test_failure_result(self):
        result = SendResult.fail(ErrorKind.TARGET_NOT_FOUND, "UserID不存在", vendor_code=60111)
        assert result.success is False
        assert result.message_id is None
        assert result.error == "UserID不存在"
        assert result.vendor_code == 60111

    def test_is_immutable(self):
        result = SendResult.ok("m1")
        with pytest.raises(Exception):  # frozen dataclass
            result.success = False

    def test_to_dict(self):
        data = SendResult.fail(ErrorKind.RATE_LIMITED, "limited", vendor_code=45009, attempts=4).to_dict()
        assert data["error_kind"] == "rate_limited"
        assert data["vendor_code"] == 45009
        assert data["attempts"] == 4


# =============================================================================
# TransportRegistry Tests
# =============================================================================


def make_adapter(channel_id: str) -> MagicMock:
    adapter = MagicMock()
    adapter.channel_id = channel_id
    return adapter


class TestTransportRegistry:
    """Tests for TransportRegistry."""

    def setup_method(self):
        self.registry = TransportRegistry()

    def test_register_and_get(self):
        adapter = make_adapter("wecom")
        self.registry.register(adapter)

        assert self.registry.get("wecom") is adapter
        assert self.registry.has("wecom")
        assert self.registry.registered_channels == ["wecom"]

    def test_get_missing_raises(self):
        with pytest.raises(TransportNotFoundError, match="wecom"):
            self.registry.get("wecom")

    def test_register_replaces(self):
        first, second = make_adapter("wecom"), make_adapter("wecom")
        self.registry.register(first)
        self.registry.register(second)
        assert self.registry.get("wecom") is second

    def test_unregister(self):
        self.registry.register(make_adapter("wecom"))
        assert self.registry.unregister("wecom") is True
        assert self.registry.unregister("wecom") is False


class TestGlobalRegistry:
    """Tests for the global registry helpers."""

    def setup_method(self):
        reset_transport_registry()

    def teardown_method(self):
        reset_transport_registry()

    def test_register_transport(self):
        adapter = make_adapter("wecom")
        register_transport(adapter)
        assert get_transport("wecom") is adapter

    def test_reset_creates_fresh_registry(self):
        registry = get_transport_registry()
        register_transport(make_adapter("wecom"))
        reset_transport_registry()

        assert get_transport_registry() is not registry
        assert not get_transport_registry().has("wecom")


# =============================================================================
# WeComTransport Tests
# =============================================================================


@pytest.fixture
def transport(api_config, mock_client):
    pipeline = DeliveryPipeline(api_config, client=mock_client)
    return WeComTransport(pipeline, api_config)


def transport_for(config: WeComConfig, mock_client) -> WeComTransport:
    return WeComTransport(DeliveryPipeline(config, client=mock_client), config)


class TestWeComTransport:
    def test_implements_protocol(self, transport):
        assert isinstance(transport, TransportAdapter)
        assert transport.channel_id == "wecom"

    @pytest.mark.asyncio
    async def test_normalize_request(self, transport, sample_text_payload):
        message = await transport.normalize_request(MagicMock(), sample_text_payload)

        assert message.peer.id == "zhangsan"
        assert message.text == "@lisi 明天开会"

    @pytest.mark.asyncio
    async def test_normalize_missing_fields(self, transport):
        with pytest.raises(ValueError, match="Malformed"):
            await transport.normalize_request(MagicMock(), {"MsgType": "text"})

    @pytest.mark.asyncio
    async def test_normalize_non_object(self, transport):
        with pytest.raises(ValueError):
            await transport.normalize_request(MagicMock(), ["not", "a", "dict"])

    @pytest.mark.asyncio
    async def test_send_message(self, transport, mock_client):
        result = await transport.send_message("zhangsan", "收到")

        assert result.success
        envelope = mock_client.send_message.call_args.args[0]
        assert envelope.touser == "zhangsan"


class TestCheckPermission:
    def test_wildcard_allows_all(self, mock_client):
        config = WeComConfig(corpId="ww1", corpSecret="s", agentId=1, allowFrom=["*"])
        assert transport_for(config, mock_client).check_permission(Peer.group("9"))

    def test_allow_list_match(self, mock_client):
        config = WeComConfig(corpId="ww1", corpSecret="s", agentId=1, allowFrom=["9"])
        assert transport_for(config, mock_client).check_permission(Peer.group("9"))

    def test_pairing_allows_dm(self, transport):
        assert transport.check_permission(Peer.dm("anyone"))

    def test_pairing_rejects_unlisted_group(self, transport):
        assert not transport.check_permission(Peer(kind=PeerKind.GROUP, id="9"))

    def test_open_policy_allows_group(self, mock_client):
        config = WeComConfig(corpId="ww1", corpSecret="s", agentId=1, dmPolicy="open")
        assert transport_for(config, mock_client).check_permission(Peer.group("9"))


class TestUserInfo:
    @pytest.mark.asyncio
    async def test_user_info(self, transport, mock_client):
        mock_client.get_user.return_value = {
            "errcode": 0,
            "name": "张三",
            "mobile": "13800000000",
            "department": [1, 2],
        }

        info = await transport.get_user_info(Peer.dm("zhangsan"))

        assert info["name"] == "张三"
        assert info["phone"] == "13800000000"
        assert info["department"] == "1,2"
        mock_client.get_user.assert_awaited_once_with("zhangsan", "token-1")

    @pytest.mark.asyncio
    async def test_user_info_vendor_error(self, transport, mock_client):
        mock_client.get_user.return_value = {"errcode": 60111, "errmsg": "userid not found"}
        assert await transport.get_user_info(Peer.dm("ghost")) is None

    @pytest.mark.asyncio
    async def test_user_info_unavailable_in_webhook_mode(self, webhook_config, mock_client):
        transport = transport_for(webhook_config, mock_client)
        assert await transport.get_user_info(Peer.dm("x")) is None
        mock_client.get_user.assert_not_awaited()


class TestHealthCheck:
    @pytest.mark.asyncio
    async def test_healthy(self, transport):
        health = await transport.health_check()
        assert health["healthy"] is True
        assert health["details"]["mode"] == "enterprise-api"

    @pytest.mark.asyncio
    async def test_unhealthy(self, transport, mock_client):
        mock_client.get_token.side_effect = VendorError(40001, "invalid credential")
        health = await transport.health_check()
        assert health["healthy"] is False
        assert health["details"]["error"] == "连接失败"


# =============================================================================
# Logging observer
# =============================================================================


class TestLoggingObserver:
    @pytest.mark.asyncio
    async def test_emits_json_records(self, api_config, mock_client, caplog):
        observer = LoggingObserver(extra_context={"service": "test"})
        pipeline = DeliveryPipeline(api_config, client=mock_client, observer=observer)

        with caplog.at_level(logging.DEBUG, logger="wecomly.delivery"):
            await pipeline.send_text(Peer.dm("u1"), "hi")

        assert '"event": "delivery.result"' in caplog.text
        assert '"message_id": "m1"' in caplog.text
        assert '"service": "test"' in caplog.text
