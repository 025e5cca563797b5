"""
Pytest configuration and fixtures for wecomly tests.
"""

import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add the repository root to path for imports
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from wecomly.config import WeComConfig
from wecomly.integrations.wecom.client import WeComClient
from wecomly.integrations.wecom.schemas import SendResponse, TokenResponse


@pytest.fixture
def api_config():
    """Enterprise-API mode configuration."""
    return WeComConfig(corpId="ww-test-corp", corpSecret="test-secret", agentId=1000001)


@pytest.fixture
def webhook_config():
    """Webhook mode configuration."""
    return WeComConfig(
        webhookUrl="https://qyapi.weixin.qq.com/cgi-bin/webhook/send?key=test-key",
        dmPolicy="open",
    )


@pytest.fixture
def mock_client():
    """WeComClient with every network method mocked."""
    client = MagicMock(spec=WeComClient)
    client.get_token = AsyncMock(return_value=TokenResponse(access_token="token-1", expires_in=7200))
    client.send_message = AsyncMock(return_value=SendResponse(errcode=0, errmsg="ok", msgid="m1"))
    client.post_webhook = AsyncMock(return_value=SendResponse(errcode=0, errmsg="ok"))
    client.upload_media = AsyncMock()
    client.probe = AsyncMock(return_value=True)
    client.get_user = AsyncMock()
    client.close = AsyncMock()
    return client


@pytest.fixture
def sample_text_payload():
    """Inbound text push as delivered by the vendor."""
    return {
        "ToUserName": "ww-test-corp",
        "FromUserName": "zhangsan",
        "CreateTime": 1700000000,
        "MsgType": "text",
        "Content": "@lisi 明天开会",
        "MsgId": 1234567890123456,
        "AgentID": 1000001,
    }
