"""
Tests for channel configuration.
"""

import pytest
from pydantic import ValidationError

from wecomly.config import AppSettings, ChannelMode, DmPolicy, WeComConfig, validate_config
from wecomly.integrations.base import ConfigError


class TestWeComConfig:
    def test_defaults(self):
        config = WeComConfig(corpId="ww1", corpSecret="s", agentId=1)

        assert config.dm_policy == DmPolicy.PAIRING
        assert config.allow_from == []
        assert config.token_refresh_interval == 3600
        assert config.max_retries == 3
        assert config.timeout_ms == 10000
        assert config.timeout_seconds == 10.0

    def test_camel_and_snake_case(self):
        camel = WeComConfig(corpId="ww1", corpSecret="s", agentId=1, maxRetries=5)
        snake = WeComConfig(corp_id="ww1", corp_secret="s", agent_id=1, max_retries=5)
        assert camel.max_retries == snake.max_retries == 5

    def test_secret_not_in_repr(self):
        config = WeComConfig(corpId="ww1", corpSecret="very-secret", agentId=1)
        assert "very-secret" not in repr(config)

    def test_mode(self):
        assert WeComConfig(corpId="ww1", corpSecret="s", agentId=1).mode == ChannelMode.ENTERPRISE_API
        assert WeComConfig(webhookUrl="https://hook").mode == ChannelMode.WEBHOOK

    def test_negative_retries_rejected(self):
        with pytest.raises(ValidationError):
            WeComConfig(maxRetries=-1)


class TestValidateConfig:
    def test_valid_enterprise(self):
        assert validate_config(WeComConfig(corpId="ww1", corpSecret="s", agentId=1000001)) == []

    def test_valid_webhook(self):
        assert validate_config(WeComConfig(webhookUrl="https://qyapi.weixin.qq.com/x")) == []

    def test_neither_mode(self):
        errors = validate_config(WeComConfig())
        assert len(errors) == 1
        assert "required" in errors[0]

    def test_both_modes(self):
        config = WeComConfig(corpId="ww1", corpSecret="s", agentId=1, webhookUrl="https://hook")
        assert any("mutually exclusive" in e for e in validate_config(config))

    def test_incomplete_enterprise(self):
        errors = validate_config(WeComConfig(corpId="ww1"))
        assert "corpSecret must not be empty" in errors
        assert "agentId must be a positive integer" in errors

    def test_blank_corp_id(self):
        errors = validate_config(WeComConfig(corpId="   ", corpSecret="s", agentId=1))
        assert "corpId must not be empty" in errors

    def test_bad_webhook_url(self):
        errors = validate_config(WeComConfig(webhookUrl="ftp://hook"))
        assert any("webhookUrl" in e for e in errors)

    def test_disabled_not_validated(self):
        assert validate_config(WeComConfig(enabled=False)) == []

    def test_require_valid_raises(self):
        with pytest.raises(ConfigError):
            WeComConfig().require_valid()


class TestAppSettings:
    def test_channel_disabled_by_default(self):
        settings = AppSettings()
        assert settings.service_name == "wecomly"
        assert not settings.wecom.enabled
