"""
Configuration Schemas for wecomly.

Pydantic models for the channel configuration consumed by the delivery
core, and for process-level application settings.

Security:
    Sensitive fields use SecretStr to prevent accidental logging
    of credentials. Access the value with `.get_secret_value()`.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from wecomly.integrations.base import ConfigError

DEFAULT_TOKEN_REFRESH_INTERVAL = 3600
DEFAULT_MAX_RETRIES = 3
DEFAULT_TIMEOUT_MS = 10000


class DmPolicy(str, Enum):
    """Direct-message access policy."""

    PAIRING = "pairing"
    OPEN = "open"


class ChannelMode(str, Enum):
    ENTERPRISE_API = "enterprise-api"
    WEBHOOK = "webhook"


class WeComConfig(BaseModel):
    """
    WeCom channel configuration.

    Two mutually exclusive credential modes:
    - Enterprise API: corp_id + corp_secret + agent_id
    - Webhook: webhook_url (group robot URL with embedded key)

    Accepts both snake_case names and the host's camelCase keys.
    """

    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = True

    # Enterprise API mode
    corp_id: str | None = Field(None, alias="corpId")
    corp_secret: SecretStr | None = Field(None, alias="corpSecret")
    agent_id: int | None = Field(None, alias="agentId")

    # Webhook mode
    webhook_url: str | None = Field(None, alias="webhookUrl")

    # Access control
    dm_policy: DmPolicy = Field(DmPolicy.PAIRING, alias="dmPolicy")
    allow_from: list[str] = Field(default_factory=list, alias="allowFrom")

    # Delivery
    proxy: str | None = None
    message_prefix: str | None = Field(None, alias="messagePrefix")
    token_refresh_interval: float = Field(DEFAULT_TOKEN_REFRESH_INTERVAL, alias="tokenRefreshInterval", gt=0)
    max_retries: int = Field(DEFAULT_MAX_RETRIES, alias="maxRetries", ge=0)
    timeout_ms: int = Field(DEFAULT_TIMEOUT_MS, alias="timeoutMs", gt=0)

    @property
    def has_api_credentials(self) -> bool:
        return bool(self.corp_id and self.corp_secret and self.corp_secret.get_secret_value())

    @property
    def mode(self) -> ChannelMode:
        """Credential mode. Webhook only when no corp credentials are set."""
        if self.webhook_url and not self.has_api_credentials:
            return ChannelMode.WEBHOOK
        return ChannelMode.ENTERPRISE_API

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

    def require_valid(self) -> None:
        """Raise ConfigError when validate_config reports problems."""
        errors = validate_config(self)
        if errors:
            raise ConfigError("; ".join(errors))


def validate_config(config: WeComConfig) -> list[str]:
    """
    Validate a channel configuration.

    Returns:
        List of error messages (empty when valid or disabled)
    """
    errors: list[str] = []

    if not config.enabled:
        return errors

    secret = config.corp_secret.get_secret_value() if config.corp_secret else ""
    has_any_api = bool(config.corp_id or secret or config.agent_id)
    has_webhook = bool(config.webhook_url)

    if not has_any_api and not has_webhook:
        errors.append("Either enterprise API credentials (corpId + corpSecret + agentId) or webhookUrl is required")

    if has_any_api and has_webhook:
        errors.append("Enterprise API credentials and webhookUrl are mutually exclusive; configure one mode")

    if has_any_api:
        if not (config.corp_id or "").strip():
            errors.append("corpId must not be empty")
        if not secret.strip():
            errors.append("corpSecret must not be empty")
        if not config.agent_id or config.agent_id <= 0:
            errors.append("agentId must be a positive integer")

    if has_webhook and not config.webhook_url.startswith("http"):
        errors.append("webhookUrl must be a valid http(s) URL")

    return errors


class AppSettings(BaseModel):
    """
    Application settings model.

    Used for type-safe settings access.

    Security:
        Secrets use SecretStr to prevent accidental logging.
    """

    # Service identity
    service_name: str = "wecomly"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Channel
    wecom: WeComConfig = Field(default_factory=lambda: WeComConfig(enabled=False))
