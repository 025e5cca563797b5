"""
wecomly Integrations Layer.

Vendor API clients built on a shared async httpx base:

    integrations/
    ├── base.py           # Exception taxonomy and IntegrationClient
    └── wecom/            # WeCom enterprise API
        ├── client.py     # WeComClient (HTTP transport)
        ├── credentials.py
        ├── errors.py     # Vendor code classification
        ├── schemas.py    # Pydantic wire models
        └── translator.py
"""

from wecomly.integrations.base import (
    AuthenticationError,
    ConfigError,
    IntegrationClient,
    IntegrationConfig,
    IntegrationError,
    RateLimitError,
    TargetError,
    TransportError,
    TransportTimeout,
)

__all__ = [
    "AuthenticationError",
    "ConfigError",
    "IntegrationClient",
    "IntegrationConfig",
    "IntegrationError",
    "RateLimitError",
    "TargetError",
    "TransportError",
    "TransportTimeout",
]
