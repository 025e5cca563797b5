"""
wecomly Transport Layer.

Channel adapters that sit between inbound webhooks and the delivery
pipeline.

Core Components:
- TransportAdapter: Protocol defining the adapter interface
- SendResult: Result contract of every outbound send
- TransportRegistry: Global registry for adapter lookup

Built-in Transports:
- WeComTransport: WeCom enterprise API / group-robot webhook

Usage:
    # At app startup
    transport = WeComTransport(pipeline, settings.wecom)
    register_transport(transport)

    # In webhook handler
    transport = get_transport("wecom")
    message = await transport.normalize_request(request, payload)
"""

from .protocol import SendResult, TransportAdapter
from .registry import (
    TransportNotFoundError,
    TransportRegistry,
    get_transport,
    get_transport_registry,
    register_transport,
    reset_transport_registry,
)
from .wecom import WeComTransport

__all__ = [
    "SendResult",
    # Protocol
    "TransportAdapter",
    "TransportNotFoundError",
    # Registry
    "TransportRegistry",
    # Implementations
    "WeComTransport",
    "get_transport",
    "get_transport_registry",
    "register_transport",
    "reset_transport_registry",
]
