"""
Transport Registry for wecomly.

Process-wide lookup of channel adapters by channel id. Adapters are
registered during application startup and resolved by webhook routes.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .protocol import TransportAdapter

logger = logging.getLogger(__name__)


class TransportNotFoundError(LookupError):
    """Raised when no adapter is registered for a channel id."""


class TransportRegistry:
    """
    Channel id -> adapter mapping.

    Example:
        registry = get_transport_registry()
        registry.register(WeComTransport(pipeline, config))
        transport = registry.get("wecom")
    """

    def __init__(self) -> None:
        self._adapters: dict[str, TransportAdapter] = {}

    def register(self, adapter: TransportAdapter) -> None:
        """Register an adapter, replacing any existing one for its channel."""
        channel_id = adapter.channel_id
        if channel_id in self._adapters:
            logger.warning(f"Replacing transport adapter: {channel_id}")
        self._adapters[channel_id] = adapter
        logger.info(f"Registered transport adapter: {channel_id}")

    def get(self, channel_id: str) -> TransportAdapter:
        """
        Look up an adapter.

        Raises:
            TransportNotFoundError: If nothing is registered for channel_id
        """
        try:
            return self._adapters[channel_id]
        except KeyError:
            available = ", ".join(self._adapters) or "(none)"
            raise TransportNotFoundError(
                f"No transport adapter registered for channel: {channel_id}. Available: {available}"
            ) from None

    def has(self, channel_id: str) -> bool:
        return channel_id in self._adapters

    @property
    def registered_channels(self) -> list[str]:
        return list(self._adapters)

    def unregister(self, channel_id: str) -> bool:
        """Remove an adapter; returns False if it was not registered."""
        if self._adapters.pop(channel_id, None) is None:
            return False
        logger.info(f"Unregistered transport adapter: {channel_id}")
        return True

    def clear(self) -> None:
        self._adapters.clear()


_registry: TransportRegistry | None = None


def get_transport_registry() -> TransportRegistry:
    """Global registry, created on first access."""
    global _registry
    if _registry is None:
        _registry = TransportRegistry()
    return _registry


def get_transport(channel_id: str) -> TransportAdapter:
    return get_transport_registry().get(channel_id)


def register_transport(adapter: TransportAdapter) -> None:
    get_transport_registry().register(adapter)


def reset_transport_registry() -> None:
    """Drop the global registry (tests and app shutdown)."""
    global _registry
    if _registry is not None:
        _registry.clear()
    _registry = None
