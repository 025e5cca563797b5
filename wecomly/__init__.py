"""
wecomly - WeCom channel adapter for automated agents.

Lets an agent exchange messages with WeCom (enterprise WeChat) through
its HTTP API or a group-robot webhook:

- **Credential lifecycle**: single-flight access token refresh
- **Translation**: generic messages <-> vendor envelopes
- **Reliable delivery**: error classification, retry with backoff
- **Media staging**: upload-then-send for images, voice, video and files

Quick Start:
    >>> from wecomly import DeliveryPipeline, Peer, WeComConfig
    >>>
    >>> config = WeComConfig(corpId="ww123", corpSecret="...", agentId=1000001)
    >>> pipeline = DeliveryPipeline.from_config(config)
    >>> result = await pipeline.send_text(Peer.dm("zhangsan"), "你好")
    >>> result.success
    True
"""

__version__ = "0.1.0"

from wecomly.config import WeComConfig
from wecomly.messages import InboundMessage, MediaItem, OutboundMessage, Peer, PeerKind
from wecomly.pipeline import DeliveryPipeline, SendResult

__all__ = [
    "DeliveryPipeline",
    "InboundMessage",
    "MediaItem",
    "OutboundMessage",
    "Peer",
    "PeerKind",
    "SendResult",
    "WeComConfig",
]
