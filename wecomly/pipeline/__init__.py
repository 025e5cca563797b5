"""
wecomly delivery pipeline.

Outbound delivery with error classification, retry/backoff and an
observability hook, plus the channel transport layer.
"""

from .delivery import DeliveryPipeline
from .observability import (
    DeliveryObserver,
    DeliveryState,
    LoggingObserver,
    NullObserver,
    RecordingObserver,
)
from .retry import (
    DEFAULT_RETRY,
    NO_RETRY,
    BackoffStrategy,
    ExponentialBackoff,
    NoBackoff,
    RetryBudget,
    RetryPolicy,
    RetryScope,
    vendor_backoff,
)
from .transports import SendResult

__all__ = [
    "DEFAULT_RETRY",
    "NO_RETRY",
    "BackoffStrategy",
    "DeliveryObserver",
    "DeliveryPipeline",
    "DeliveryState",
    "ExponentialBackoff",
    "LoggingObserver",
    "NoBackoff",
    "NullObserver",
    "RecordingObserver",
    "RetryBudget",
    "RetryPolicy",
    "RetryScope",
    "SendResult",
    "vendor_backoff",
]
