"""
Retry and Backoff Policy for wecomly delivery.

Provides:
- BackoffStrategy: Delay calculation between retries
- RetryPolicy: How many retries, how long to wait
- RetryBudget: Retry counter, scoped per call or shared per pipeline

Design Philosophy:
- Composable backoff strategies
- Retry decisions driven by error classification, not exception type
- Delays awaited with asyncio.sleep (injectable for tests)
"""

from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


# =============================================================================
# Backoff Strategies
# =============================================================================


class BackoffStrategy(ABC):
    """
    Abstract base for backoff delay calculation.

    Backoff strategies determine how long to wait between retry attempts.
    """

    @abstractmethod
    def get_delay(self, attempt: int) -> float:
        """
        Calculate delay before next retry attempt.

        Args:
            attempt: Retry number (1-indexed, first retry is attempt 1)

        Returns:
            Delay in seconds before next attempt
        """
        ...


@dataclass
class NoBackoff(BackoffStrategy):
    """
    No delay between retries.

    Use for:
    - Testing
    - Operations that should fail fast
    """

    def get_delay(self, attempt: int) -> float:
        return 0.0


@dataclass
class ExponentialBackoff(BackoffStrategy):
    """
    Exponentially increasing delay between retries.

    delay = base * (multiplier ^ (attempt - 1)), capped at max_delay

    With optional jitter to prevent thundering herd.

    Example:
        backoff = ExponentialBackoff(base=2.0, multiplier=2.0, max_delay=10.0, jitter=False)
        # Retry 1: 2s, Retry 2: 4s, Retry 3: 8s, Retry 4+: 10s
    """

    base: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 60.0
    jitter: bool = True
    jitter_factor: float = 0.25  # +/- 25%

    def get_delay(self, attempt: int) -> float:
        delay = self.base * (self.multiplier ** (attempt - 1))
        delay = min(delay, self.max_delay)

        if self.jitter:
            jitter_range = delay * self.jitter_factor
            delay += random.uniform(-jitter_range, jitter_range)
            delay = max(0, delay)  # Ensure non-negative

        return delay


def vendor_backoff() -> ExponentialBackoff:
    """min(1000 * 2^n, 10000) ms for the n-th retry."""
    return ExponentialBackoff(base=2.0, multiplier=2.0, max_delay=10.0, jitter=False)


# =============================================================================
# Retry Policy
# =============================================================================


class RetryScope(str, Enum):
    """
    Lifetime of the retry counter.

    PER_CALL: each send() starts with a fresh budget.
    SHARED: one counter per pipeline instance, reset only by a successful
        send, so an unrelated message can inherit an exhausted budget.
    """

    PER_CALL = "per_call"
    SHARED = "shared"


@dataclass
class RetryPolicy:
    """
    Configures retry behavior for delivery.

    Example:
        policy = RetryPolicy(max_retries=3, backoff=vendor_backoff())
    """

    max_retries: int = 3
    backoff: BackoffStrategy = field(default_factory=vendor_backoff)
    scope: RetryScope = RetryScope.PER_CALL

    def get_delay(self, attempt: int) -> float:
        """Get delay before the given retry."""
        return self.backoff.get_delay(attempt)

    def new_budget(self) -> RetryBudget:
        return RetryBudget(max_retries=self.max_retries)


@dataclass
class RetryBudget:
    """Counts retries against a maximum."""

    max_retries: int
    used: int = 0

    @property
    def exhausted(self) -> bool:
        return self.used >= self.max_retries

    def consume(self) -> int:
        """Take one retry; returns the retry number (1-indexed)."""
        self.used += 1
        return self.used

    def reset(self) -> None:
        self.used = 0


# Default policies
NO_RETRY = RetryPolicy(max_retries=0, backoff=NoBackoff())

DEFAULT_RETRY = RetryPolicy(max_retries=3)


__all__ = [
    "DEFAULT_RETRY",
    "NO_RETRY",
    "BackoffStrategy",
    "ExponentialBackoff",
    "NoBackoff",
    "RetryBudget",
    "RetryPolicy",
    "RetryScope",
    "vendor_backoff",
]
