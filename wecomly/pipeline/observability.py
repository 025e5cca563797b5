"""
Observability for wecomly delivery.

Delivery failures are always returned to the caller as a SendResult;
this module adds a separate hook so state transitions and outcomes can
also be logged or exported without the caller parsing log streams.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .transports.protocol import SendResult

logger = logging.getLogger(__name__)


class DeliveryState(str, Enum):
    """States of a single send attempt."""

    BUILDING = "building"
    SENDING = "sending"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@runtime_checkable
class DeliveryObserver(Protocol):
    """
    Hook notified on every delivery state transition and final result.

    Implementations must not raise; the pipeline logs and ignores
    observer errors so that observability never changes delivery.
    """

    def on_state(self, state: DeliveryState, **context: Any) -> None:
        ...

    def on_result(self, result: SendResult, **context: Any) -> None:
        ...


class NullObserver:
    """Observer that does nothing."""

    def on_state(self, state: DeliveryState, **context: Any) -> None:
        pass

    def on_result(self, result: SendResult, **context: Any) -> None:
        pass


@dataclass
class LoggingObserver:
    """
    Observer that emits JSON-formatted log records.

    Example output:
        {"timestamp": "2026-01-02T10:30:00+00:00", "event": "delivery.state",
         "state": "retrying", "attempt": 1, "vendor_code": 45009}
    """

    name: str = "wecomly.delivery"
    extra_context: dict[str, Any] = field(default_factory=dict)
    _python_logger: logging.Logger = field(init=False)

    def __post_init__(self) -> None:
        self._python_logger = logging.getLogger(self.name)

    def _emit(self, level: int, event: str, context: dict[str, Any]) -> None:
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": event,
            **self.extra_context,
            **context,
        }
        self._python_logger.log(level, json.dumps(record, default=str, ensure_ascii=False))

    def on_state(self, state: DeliveryState, **context: Any) -> None:
        level = logging.WARNING if state == DeliveryState.RETRYING else logging.DEBUG
        self._emit(level, "delivery.state", {"state": state.value, **context})

    def on_result(self, result: SendResult, **context: Any) -> None:
        level = logging.INFO if result.success else logging.ERROR
        self._emit(level, "delivery.result", {**result.to_dict(), **context})


@dataclass
class RecordingObserver:
    """Observer that keeps every notification in memory (tests, diagnostics)."""

    states: list[tuple[DeliveryState, dict[str, Any]]] = field(default_factory=list)
    results: list[SendResult] = field(default_factory=list)

    def on_state(self, state: DeliveryState, **context: Any) -> None:
        self.states.append((state, context))

    def on_result(self, result: SendResult, **context: Any) -> None:
        self.results.append(result)

    @property
    def state_sequence(self) -> list[DeliveryState]:
        return [state for state, _ in self.states]
