"""
Transport Adapter Protocol for wecomly.

Defines the interface for bidirectional message transport adapters.
Adapters normalize incoming webhook requests into generic messages and
send outgoing messages, returning a stable SendResult contract.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from starlette.requests import Request

    from ...integrations.wecom.errors import ErrorKind
    from ...messages import InboundMessage


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class SendResult:
    """
    Result of sending a message via transport.

    Attributes:
        success: Whether the message was sent successfully
        message_id: Vendor message identifier (on success)
        attempted_at: Epoch milliseconds of the final attempt
        error_kind: Classification of the failure
        vendor_code: Vendor errcode (on vendor failures)
        message: Human description of the failure
        recoverable: Whether the failure class is recoverable in principle
        attempts: Number of send attempts made
    """

    success: bool
    message_id: str | None = None
    attempted_at: int = field(default_factory=_now_ms)
    error_kind: ErrorKind | None = None
    vendor_code: int | None = None
    message: str | None = None
    recoverable: bool = False
    attempts: int = 1

    @classmethod
    def ok(cls, message_id: str, *, attempts: int = 1) -> SendResult:
        return cls(success=True, message_id=message_id, attempts=attempts)

    @classmethod
    def fail(
        cls,
        error_kind: ErrorKind,
        message: str,
        *,
        vendor_code: int | None = None,
        recoverable: bool = False,
        attempts: int = 1,
    ) -> SendResult:
        return cls(
            success=False,
            error_kind=error_kind,
            vendor_code=vendor_code,
            message=message,
            recoverable=recoverable,
            attempts=attempts,
        )

    @property
    def error(self) -> str | None:
        """Failure message (None on success)."""
        return None if self.success else self.message

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message_id": self.message_id,
            "attempted_at": self.attempted_at,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "vendor_code": self.vendor_code,
            "message": self.message,
            "recoverable": self.recoverable,
            "attempts": self.attempts,
        }


@runtime_checkable
class TransportAdapter(Protocol):
    """
    Bidirectional transport adapter for message channels.

    Implementations handle:
    - Ingress: Normalizing webhook requests to InboundMessage
    - Egress: Sending messages back to users

    Example usage:
        # Register transport at app startup
        register_transport(WeComTransport(pipeline))

        # In webhook handler
        transport = get_transport("wecom")
        message = await transport.normalize_request(request)

        # Reply
        result = await transport.send_message(message.peer.id, "收到")
    """

    @property
    def channel_id(self) -> str:
        """
        Unique identifier for this transport channel.

        Used to look up the transport in the registry.
        """
        ...

    async def normalize_request(
        self,
        request: Request,
        payload: dict[str, Any] | None = None,
    ) -> InboundMessage:
        """
        Convert an incoming webhook request to an InboundMessage.

        Args:
            request: The incoming HTTP request
            payload: Pre-parsed JSON body (optional)

        Raises:
            ValueError: If the payload is malformed
        """
        ...

    async def send_message(
        self,
        recipient: str,
        message: str,
    ) -> SendResult:
        """
        Send a text message to a recipient.

        Args:
            recipient: Recipient identifier (user id)
            message: Message content to send

        Returns:
            SendResult with success status and message ID
        """
        ...
