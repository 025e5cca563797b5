"""
WeCom Transport Adapter for wecomly.

Implements the TransportAdapter protocol on top of a DeliveryPipeline:
inbound push payloads become InboundMessage, outbound text goes through
the pipeline's retry/classification loop.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from wecomly.config import ChannelMode, DmPolicy
from wecomly.integrations.base import ConfigError, TransportError
from wecomly.integrations.wecom.errors import VendorError
from wecomly.messages import Peer, PeerKind

from .protocol import SendResult

if TYPE_CHECKING:
    from starlette.requests import Request

    from wecomly.config import WeComConfig
    from wecomly.messages import InboundMessage

    from ..delivery import DeliveryPipeline

logger = logging.getLogger(__name__)


class WeComTransport:
    """
    WeCom channel adapter.

    Example:
        pipeline = DeliveryPipeline.from_config(config)
        transport = WeComTransport(pipeline, config)
        register_transport(transport)

        message = await transport.normalize_request(request)
        if transport.check_permission(message.peer):
            await transport.send_message(message.peer.id, "收到")
    """

    def __init__(self, pipeline: DeliveryPipeline, config: WeComConfig):
        self._pipeline = pipeline
        self._config = config

    @property
    def channel_id(self) -> str:
        return "wecom"

    @property
    def pipeline(self) -> DeliveryPipeline:
        return self._pipeline

    async def normalize_request(
        self,
        request: Request,
        payload: dict[str, Any] | None = None,
    ) -> InboundMessage:
        """
        Convert a WeCom push (already XML-decoded to JSON) into an InboundMessage.

        Raises:
            ValueError: If the payload is not a JSON object or misses
                required vendor fields
        """
        if payload is None:
            payload = await request.json()
        if not isinstance(payload, dict):
            raise ValueError("WeCom payload must be a JSON object")

        try:
            message = self._pipeline.translator.from_payload(payload)
        except ValidationError as e:
            raise ValueError(f"Malformed WeCom payload: {e.error_count()} invalid field(s)") from e

        logger.info(f"[wecom] Received message {message.id} from {message.peer.id}")
        return message

    async def send_message(self, recipient: str, message: str) -> SendResult:
        """Send text to a single user."""
        return await self._pipeline.send_text(Peer.dm(recipient), message)

    def check_permission(self, peer: Peer) -> bool:
        """
        Whether a peer may talk to the agent.

        Allowed when ``allow_from`` contains ``*`` or the peer id, when the
        policy is pairing and the peer is a DM, or when the policy is open.
        """
        allow_from = self._config.allow_from
        if "*" in allow_from or peer.id in allow_from:
            return True
        if self._config.dm_policy == DmPolicy.PAIRING and peer.kind == PeerKind.DM:
            return True
        return self._config.dm_policy == DmPolicy.OPEN

    async def get_user_info(self, peer: Peer) -> dict[str, Any] | None:
        """
        Directory profile for a peer, or None in webhook mode or on failure.
        """
        if self._config.mode != ChannelMode.ENTERPRISE_API:
            return None
        try:
            token = await self._pipeline.credentials.get_token()
            data = await self._pipeline.client.get_user(peer.id, token or "")
        except (ConfigError, VendorError, TransportError) as e:
            logger.warning(f"[wecom] User lookup failed for {peer.id}: {e}")
            return None

        if data.get("errcode", 0) != 0:
            logger.warning(f"[wecom] User lookup failed for {peer.id}: {data.get('errmsg')}")
            return None
        return {
            "id": peer.id,
            "name": data.get("name") or peer.id,
            "avatar": data.get("avatar"),
            "email": data.get("email"),
            "phone": data.get("mobile"),
            "department": ",".join(str(d) for d in data.get("department") or []),
        }

    async def health_check(self) -> dict[str, Any]:
        """Channel health: ``{"healthy": bool, "details": {...}}``."""
        if await self._pipeline.check_connection():
            return {
                "healthy": True,
                "details": {
                    "mode": self._config.mode.value,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
            }
        return {"healthy": False, "details": {"mode": self._config.mode.value, "error": "连接失败"}}
