"""
Delivery Pipeline for wecomly.

Sends outbound messages to WeCom and turns every outcome into a
SendResult. Per attempt the pipeline moves through

    BUILDING -> SENDING -> SUCCEEDED
                        -> RETRYING -> SENDING ...
                        -> FAILED

Vendor and transport failures are classified (see
``integrations.wecom.errors``): auth failures invalidate the token and
retry, rate/quota limits and transient transport errors retry with
backoff, and unknown recipients or unmapped codes fail at once.
Exceptions never escape ``send()``; callers inspect the result.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from wecomly.config import ChannelMode, WeComConfig, validate_config
from wecomly.integrations.base import (
    AuthenticationError,
    ConfigError,
    RateLimitError,
    TargetError,
    TransportError,
)
from wecomly.integrations.wecom.client import WeComClient, WeComClientConfig
from wecomly.integrations.wecom.credentials import CredentialManager
from wecomly.integrations.wecom.errors import (
    AUTH_KINDS,
    ERROR_DESCRIPTIONS,
    ErrorKind,
    VendorError,
    is_retryable,
)
from wecomly.integrations.wecom.schemas import MediaKind, MessageKind, SendResponse, VendorSendEnvelope
from wecomly.integrations.wecom.translator import DEFAULT_CARD_BUTTON, MessageTranslator
from wecomly.messages import MediaItem, MediaType, OutboundMessage, Peer, ReplyRef

from .observability import DeliveryObserver, DeliveryState, NullObserver
from .retry import RetryPolicy, RetryScope
from .transports.protocol import SendResult

logger = logging.getLogger(__name__)

_UPLOAD_KINDS: dict[str, MediaKind] = {
    MediaType.IMAGE.value: MediaKind.IMAGE,
    MediaType.AUDIO.value: MediaKind.VOICE,
    "voice": MediaKind.VOICE,
    MediaType.VIDEO.value: MediaKind.VIDEO,
    MediaType.FILE.value: MediaKind.FILE,
}

_SENT_AS: dict[MediaKind, MediaType] = {
    MediaKind.IMAGE: MediaType.IMAGE,
    MediaKind.VOICE: MediaType.AUDIO,
    MediaKind.VIDEO: MediaType.VIDEO,
    MediaKind.FILE: MediaType.FILE,
}

_WEBHOOK_KINDS = frozenset({MessageKind.TEXT, MessageKind.MARKDOWN, MessageKind.NEWS})


class DeliveryPipeline:
    """
    Reliable outbound delivery to one WeCom channel.

    Example:
        pipeline = DeliveryPipeline.from_config(config)
        pipeline.start()
        result = await pipeline.send_text(Peer.dm("zhangsan"), "你好")
        if not result.success:
            logger.warning(f"{result.error_kind}: {result.message}")
        await pipeline.close()
    """

    def __init__(
        self,
        config: WeComConfig,
        *,
        client: WeComClient | None = None,
        credentials: CredentialManager | None = None,
        translator: MessageTranslator | None = None,
        policy: RetryPolicy | None = None,
        observer: DeliveryObserver | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._config = config
        self._owns_client = client is None
        self._client = client or WeComClient(
            WeComClientConfig(timeout=config.timeout_seconds, proxy=config.proxy)
        )
        self._credentials = credentials or CredentialManager.from_config(config, self._client)
        self._translator = translator or MessageTranslator(config.agent_id or 0, config.message_prefix)
        self._policy = policy or RetryPolicy(max_retries=config.max_retries)
        self._observer = observer or NullObserver()
        self._sleep = sleep

        self._config_errors = validate_config(config)
        self._shared_budget = self._policy.new_budget()

    @classmethod
    def from_config(cls, config: WeComConfig, **kwargs: Any) -> DeliveryPipeline:
        """Build a pipeline, raising ConfigError if the config is invalid."""
        config.require_valid()
        return cls(config, **kwargs)

    @property
    def mode(self) -> ChannelMode:
        return self._config.mode

    @property
    def client(self) -> WeComClient:
        return self._client

    @property
    def credentials(self) -> CredentialManager:
        return self._credentials

    @property
    def translator(self) -> MessageTranslator:
        return self._translator

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Start background token refresh (enterprise-API mode only)."""
        self._credentials.start()

    async def close(self) -> None:
        """Stop refresh, discard the token, close the owned HTTP client."""
        await self._credentials.close()
        if self._owns_client:
            await self._client.close()

    async def check_connection(self) -> bool:
        """
        Probe the configured endpoint.

        Webhook mode issues a HEAD to the webhook URL; enterprise-API mode
        fetches a fresh access token.
        """
        try:
            if self.mode == ChannelMode.WEBHOOK:
                return await self._client.probe(self._config.webhook_url)
            await self._credentials.refresh()
            return True
        except (ConfigError, VendorError, TransportError) as e:
            logger.warning(f"[wecom] Connection check failed: {e}")
            return False

    # =========================================================================
    # Sending
    # =========================================================================

    async def send(self, message: OutboundMessage) -> SendResult:
        """
        Deliver a generic outbound message.

        Returns:
            SendResult; never raises for configuration, vendor or
            transport failures
        """
        self._notify_state(DeliveryState.BUILDING, peer=message.peer.id)
        if self._config_errors:
            return self._config_failure("; ".join(self._config_errors))

        if self.mode == ChannelMode.WEBHOOK:
            if message.media:
                return self._config_failure("Media messages require enterprise-api mode")
            text = self._translator.prepare_text(message.text or "", message.reply_to)
            return await self._deliver_webhook({"msgtype": "text", "text": {"content": text}})

        try:
            envelope = self._translator.to_envelope(message)
        except TargetError as e:
            return self._target_failure(e)
        return await self._deliver(envelope)

    async def send_text(self, peer: Peer, text: str, reply_to: ReplyRef | None = None) -> SendResult:
        return await self.send(OutboundMessage(peer=peer, text=text, reply_to=reply_to))

    async def send_to_department(self, department_ids: Sequence[int | str], text: str) -> SendResult:
        """Send text to one or more departments (joined with ``|``)."""
        return await self._send_built(lambda: self._translator.build_department_envelope(department_ids, text))

    async def send_card(
        self,
        peer: Peer,
        title: str,
        description: str,
        url: str,
        btntxt: str = DEFAULT_CARD_BUTTON,
    ) -> SendResult:
        return await self._send_built(
            lambda: self._translator.build_card_envelope(peer, title, description, url, btntxt)
        )

    async def send_news(self, peer: Peer, articles: Sequence[dict[str, str]]) -> SendResult:
        return await self._send_built(lambda: self._translator.build_news_envelope(peer, articles))

    async def send_markdown(self, peer: Peer, content: str) -> SendResult:
        return await self._send_built(lambda: self._translator.build_markdown_envelope(peer, content))

    async def send_media(
        self,
        peer: Peer,
        items: Sequence[tuple[MediaType | str, bytes, str]],
        caption: str | None = None,
    ) -> SendResult:
        """
        Upload the first media item, then send it.

        Args:
            peer: Recipient
            items: (kind, data, filename) tuples; only the first is sent
            caption: Optional caption (used as the video description)

        Raises:
            ValueError: If items is empty
        """
        if not items:
            raise ValueError("send_media requires at least one media item")

        self._notify_state(DeliveryState.BUILDING, peer=peer.id)
        if self._config_errors:
            return self._config_failure("; ".join(self._config_errors))
        if self.mode == ChannelMode.WEBHOOK:
            return self._config_failure("Media messages require enterprise-api mode")

        kind, data, filename = items[0]
        label = kind.value if isinstance(kind, MediaType) else str(kind)
        upload_kind = _UPLOAD_KINDS.get(label, MediaKind.FILE)

        # Upload is a single attempt; failures are returned, not retried.
        try:
            token = await self._credentials.get_token()
            uploaded = await self._client.upload_media(upload_kind, data, filename, token or "")
        except ConfigError as e:
            return self._config_failure(str(e))
        except (VendorError, TransportError) as e:
            logger.error(f"[wecom] Media upload failed for {filename}: {e}")
            if self._classify(e) in AUTH_KINDS:
                self._credentials.invalidate()
            return self._finish(self._failure(e, attempts=1))

        message = OutboundMessage(
            peer=peer,
            media=[MediaItem(kind=_SENT_AS[upload_kind], content_ref=uploaded.media_id, caption=caption)],
        )
        return await self.send(message)

    async def _send_built(self, build: Callable[[], VendorSendEnvelope]) -> SendResult:
        self._notify_state(DeliveryState.BUILDING)
        if self._config_errors:
            return self._config_failure("; ".join(self._config_errors))

        try:
            envelope = build()
        except TargetError as e:
            return self._target_failure(e)

        if self.mode == ChannelMode.WEBHOOK:
            if envelope.msgtype not in _WEBHOOK_KINDS:
                return self._config_failure(f"{envelope.msgtype.value} messages require enterprise-api mode")
            kind = envelope.msgtype.value
            return await self._deliver_webhook({"msgtype": kind, kind: envelope.body})
        return await self._deliver(envelope)

    # =========================================================================
    # Retry loop
    # =========================================================================

    async def _deliver(self, envelope: VendorSendEnvelope) -> SendResult:
        async def send_once() -> SendResponse:
            token = await self._credentials.get_token()
            return await self._client.send_message(envelope, token or "")

        return await self._run(send_once, target=",".join(envelope.targets.values()), msgtype=envelope.msgtype.value)

    async def _deliver_webhook(self, payload: dict[str, Any]) -> SendResult:
        async def send_once() -> SendResponse:
            return await self._client.post_webhook(self._config.webhook_url, payload)

        return await self._run(send_once, target="webhook", msgtype=payload["msgtype"])

    async def _run(self, send_once: Callable[[], Awaitable[SendResponse]], **context: Any) -> SendResult:
        budget = self._shared_budget if self._policy.scope == RetryScope.SHARED else self._policy.new_budget()
        attempts = 0

        while True:
            attempts += 1
            self._notify_state(DeliveryState.SENDING, attempt=attempts, **context)

            try:
                response = await send_once()
            except ConfigError as e:
                return self._config_failure(str(e), attempts=attempts)
            except (VendorError, TransportError) as e:
                error: VendorError | TransportError = e
            else:
                if response.ok:
                    budget.reset()
                    logger.info(f"[wecom] Message sent to {context.get('target')}: msgid={response.msgid}")
                    return self._finish(SendResult.ok(response.msgid or "", attempts=attempts))
                error = VendorError(response.errcode, response.errmsg)

            kind = self._classify(error)
            if kind in AUTH_KINDS:
                self._credentials.invalidate()

            if not is_retryable(kind) or budget.exhausted:
                logger.error(f"[wecom] Delivery failed after {attempts} attempt(s): {error}")
                return self._finish(self._failure(error, attempts=attempts))

            retry = budget.consume()
            delay = self._policy.get_delay(retry)
            if isinstance(error, RateLimitError) and error.retry_after:
                delay = max(delay, error.retry_after)
            logger.warning(
                f"[wecom] Attempt {attempts} failed with {kind.value}: {error}, "
                f"retry {retry}/{budget.max_retries} in {delay:.1f}s"
            )
            self._notify_state(
                DeliveryState.RETRYING,
                attempt=attempts,
                retry=retry,
                delay=delay,
                error_kind=kind.value,
                vendor_code=getattr(error, "code", None),
                **context,
            )
            await self._sleep(delay)

    @staticmethod
    def _classify(error: VendorError | TransportError) -> ErrorKind:
        if isinstance(error, VendorError):
            return error.kind
        if isinstance(error, AuthenticationError):
            return ErrorKind.AUTH_INVALID
        if isinstance(error, RateLimitError):
            return ErrorKind.RATE_LIMITED
        return ErrorKind.TRANSIENT if error.retryable else ErrorKind.FATAL

    @classmethod
    def _failure(cls, error: VendorError | TransportError, *, attempts: int) -> SendResult:
        if isinstance(error, VendorError):
            message = ERROR_DESCRIPTIONS.get(error.code, f"{error.description}: {error.errmsg}")
            return SendResult.fail(
                error.kind,
                message,
                vendor_code=error.code,
                recoverable=error.is_recoverable(),
                attempts=attempts,
            )
        kind = cls._classify(error)
        return SendResult.fail(kind, str(error), recoverable=kind in AUTH_KINDS, attempts=attempts)

    # =========================================================================
    # Results and notifications
    # =========================================================================

    def _config_failure(self, message: str, *, attempts: int = 0) -> SendResult:
        logger.error(f"[wecom] Configuration error: {message}")
        return self._finish(SendResult.fail(ErrorKind.CONFIG, message, attempts=attempts))

    def _target_failure(self, error: TargetError) -> SendResult:
        logger.error(f"[wecom] Invalid target: {error}")
        return self._finish(SendResult.fail(ErrorKind.TARGET_NOT_FOUND, str(error), attempts=0))

    def _finish(self, result: SendResult) -> SendResult:
        self._notify_state(DeliveryState.SUCCEEDED if result.success else DeliveryState.FAILED)
        try:
            self._observer.on_result(result)
        except Exception as e:
            logger.warning(f"[wecom] Delivery observer failed: {e}")
        return result

    def _notify_state(self, state: DeliveryState, **context: Any) -> None:
        try:
            self._observer.on_state(state, **context)
        except Exception as e:
            logger.warning(f"[wecom] Delivery observer failed: {e}")
