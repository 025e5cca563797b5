"""
Message translation between the generic model and WeCom envelopes.

Pure and stateless apart from its parameters (agent id and optional
message prefix). Outbound and inbound dispatch are exhaustive matches
over the closed set of vendor kinds.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from typing import Any

from wecomly.integrations.base import TargetError
from wecomly.integrations.wecom.schemas import InboundEnvelope, MessageKind, VendorSendEnvelope
from wecomly.messages import (
    ChannelEvent,
    InboundMessage,
    Location,
    MediaItem,
    MediaType,
    Mention,
    OutboundMessage,
    Peer,
    PeerKind,
    ReplyRef,
)

logger = logging.getLogger(__name__)

MENTION_PATTERN = re.compile(r"@(\w+)")

DEPARTMENT_DELIMITER = "|"

DEFAULT_CARD_BUTTON = "查看详情"

REPLY_FALLBACK_NAME = "用户"

_MEDIA_KINDS: dict[str, MessageKind] = {
    MediaType.IMAGE.value: MessageKind.IMAGE,
    MediaType.AUDIO.value: MessageKind.VOICE,
    "voice": MessageKind.VOICE,
    MediaType.VIDEO.value: MessageKind.VIDEO,
    MediaType.FILE.value: MessageKind.FILE,
}

_INBOUND_MEDIA: dict[str, MediaType] = {
    "image": MediaType.IMAGE,
    "voice": MediaType.AUDIO,
    "video": MediaType.VIDEO,
    "file": MediaType.FILE,
}

EVENT_SUMMARIES: dict[str, str] = {
    "subscribe": "用户关注了应用",
    "unsubscribe": "用户取消关注应用",
    "enter_agent": "用户进入了应用",
}


# =============================================================================
# Mention utilities
# =============================================================================


def extract_mentions(text: str) -> list[str]:
    """
    Extract ``@user`` tokens in left-to-right order.

    ``\w`` is Unicode-aware, so CJK display names match too
    (``@张三`` yields ``张三``), not only ASCII user ids.

    Example:
        >>> extract_mentions("@zhangsan @lisi 请参加会议")
        ['zhangsan', 'lisi']
    """
    return MENTION_PATTERN.findall(text or "")


def build_mention_text(user_ids: Sequence[str], text: str) -> str:
    """
    Prefix ``text`` with a line of ``@user`` mentions.

    Example:
        >>> build_mention_text(["a", "b"], "go")
        '@a @b\\ngo'
    """
    if not user_ids:
        return text
    mentions = " ".join(f"@{user_id}" for user_id in user_ids)
    return f"{mentions}\n{text}"


def apply_prefix(text: str, prefix: str | None) -> str:
    """Prepend ``prefix`` unless ``text`` already starts with it. Idempotent."""
    if not prefix or text.startswith(prefix):
        return text
    return prefix + text


def join_department_ids(department_ids: Iterable[int | str]) -> str:
    return DEPARTMENT_DELIMITER.join(str(d) for d in department_ids)


# =============================================================================
# Translator
# =============================================================================


class MessageTranslator:
    """
    Bidirectional mapping between generic messages and vendor envelopes.

    Example:
        translator = MessageTranslator(agent_id=1000001, message_prefix="[AI] ")
        envelope = translator.to_envelope(
            OutboundMessage(peer=Peer.dm("u1"), text="hi")
        )
        envelope.body  # {"content": "[AI] hi"}
    """

    def __init__(self, agent_id: int, message_prefix: str | None = None):
        self._agent_id = agent_id
        self._message_prefix = message_prefix

    @property
    def agent_id(self) -> int:
        return self._agent_id

    # -------------------------------------------------------------------------
    # Outbound
    # -------------------------------------------------------------------------

    def to_envelope(self, message: OutboundMessage) -> VendorSendEnvelope:
        """
        Translate an outbound message into a send envelope.

        Text is used unless media is present, in which case only the first
        media item is sent (one attachment per call).

        Raises:
            TargetError: If the peer cannot be mapped to exactly one target
        """
        if message.media:
            if len(message.media) > 1:
                logger.debug(
                    f"[wecom] Dropping {len(message.media) - 1} extra media item(s); "
                    "vendor accepts one attachment per call"
                )
            return self._media_envelope(message.peer, message.media[0])

        text = self.prepare_text(message.text or "", message.reply_to)
        return self._envelope(message.peer, MessageKind.TEXT, {"content": text})

    def prepare_text(self, text: str, reply_to: ReplyRef | None = None) -> str:
        """Apply the message prefix, then the reply attribution line if replying."""
        content = apply_prefix(text, self._message_prefix)
        if reply_to is not None:
            content = f"回复 {reply_to.sender_name or REPLY_FALLBACK_NAME}:\n{content}"
        return content

    def _media_envelope(self, peer: Peer, media: MediaItem) -> VendorSendEnvelope:
        label = media.kind.value if isinstance(media.kind, MediaType) else str(media.kind)
        kind = _MEDIA_KINDS.get(label)
        if kind is None:
            content = f"[{label}] {media.content_ref}"
            if media.caption:
                content += f"\n{media.caption}"
            return self._envelope(peer, MessageKind.TEXT, {"content": content})

        body: dict[str, Any] = {"media_id": media.content_ref}
        if kind == MessageKind.VIDEO and media.caption:
            body["description"] = media.caption
        return self._envelope(peer, kind, body)

    def build_card_envelope(
        self,
        peer: Peer,
        title: str,
        description: str,
        url: str,
        btntxt: str = DEFAULT_CARD_BUTTON,
    ) -> VendorSendEnvelope:
        """Build a ``textcard`` envelope."""
        return self._envelope(
            peer,
            MessageKind.TEXTCARD,
            {"title": title, "description": description, "url": url, "btntxt": btntxt},
        )

    def build_news_envelope(self, peer: Peer, articles: Sequence[dict[str, str]]) -> VendorSendEnvelope:
        """
        Build a ``news`` envelope.

        Each article is a mapping with title, description, url and picurl.
        """
        if not articles:
            raise ValueError("news envelope requires at least one article")
        return self._envelope(
            peer,
            MessageKind.NEWS,
            {
                "articles": [
                    {
                        "title": a.get("title", ""),
                        "description": a.get("description", ""),
                        "url": a.get("url", ""),
                        "picurl": a.get("picurl", ""),
                    }
                    for a in articles
                ]
            },
        )

    def build_markdown_envelope(self, peer: Peer, content: str) -> VendorSendEnvelope:
        return self._envelope(peer, MessageKind.MARKDOWN, {"content": content})

    def build_department_envelope(self, department_ids: Iterable[int | str], text: str) -> VendorSendEnvelope:
        """Build a text envelope addressed to one or more departments."""
        peer = Peer.group(join_department_ids(department_ids))
        return self._envelope(peer, MessageKind.TEXT, {"content": apply_prefix(text, self._message_prefix)})

    def _envelope(self, peer: Peer, kind: MessageKind, body: dict[str, Any]) -> VendorSendEnvelope:
        if not peer.id:
            raise TargetError("Peer id is empty", "wecom")

        envelope = VendorSendEnvelope(
            touser=peer.id if peer.kind == PeerKind.DM else None,
            toparty=peer.id if peer.kind == PeerKind.GROUP else None,
            msgtype=kind,
            agentid=self._agent_id,
            body=body,
        )
        envelope.check_target()
        return envelope

    # -------------------------------------------------------------------------
    # Inbound
    # -------------------------------------------------------------------------

    def from_inbound(self, envelope: InboundEnvelope) -> InboundMessage:
        """
        Translate a vendor push payload into a generic message.

        Unrecognized kinds become a bracketed-tag text so nothing is dropped.
        """
        agent_id = envelope.agent_id if envelope.agent_id is not None else self._agent_id
        message = InboundMessage(
            id=envelope.msg_id,
            peer=Peer.dm(envelope.from_user_name),
            timestamp=envelope.create_time * 1000,
            account_id=str(agent_id),
        )

        kind = envelope.msg_type
        if kind == "text":
            if envelope.content:
                message.text = envelope.content
                message.mentions = [Mention(user_id=u, name=u) for u in extract_mentions(envelope.content)]
        elif kind in _INBOUND_MEDIA:
            ref = envelope.media_id or (envelope.pic_url if kind == "image" else None)
            if ref:
                message.media = [MediaItem(kind=_INBOUND_MEDIA[kind], content_ref=ref, caption=envelope.content)]
        elif kind == "location":
            message.text = f"位置: {envelope.label or '未知位置'}"
            message.location = Location(
                latitude=envelope.location_x or 0.0,
                longitude=envelope.location_y or 0.0,
                scale=envelope.scale,
                label=envelope.label or "",
            )
        elif kind != "event":
            message.text = f"[{kind}] {envelope.content or '未知消息类型'}"

        if envelope.event:
            message.event = ChannelEvent(
                type=envelope.event,
                data={"key": envelope.event_key} if envelope.event_key else {},
            )
            summary = EVENT_SUMMARIES.get(envelope.event)
            if summary:
                message.text = summary
            elif message.text is None:
                message.text = f"[event] {envelope.event}"

        return message

    def from_payload(self, payload: dict[str, Any]) -> InboundMessage:
        """Validate a raw payload dict and translate it."""
        return self.from_inbound(InboundEnvelope.model_validate(payload))
