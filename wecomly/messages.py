"""
Generic message model for wecomly.

Vendor-neutral value objects exchanged with the host agent. The
translator maps these to and from WeCom wire envelopes; nothing here
knows about the vendor's field names.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class PeerKind(str, Enum):
    """Type of conversation target."""

    DM = "dm"  # Single user
    GROUP = "group"  # Department or tag


class MediaType(str, Enum):
    """Generic media kinds."""

    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    FILE = "file"


@dataclass(frozen=True)
class Peer:
    """
    A conversation target.

    Attributes:
        kind: dm (single user) or group (department/tag)
        id: User id, or department id(s) joined by ``|``
        name: Display name
    """

    kind: PeerKind
    id: str
    name: str = ""

    @classmethod
    def dm(cls, user_id: str, name: str = "") -> Peer:
        return cls(kind=PeerKind.DM, id=user_id, name=name or user_id)

    @classmethod
    def group(cls, group_id: str, name: str = "") -> Peer:
        return cls(kind=PeerKind.GROUP, id=group_id, name=name or group_id)


@dataclass(frozen=True)
class MediaItem:
    """
    A media attachment.

    Attributes:
        kind: Generic media kind (or a raw string for unknown kinds)
        content_ref: Vendor media id once uploaded, or a URL
        caption: Optional accompanying text
    """

    kind: MediaType | str
    content_ref: str
    caption: str | None = None


@dataclass(frozen=True)
class ReplyRef:
    """Reference to the message being replied to."""

    sender_name: str = ""
    message_id: str = ""


@dataclass(frozen=True)
class Mention:
    user_id: str
    name: str = ""


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float
    scale: float | None = None
    label: str = ""


@dataclass(frozen=True)
class ChannelEvent:
    """A vendor event such as subscribe/unsubscribe/enter_agent."""

    type: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class OutboundMessage:
    """
    A message the agent wants to send.

    Produced by the caller and consumed once by the translator.
    """

    peer: Peer
    text: str | None = None
    media: list[MediaItem] = field(default_factory=list)
    reply_to: ReplyRef | None = None


@dataclass
class InboundMessage:
    """
    A message received from the vendor, in generic form.

    Attributes:
        id: Vendor message id
        peer: Sender (always a DM peer)
        timestamp: Creation time in milliseconds
        account_id: Receiving agent id
        text: Text content or synthesized summary
        media: Attachments (at most one for vendor pushes)
        mentions: ``@user`` mentions found in text
        location: Coordinates for location messages
        event: Vendor event, if the payload carried one
    """

    id: str
    peer: Peer
    timestamp: int
    channel: str = "wecom"
    account_id: str = ""
    text: str | None = None
    media: list[MediaItem] = field(default_factory=list)
    mentions: list[Mention] = field(default_factory=list)
    location: Location | None = None
    event: ChannelEvent | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "peer": {"kind": self.peer.kind.value, "id": self.peer.id, "name": self.peer.name},
            "timestamp": self.timestamp,
            "channel": self.channel,
            "account_id": self.account_id,
            "text": self.text,
            "media": [
                {
                    "kind": m.kind.value if isinstance(m.kind, MediaType) else m.kind,
                    "content_ref": m.content_ref,
                    "caption": m.caption,
                }
                for m in self.media
            ],
            "mentions": [{"user_id": m.user_id, "name": m.name} for m in self.mentions],
            "location": (
                {
                    "latitude": self.location.latitude,
                    "longitude": self.location.longitude,
                    "scale": self.location.scale,
                    "label": self.location.label,
                }
                if self.location
                else None
            ),
            "event": {"type": self.event.type, "data": self.event.data} if self.event else None,
        }
