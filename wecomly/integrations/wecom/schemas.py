"""
Pydantic schemas for the WeCom API.

These schemas provide type-safe representations of the vendor's wire
formats: token, send and upload responses, the outbound send envelope,
and the inbound push payload.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from wecomly.integrations.base import TargetError

# =============================================================================
# Enums
# =============================================================================


class MessageKind(str, Enum):
    """Vendor message kinds accepted by the send endpoint."""

    TEXT = "text"
    IMAGE = "image"
    VOICE = "voice"
    VIDEO = "video"
    FILE = "file"
    TEXTCARD = "textcard"
    NEWS = "news"
    MARKDOWN = "markdown"


class MediaKind(str, Enum):
    """Vendor media kinds accepted by the upload endpoint."""

    IMAGE = "image"
    VOICE = "voice"
    VIDEO = "video"
    FILE = "file"


# =============================================================================
# Credentials
# =============================================================================

DEFAULT_SAFETY_MARGIN = 300.0


class AccessToken(BaseModel):
    """
    An issued access token.

    Immutable: a refresh replaces the instance, it never mutates it.
    ``expires_at`` already has the safety margin subtracted.
    """

    model_config = ConfigDict(frozen=True)

    value: str = Field(..., repr=False)
    issued_at: float
    expires_at: float

    @classmethod
    def issue(
        cls,
        value: str,
        server_ttl: float,
        *,
        safety_margin: float = DEFAULT_SAFETY_MARGIN,
        now: float | None = None,
    ) -> AccessToken:
        """Create a token whose expiry is ``issued_at + server_ttl - safety_margin``."""
        if safety_margin < 0:
            raise ValueError("safety_margin must be >= 0")
        issued_at = time.time() if now is None else now
        return cls(value=value, issued_at=issued_at, expires_at=issued_at + server_ttl - safety_margin)

    def is_expired(self, now: float | None = None) -> bool:
        current = time.time() if now is None else now
        return current >= self.expires_at


# =============================================================================
# Responses
# =============================================================================


class VendorResponse(BaseModel):
    """Fields present on every vendor response."""

    model_config = ConfigDict(extra="allow")

    errcode: int = 0
    errmsg: str = ""

    @property
    def ok(self) -> bool:
        return self.errcode == 0


class TokenResponse(VendorResponse):
    """Response of ``GET /gettoken``."""

    access_token: str = Field("", repr=False)
    expires_in: int = 7200


class SendResponse(VendorResponse):
    """Response of ``POST /message/send`` and webhook sends."""

    msgid: str = ""
    invaliduser: str | None = None
    invalidparty: str | None = None
    invalidtag: str | None = None


class MediaUploadResult(VendorResponse):
    """Response of ``POST /media/upload``."""

    type: MediaKind | None = None
    media_id: str = ""
    created_at: int = 0


# =============================================================================
# Outbound Envelope
# =============================================================================


class VendorSendEnvelope(BaseModel):
    """
    A single outbound payload for the send endpoint.

    ``body`` is serialized under the key named by ``msgtype``, so a text
    envelope becomes ``{"msgtype": "text", "text": {"content": ...}}``.
    """

    model_config = ConfigDict(use_enum_values=False)

    touser: str | None = None
    toparty: str | None = None
    totag: str | None = None
    msgtype: MessageKind
    agentid: int = 0
    body: dict[str, Any] = Field(default_factory=dict)
    safe: int = 0
    enable_id_trans: int = 0

    @property
    def targets(self) -> dict[str, str]:
        """The recipient fields that are set."""
        return {
            key: value
            for key, value in (
                ("touser", self.touser),
                ("toparty", self.toparty),
                ("totag", self.totag),
            )
            if value
        }

    def check_target(self) -> None:
        """Raise TargetError unless exactly one recipient field is set."""
        targets = self.targets
        if len(targets) != 1:
            raise TargetError(
                f"Exactly one of touser/toparty/totag must be set, got {sorted(targets) or 'none'}",
                "wecom",
            )

    def to_api_dict(self) -> dict[str, Any]:
        """Convert to the send endpoint's JSON body."""
        data: dict[str, Any] = dict(self.targets)
        data["msgtype"] = self.msgtype.value
        data["agentid"] = self.agentid
        data[self.msgtype.value] = self.body
        data["safe"] = self.safe
        data["enable_id_trans"] = self.enable_id_trans
        return data


# =============================================================================
# Inbound Envelope
# =============================================================================


class InboundEnvelope(BaseModel):
    """Vendor push payload (already decoded from XML upstream)."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", coerce_numbers_to_str=True)

    to_user_name: str = Field("", alias="ToUserName")
    from_user_name: str = Field(..., alias="FromUserName")
    create_time: int = Field(..., alias="CreateTime")
    msg_type: str = Field(..., alias="MsgType")
    msg_id: str = Field("", alias="MsgId")
    agent_id: int | None = Field(None, alias="AgentID")

    content: str | None = Field(None, alias="Content")
    media_id: str | None = Field(None, alias="MediaId")
    pic_url: str | None = Field(None, alias="PicUrl")

    location_x: float | None = Field(None, alias="Location_X")
    location_y: float | None = Field(None, alias="Location_Y")
    scale: float | None = Field(None, alias="Scale")
    label: str | None = Field(None, alias="Label")

    event: str | None = Field(None, alias="Event")
    event_key: str | None = Field(None, alias="EventKey")
