"""
WeCom API Client for wecomly.

Async transport for the vendor's HTTP API. It performs the calls and
returns typed responses; it does not interpret ``errcode`` for send
calls, leaving classification and retries to the delivery pipeline.

Usage:
    async with WeComClient(WeComClientConfig(timeout=10.0)) as client:
        token = await client.get_token("ww123", "secret")
        response = await client.send_message(envelope, token.access_token)

API Reference:
    https://developer.work.weixin.qq.com/document/path/90664
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from wecomly.integrations.base import IntegrationClient, IntegrationConfig, TransportError
from wecomly.integrations.wecom.errors import VendorError
from wecomly.integrations.wecom.schemas import (
    MediaKind,
    MediaUploadResult,
    SendResponse,
    TokenResponse,
    VendorSendEnvelope,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://qyapi.weixin.qq.com/cgi-bin"

ResponseT = TypeVar("ResponseT", bound=BaseModel)


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True, slots=True)
class WeComClientConfig(IntegrationConfig):
    """Configuration for the WeCom client."""

    base_url: str = DEFAULT_BASE_URL
    timeout: float = 10.0


def infer_mime_type(kind: MediaKind | str, filename: str) -> str:
    """
    Infer the upload content type from the media kind and file extension.

    Images use their extension (jpg becomes jpeg); voice is always AMR,
    video always MP4, and everything else is an opaque octet stream.
    """
    kind = MediaKind(kind)
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""

    if kind == MediaKind.IMAGE:
        if ext == "jpg" or not ext:
            return "image/jpeg"
        return f"image/{ext}"
    if kind == MediaKind.VOICE:
        return "audio/amr"
    if kind == MediaKind.VIDEO:
        return "video/mp4"
    return "application/octet-stream"


# =============================================================================
# Client
# =============================================================================


class WeComClient(IntegrationClient):
    """
    Async client for the WeCom API.

    Provides methods for:
    - Access token issuance
    - Message send (JSON) and webhook send
    - Temporary media upload (multipart)
    - User and department lookups

    Timeouts cancel the in-flight request and raise TransportTimeout.
    A configured proxy is applied to every request.
    """

    def __init__(
        self,
        config: WeComClientConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ):
        super().__init__(config or WeComClientConfig(), http_client=http_client)

    @property
    def name(self) -> str:
        """Integration name."""
        return "wecom"

    def _url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/{path.lstrip('/')}"

    async def execute(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Issue one HTTP call and return the decoded JSON body.

        ``path`` may be relative to the API base URL or an absolute URL.

        Raises:
            TransportTimeout: Deadline exceeded
            TransportError: Network error, non-2xx status, or a body that
                is not a JSON object
        """
        url = path if path.startswith(("http://", "https://")) else self._url(path)
        response = await self._do_request(method, url, params=params, json=json, files=files)
        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(
                f"Response is not JSON: {e}",
                self.name,
                status_code=response.status_code,
                response_body=response.text,
                retryable=False,
            ) from e
        if not isinstance(data, dict):
            raise TransportError(
                f"Response is not a JSON object: {type(data).__name__}",
                self.name,
                status_code=response.status_code,
                response_body=response.text,
                retryable=False,
            )
        return data

    def _parse(self, model: type[ResponseT], data: dict[str, Any]) -> ResponseT:
        """Validate a decoded body, mapping schema mismatches to TransportError."""
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise TransportError(
                f"Unexpected {model.__name__} body: {e.error_count()} invalid field(s)",
                self.name,
                retryable=False,
            ) from e

    # =========================================================================
    # Credentials
    # =========================================================================

    async def get_token(self, corp_id: str, corp_secret: str) -> TokenResponse:
        """
        Fetch an access token.

        Raises:
            VendorError: If the vendor returns a non-zero errcode
        """
        data = await self.execute("GET", "/gettoken", params={"corpid": corp_id, "corpsecret": corp_secret})
        token = self._parse(TokenResponse, data)
        if not token.ok or not token.access_token:
            raise VendorError(token.errcode or -1, token.errmsg or "empty access_token")
        return token

    # =========================================================================
    # Messages
    # =========================================================================

    async def send_message(self, envelope: VendorSendEnvelope, access_token: str) -> SendResponse:
        """Send an envelope. The errcode is returned, not raised."""
        data = await self.execute(
            "POST",
            "/message/send",
            params={"access_token": access_token},
            json=envelope.to_api_dict(),
        )
        return self._parse(SendResponse, data)

    async def post_webhook(self, webhook_url: str, payload: dict[str, Any]) -> SendResponse:
        """Send through a group-robot webhook URL (key embedded in the URL)."""
        data = await self.execute("POST", webhook_url, json=payload)
        return self._parse(SendResponse, data)

    async def probe(self, url: str) -> bool:
        """HEAD a URL; True on any 2xx. Transport errors propagate."""
        await self._do_request("HEAD", url)
        return True

    # =========================================================================
    # Media
    # =========================================================================

    async def upload_media(
        self,
        kind: MediaKind | str,
        data: bytes,
        filename: str,
        access_token: str,
    ) -> MediaUploadResult:
        """
        Upload a temporary media file.

        Args:
            kind: image, voice, video or file
            data: File contents
            filename: Original filename (drives the content type)
            access_token: Current access token

        Returns:
            MediaUploadResult with media_id and created_at

        Raises:
            VendorError: If the vendor returns a non-zero errcode
        """
        kind = MediaKind(kind)
        mime_type = infer_mime_type(kind, filename)
        logger.info(f"[wecom] Uploading {kind.value} media: {filename} ({len(data)} bytes, {mime_type})")

        body = await self.execute(
            "POST",
            "/media/upload",
            params={"access_token": access_token, "type": kind.value},
            files={"media": (filename, data, mime_type)},
        )
        result = self._parse(MediaUploadResult, body)
        if not result.ok:
            raise VendorError(result.errcode, result.errmsg)
        if result.type is None:
            result = result.model_copy(update={"type": kind})
        return result

    # =========================================================================
    # Directory
    # =========================================================================

    async def get_user(self, user_id: str, access_token: str) -> dict[str, Any]:
        return await self.execute("GET", "/user/get", params={"access_token": access_token, "userid": user_id})

    async def list_departments(self, access_token: str, parent_id: int = 1) -> dict[str, Any]:
        return await self.execute("GET", "/department/list", params={"access_token": access_token, "id": parent_id})

    async def list_department_users(
        self,
        access_token: str,
        department_id: int,
        fetch_child: bool = False,
    ) -> dict[str, Any]:
        return await self.execute(
            "GET",
            "/user/list",
            params={
                "access_token": access_token,
                "department_id": department_id,
                "fetch_child": 1 if fetch_child else 0,
            },
        )
