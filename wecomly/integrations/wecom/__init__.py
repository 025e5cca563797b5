"""
WeCom Integration for wecomly.

Usage:
    from wecomly.integrations.wecom import CredentialManager, WeComClient

    async with WeComClient() as client:
        credentials = CredentialManager(client, corp_id="ww123", corp_secret="...")
        token = await credentials.get_token()

API Reference:
    https://developer.work.weixin.qq.com/document/path/90664
"""

from wecomly.integrations.wecom.client import DEFAULT_BASE_URL, WeComClient, WeComClientConfig, infer_mime_type
from wecomly.integrations.wecom.credentials import CredentialManager
from wecomly.integrations.wecom.errors import ErrorKind, VendorError, classify_code, describe_code
from wecomly.integrations.wecom.schemas import (
    AccessToken,
    InboundEnvelope,
    MediaKind,
    MediaUploadResult,
    MessageKind,
    SendResponse,
    TokenResponse,
    VendorSendEnvelope,
)
from wecomly.integrations.wecom.translator import (
    MessageTranslator,
    apply_prefix,
    build_mention_text,
    extract_mentions,
)

__all__ = [
    "DEFAULT_BASE_URL",
    "AccessToken",
    "CredentialManager",
    "ErrorKind",
    "InboundEnvelope",
    "MediaKind",
    "MediaUploadResult",
    "MessageKind",
    "MessageTranslator",
    "SendResponse",
    "TokenResponse",
    "VendorError",
    "VendorSendEnvelope",
    "WeComClient",
    "WeComClientConfig",
    "apply_prefix",
    "build_mention_text",
    "classify_code",
    "describe_code",
    "extract_mentions",
    "infer_mime_type",
]
