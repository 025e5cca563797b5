"""
WeCom error codes and classification.

Every vendor response carries an ``errcode``. This module maps codes onto
a closed set of error kinds which drive the delivery pipeline's retry
decisions, and exposes the vendor's own description table.
"""

from __future__ import annotations

from enum import Enum

from wecomly.integrations.base import IntegrationError

INTEGRATION_NAME = "wecom"

OK = 0
INVALID_CREDENTIAL = 40001
TOKEN_INVALID = 40014
TOKEN_EXPIRED = 42001
RATE_LIMITED = 45009
QUOTA_EXCEEDED = 45033
NOT_AUTHORIZED = 50001
USER_NOT_FOUND = 60111
INVALID_DEPARTMENT = 60123
INVALID_PARENT_DEPARTMENT = 60124


class ErrorKind(str, Enum):
    """Classification of a failed delivery."""

    AUTH_EXPIRED = "auth_expired"
    AUTH_INVALID = "auth_invalid"
    RATE_LIMITED = "rate_limited"
    QUOTA_EXCEEDED = "quota_exceeded"
    NOT_AUTHORIZED = "not_authorized"
    TARGET_NOT_FOUND = "target_not_found"
    TRANSIENT = "transient"
    FATAL = "fatal"
    CONFIG = "config"


# Vendor-defined descriptions, kept in the vendor's language.
ERROR_DESCRIPTIONS: dict[int, str] = {
    40001: "不合法的调用凭证",
    40014: "access_token无效",
    42001: "access_token已过期",
    45009: "接口调用超过频率限制",
    45033: "接口调用超过限制",
    50001: "用户未授权",
    60011: "无权限操作该用户",
    60102: "UserID已存在",
    60103: "手机号码不合法",
    60104: "手机号码已存在",
    60105: "邮箱不合法",
    60106: "邮箱已存在",
    60107: "微信号不合法",
    60110: "用户所属部门数量超过限制",
    60111: "UserID不存在",
    60112: "用户已禁用",
    60123: "无效的部门id",
    60124: "无效的父部门id",
    60125: "部门名称不合法",
    60127: "缺少department参数",
    60128: "部门id和父部门id不能相同",
    60129: "部门层级超过限制",
}

UNKNOWN_DESCRIPTION = "未知错误"

_CODE_KINDS: dict[int, ErrorKind] = {
    TOKEN_EXPIRED: ErrorKind.AUTH_EXPIRED,
    TOKEN_INVALID: ErrorKind.AUTH_INVALID,
    RATE_LIMITED: ErrorKind.RATE_LIMITED,
    QUOTA_EXCEEDED: ErrorKind.QUOTA_EXCEEDED,
    NOT_AUTHORIZED: ErrorKind.NOT_AUTHORIZED,
    USER_NOT_FOUND: ErrorKind.TARGET_NOT_FOUND,
    INVALID_DEPARTMENT: ErrorKind.TARGET_NOT_FOUND,
    INVALID_PARENT_DEPARTMENT: ErrorKind.TARGET_NOT_FOUND,
    60112: ErrorKind.TARGET_NOT_FOUND,
}

AUTH_KINDS = frozenset({ErrorKind.AUTH_EXPIRED, ErrorKind.AUTH_INVALID})

RETRYABLE_KINDS = frozenset(
    {
        ErrorKind.AUTH_EXPIRED,
        ErrorKind.AUTH_INVALID,
        ErrorKind.RATE_LIMITED,
        ErrorKind.QUOTA_EXCEEDED,
        ErrorKind.NOT_AUTHORIZED,
        ErrorKind.TRANSIENT,
    }
)

RECOVERABLE_CODES = frozenset({TOKEN_EXPIRED, TOKEN_INVALID, QUOTA_EXCEEDED})


def classify_code(code: int) -> ErrorKind:
    """Map a vendor errcode onto an ErrorKind. Unmapped codes are FATAL."""
    return _CODE_KINDS.get(code, ErrorKind.FATAL)


def describe_code(code: int) -> str:
    """Human description for a vendor errcode."""
    return ERROR_DESCRIPTIONS.get(code, UNKNOWN_DESCRIPTION)


def is_retryable(kind: ErrorKind) -> bool:
    """Whether the delivery pipeline should retry this kind of failure."""
    return kind in RETRYABLE_KINDS


class VendorError(IntegrationError):
    """
    A non-zero errcode returned by the vendor.

    Attributes:
        code: Vendor errcode
        errmsg: Vendor errmsg (raw)
    """

    def __init__(self, code: int, errmsg: str, **kwargs):
        kind = classify_code(code)
        kwargs.setdefault("retryable", is_retryable(kind))
        super().__init__(f"{errmsg} ({code})", INTEGRATION_NAME, **kwargs)
        self.code = code
        self.errmsg = errmsg

    @property
    def kind(self) -> ErrorKind:
        return classify_code(self.code)

    @property
    def description(self) -> str:
        return describe_code(self.code)

    def is_recoverable(self) -> bool:
        """
        True for token expiry/invalidity and call-count quota.

        Independent of whether retries were exhausted; callers use it to
        decide whether to surface the failure to an end user.
        """
        return self.code in RECOVERABLE_CODES

    @classmethod
    def from_response(cls, data: dict) -> "VendorError":
        """Build from a raw ``{errcode, errmsg}`` response body."""
        return cls(int(data.get("errcode", -1)), str(data.get("errmsg", "")))
